"""Actor model for producers, inspectors and certifiers."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String

from certchain_api.db.base import Base


class Actor(Base):
    """An authenticated participant in the certification workflow."""

    __tablename__ = "actors"

    id = Column(String(36), primary_key=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(50), nullable=False, index=True)  # producer, inspector, certifier
    api_key_hash = Column(String(255), nullable=False, unique=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
