"""Certification request, media and checkpoint answer models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from certchain_api.db.base import Base


class CertificationRequest(Base):
    """A producer's submission under review.

    Status and journal are written only through the request store's
    compare-and-swap update; ``version`` increments on every write.
    """

    __tablename__ = "certification_requests"

    id = Column(String(36), primary_key=True)
    # uint256 values do not fit BIGINT, stored as decimal text
    ledger_request_id = Column(String(80), nullable=True, unique=True, index=True)
    product_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(50), nullable=False, index=True)
    creator_id = Column(String(36), ForeignKey("actors.id"), nullable=False, index=True)
    inspector_id = Column(String(36), ForeignKey("actors.id"), nullable=True, index=True)
    certifier_id = Column(String(36), ForeignKey("actors.id"), nullable=True, index=True)
    journal = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    media = relationship("Media", back_populates="request", cascade="all, delete-orphan")
    checkpoint_answers = relationship(
        "CheckpointAnswer", back_populates="request", cascade="all, delete-orphan"
    )


class Media(Base):
    """Media reference attached to a request at creation."""

    __tablename__ = "media"

    id = Column(String(36), primary_key=True)
    request_id = Column(
        String(36), ForeignKey("certification_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(20), nullable=False)  # image, video
    url = Column(String(1024), nullable=False)
    hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    request = relationship("CertificationRequest", back_populates="media")


class CheckpointAnswer(Base):
    """Producer's answer to an inspection checkpoint question."""

    __tablename__ = "checkpoint_answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(
        String(36), ForeignKey("certification_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    checkpoint_id = Column(Integer, nullable=False)
    answer = Column(String(1024), nullable=False)
    media_url = Column(String(1024), nullable=True)  # only mutable column
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    request = relationship("CertificationRequest", back_populates="checkpoint_answers")
