"""Database engine and session management."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from certchain_api.settings import Settings, get_settings


def build_engine(settings: Optional[Settings] = None) -> Engine:
    """Create the process-wide engine from settings."""
    settings = settings or get_settings()
    url = settings.database_url_computed
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to engine."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

