"""Process-wide collaborators, built once at startup and drained at shutdown."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from certchain_api.db.session import build_engine, build_session_factory
from certchain_api.ledger.client import LedgerClient, get_ledger_client
from certchain_api.lifecycle.coordinator import LifecycleCoordinator
from certchain_api.lifecycle.identifiers import IdentifierMapper
from certchain_api.lifecycle.locks import RequestLocks, build_request_locks
from certchain_api.lifecycle.reconciliation import ReconciliationAlerter
from certchain_api.services.media import MediaService
from certchain_api.settings import Settings, get_settings
from certchain_api.store.repository import RequestStore, SqlAlchemyRequestStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything the HTTP layer needs, passed explicitly."""

    engine: Optional[Engine]
    session_factory: sessionmaker
    store: RequestStore
    ledger: LedgerClient
    locks: RequestLocks
    coordinator: LifecycleCoordinator
    media: MediaService
    alerter: ReconciliationAlerter

    @classmethod
    def from_parts(
        cls,
        session_factory: sessionmaker,
        ledger: LedgerClient,
        locks: RequestLocks,
        settings: Optional[Settings] = None,
        engine: Optional[Engine] = None,
    ) -> "ServiceContainer":
        settings = settings or get_settings()
        store = SqlAlchemyRequestStore(session_factory)
        alerter = ReconciliationAlerter(session_factory, settings)
        coordinator = LifecycleCoordinator(
            store=store,
            ledger=ledger,
            mapper=IdentifierMapper(settings.ledger_id_bits),
            locks=locks,
            alerter=alerter,
        )
        return cls(
            engine=engine,
            session_factory=session_factory,
            store=store,
            ledger=ledger,
            locks=locks,
            coordinator=coordinator,
            media=MediaService(session_factory),
            alerter=alerter,
        )

    @classmethod
    def build(cls, settings: Optional[Settings] = None) -> "ServiceContainer":
        """Build from settings."""
        settings = settings or get_settings()
        engine = build_engine(settings)
        return cls.from_parts(
            session_factory=build_session_factory(engine),
            ledger=get_ledger_client(settings),
            locks=build_request_locks(settings),
            settings=settings,
            engine=engine,
        )

    async def close(self) -> None:
        """Drain connections; in-flight requests have finished by now."""
        await self.ledger.close()
        await self.locks.close()
        if self.engine is not None:
            self.engine.dispose()
        logger.info("Service container closed")
