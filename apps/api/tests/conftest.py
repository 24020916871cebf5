"""Pytest configuration and fixtures."""

import os
import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from certchain_api.auth.api_key import compute_key_digest
from certchain_api.db.base import Base
from certchain_api.db.session import build_session_factory
from certchain_api.ledger.client import LedgerError
from certchain_api.ledger.dev import DevLocalLedgerClient
from certchain_api.lifecycle.coordinator import LifecycleCoordinator
from certchain_api.lifecycle.identifiers import IdentifierMapper
from certchain_api.lifecycle.locks import LocalRequestLocks
from certchain_api.lifecycle.reconciliation import ReconciliationAlerter
from certchain_api.lifecycle.records import ActorRef
from certchain_api.lifecycle.states import Role
from certchain_api.models import Actor
from certchain_api.settings import Settings
from certchain_api.store.repository import SqlAlchemyRequestStore

# Use test database URL from environment or default to SQLite in-memory
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")


class FailingLedger(DevLocalLedgerClient):
    """Dev ledger whose selected methods always fail."""

    def __init__(self, fail_on=(), broadcast_ref=None, **kwargs):
        super().__init__(**kwargs)
        self.fail_on = set(fail_on)
        self.broadcast_ref = broadcast_ref  # set to fail after broadcast, like a receipt timeout

    async def _confirm(self, method, ledger_id, allowed, new_status, **data):
        if method in self.fail_on:
            raise LedgerError(f"{method}: node unavailable", tx_ref=self.broadcast_ref)
        return await super()._confirm(method, ledger_id, allowed, new_status, **data)


@pytest.fixture(scope="function")
def engine():
    """Create a test database engine with all tables."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return SqlAlchemyRequestStore(session_factory)


@pytest.fixture
def ledger():
    return DevLocalLedgerClient()


@pytest.fixture
def locks():
    return LocalRequestLocks()


@pytest.fixture
def test_settings():
    return Settings(reconciliation_alert_url=None, ledger_provider="local")


@pytest.fixture
def alerter(session_factory, test_settings):
    return ReconciliationAlerter(session_factory, test_settings)


@pytest.fixture
def mapper():
    return IdentifierMapper(256)


@pytest.fixture
def coordinator(store, ledger, mapper, locks, alerter):
    return LifecycleCoordinator(store=store, ledger=ledger, mapper=mapper, locks=locks, alerter=alerter)


def _make_actor(session_factory, username: str, role: Role):
    api_key = f"cc_test_{username}_{uuid.uuid4().hex}"
    actor_id = str(uuid.uuid4())
    with session_factory() as db:
        db.add(
            Actor(
                id=actor_id,
                username=username,
                email=f"{username}@example.com",
                role=role.value,
                api_key_hash=compute_key_digest(api_key),
                is_active=True,
            )
        )
        db.commit()
    return ActorRef(id=actor_id, role=role), api_key


@pytest.fixture
def actors(session_factory):
    """Producer, second producer, inspector and certifier with API keys."""
    made = {
        "producer": _make_actor(session_factory, "producer", Role.PRODUCER),
        "other_producer": _make_actor(session_factory, "other_producer", Role.PRODUCER),
        "inspector": _make_actor(session_factory, "inspector", Role.INSPECTOR),
        "certifier": _make_actor(session_factory, "certifier", Role.CERTIFIER),
    }
    return made


@pytest.fixture
def producer(actors):
    return actors["producer"][0]


@pytest.fixture
def inspector(actors):
    return actors["inspector"][0]


@pytest.fixture
def certifier(actors):
    return actors["certifier"][0]


@pytest.fixture
def failing_ledger():
    """Factory for a dev ledger that fails the named contract methods."""
    return FailingLedger
