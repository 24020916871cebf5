"""Tests for health endpoints."""

import logging

from fastapi.testclient import TestClient

from certchain_api.container import ServiceContainer
from certchain_api.ledger.dev import DevLocalLedgerClient
from certchain_api.lifecycle.locks import LocalRequestLocks
from certchain_api.main import create_app
from certchain_api.middleware.correlation import CorrelationIdFilter, correlation_id_var


def _client(session_factory, settings):
    container = ServiceContainer.from_parts(
        session_factory=session_factory,
        ledger=DevLocalLedgerClient(),
        locks=LocalRequestLocks(),
        settings=settings,
    )
    return TestClient(create_app(container))


def test_health_check(session_factory, test_settings):
    """Test health endpoint."""
    with _client(session_factory, test_settings) as client:
        response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "certchain-api"


def test_readiness_check(session_factory, test_settings):
    """Test readiness endpoint."""
    with _client(session_factory, test_settings) as client:
        response = client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"] is True


def test_root(session_factory, test_settings):
    """Test root endpoint."""
    with _client(session_factory, test_settings) as client:
        response = client.get("/")
    assert response.status_code == 200
    assert response.json()["service"] == "CertChain API"


def test_metrics_is_public(session_factory, test_settings):
    """Prometheus endpoint needs no API key."""
    with _client(session_factory, test_settings) as client:
        response = client.get("/metrics/")
    assert response.status_code == 200
    assert "certchain_ledger_writes" in response.text


def test_correlation_filter_stamps_records():
    """Log records carry the correlation id of the current request."""
    record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
    token = correlation_id_var.set("corr-42")
    try:
        assert CorrelationIdFilter().filter(record)
    finally:
        correlation_id_var.reset(token)
    assert record.correlation_id == "corr-42"
