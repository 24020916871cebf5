"""Tests for the certification HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from certchain_api.container import ServiceContainer
from certchain_api.ledger.dev import DevLocalLedgerClient
from certchain_api.lifecycle.locks import LocalRequestLocks
from certchain_api.main import create_app

CREATE_BODY = {
    "product_name": "Arabica beans",
    "description": "Highland lot 12",
    "media": [{"type": "image", "url": "https://cdn.example/beans.jpg", "hash": "QmBeans"}],
    "checkpoints": [{"checkpoint_id": 1, "answer": "shade grown"}],
}


def _client(session_factory, settings, ledger=None):
    container = ServiceContainer.from_parts(
        session_factory=session_factory,
        ledger=ledger or DevLocalLedgerClient(),
        locks=LocalRequestLocks(),
        settings=settings,
    )
    return TestClient(create_app(container)), container


@pytest.fixture
def api(session_factory, test_settings):
    client, container = _client(session_factory, test_settings)
    with client:
        yield client, container


@pytest.fixture
def keys(actors):
    return {name: {"x-api-key": key} for name, (_, key) in actors.items()}


def _create(client, keys):
    response = client.post("/v1/requests", json=CREATE_BODY, headers=keys["producer"])
    assert response.status_code == 201, response.text
    return response.json()


class TestAuthentication:
    """API key handling."""

    def test_missing_api_key(self, api):
        client, _ = api
        response = client.get("/v1/requests")
        assert response.status_code == 401

    def test_invalid_api_key(self, api, actors):
        client, _ = api
        response = client.get("/v1/requests", headers={"x-api-key": "cc_not_a_real_key"})
        assert response.status_code == 401

    def test_correlation_id_echoed(self, api, keys):
        client, _ = api
        response = client.get("/v1/requests", headers={**keys["producer"], "x-correlation-id": "corr-1"})
        assert response.headers["x-correlation-id"] == "corr-1"

    def test_unsafe_correlation_id_replaced(self, api, keys):
        client, _ = api
        response = client.get(
            "/v1/requests", headers={**keys["producer"], "x-correlation-id": "bad id\"}"}
        )
        assert response.headers["x-correlation-id"] != "bad id\"}"
        assert len(response.headers["x-correlation-id"]) == 36


class TestLifecycleOverHttp:
    """End-to-end lifecycle through the API."""

    def test_full_scenario(self, api, keys):
        client, container = api
        created = _create(client, keys)
        request_id = created["id"]

        assert created["status"] == "pending"
        assert created["ledger_request_id"] is not None
        assert created["journal"]["creator"]["initiated"].startswith("0x")
        assert created["media"][0]["hash"] == "QmBeans"

        queue = client.get("/v1/requests/inspection", headers=keys["inspector"]).json()
        assert [r["id"] for r in queue] == [request_id]

        response = client.post(f"/v1/requests/{request_id}/in-progress", headers=keys["inspector"])
        assert response.json()["status"] == "in_progress"

        response = client.post(
            f"/v1/requests/{request_id}/inspect", json={"approved": True}, headers=keys["inspector"]
        )
        assert response.json()["status"] == "approved"

        queue = client.get("/v1/requests/certification", headers=keys["certifier"]).json()
        assert [r["id"] for r in queue] == [request_id]

        response = client.post(f"/v1/requests/{request_id}/certify", headers=keys["certifier"])
        certified = response.json()
        assert certified["status"] == "certified"
        assert all(
            certified["journal"][role][action]
            for role, action in [
                ("creator", "initiated"),
                ("inspector", "in_progress"),
                ("inspector", "approved"),
                ("certifier", "certified"),
            ]
        )

        response = client.post(f"/v1/requests/{request_id}/revert", headers=keys["producer"])
        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "illegal_transition"
        assert body["current_status"] == "certified"
        assert body["action"] == "revert"

        own = client.get("/v1/requests", headers=keys["producer"]).json()
        assert own[0]["status"] == "certified"
        assert len(container.ledger.transactions) == 4

    def test_rejection_then_revert(self, api, keys):
        client, _ = api
        request_id = _create(client, keys)["id"]

        response = client.post(
            f"/v1/requests/{request_id}/inspect", json={"approved": False}, headers=keys["inspector"]
        )
        assert response.json()["status"] == "rejected"

        response = client.post(f"/v1/requests/{request_id}/revert", headers=keys["producer"])
        assert response.status_code == 200
        assert response.json()["status"] == "reverted"


class TestErrorMapping:
    """Lifecycle errors reach clients with the right status codes."""

    def test_inspector_certify_is_forbidden(self, api, keys):
        client, _ = api
        request_id = _create(client, keys)["id"]

        response = client.post(f"/v1/requests/{request_id}/certify", headers=keys["inspector"])
        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "forbidden"
        assert body["current_status"] is None

    def test_producer_cannot_create_as_inspector(self, api, keys):
        client, _ = api
        response = client.post("/v1/requests", json=CREATE_BODY, headers=keys["inspector"])
        assert response.status_code == 403

    def test_queue_role_checks(self, api, keys):
        client, _ = api
        assert client.get("/v1/requests/inspection", headers=keys["producer"]).status_code == 403
        assert client.get("/v1/requests/certification", headers=keys["inspector"]).status_code == 403
        assert client.get("/v1/requests", headers=keys["certifier"]).status_code == 403

    def test_unknown_request(self, api, keys):
        client, _ = api
        response = client.get(
            "/v1/requests/5b0a3d1e-2f8e-4c43-9d1a-3a4bfb1c2d3e", headers=keys["inspector"]
        )
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_busy_request_is_conflict(self, api, keys):
        client, container = api
        request_id = _create(client, keys)["id"]
        container.locks._held.add(request_id)

        response = client.post(
            f"/v1/requests/{request_id}/inspect", json={"approved": True}, headers=keys["inspector"]
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    def test_ledger_failure_is_bad_gateway(self, session_factory, test_settings, keys, failing_ledger):
        client, container = _client(
            session_factory, test_settings, ledger=failing_ledger(fail_on={"createRequest"})
        )
        with client:
            response = client.post("/v1/requests", json=CREATE_BODY, headers=keys["producer"])
            assert response.status_code == 502
            assert response.json()["error"] == "ledger_write_failed"
            assert client.get("/v1/requests", headers=keys["producer"]).json() == []

    def test_invalid_body(self, api, keys):
        client, _ = api
        body = {**CREATE_BODY, "media": [{"type": "audio", "url": "x", "hash": "y"}]}
        response = client.post("/v1/requests", json=body, headers=keys["producer"])
        assert response.status_code == 422
