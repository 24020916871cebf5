"""Tests for the admin CLI."""

import asyncio

import pytest
from click.testing import CliRunner

from certchain_api.auth.api_key import get_actor_by_api_key
from certchain_api.cli import cli
from certchain_api.db.session import build_engine, build_session_factory
from certchain_api.lifecycle.errors import ReconciliationError
from certchain_api.lifecycle.reconciliation import ReconciliationAlerter
from certchain_api.settings import Settings, get_settings


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.delenv("RECONCILIATION_ALERT_URL", raising=False)
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


def test_init_db_and_create_actor(db_url):
    runner = CliRunner()
    assert runner.invoke(cli, ["init-db"]).exit_code == 0

    result = runner.invoke(
        cli, ["create-actor", "--username", "ana", "--email", "ana@example.com", "--role", "inspector"]
    )
    assert result.exit_code == 0, result.output
    api_key = result.output.strip().splitlines()[-1].split(": ")[-1]

    session_factory = build_session_factory(build_engine(Settings(database_url=db_url)))
    with session_factory() as db:
        actor = get_actor_by_api_key(db, api_key)
    assert actor is not None
    assert actor.role == "inspector"


def test_create_actor_rejects_unknown_role(db_url):
    runner = CliRunner()
    runner.invoke(cli, ["init-db"])
    result = runner.invoke(
        cli, ["create-actor", "--username", "x", "--email", "x@example.com", "--role", "auditor"]
    )
    assert result.exit_code != 0


def test_incidents_listing_and_resolution(db_url):
    runner = CliRunner()
    runner.invoke(cli, ["init-db"])
    assert "No open reconciliation incidents" in runner.invoke(cli, ["incidents"]).output

    alerter = ReconciliationAlerter(
        build_session_factory(build_engine(Settings(database_url=db_url))),
        Settings(database_url=db_url, reconciliation_alert_url=None),
    )
    incident_id = asyncio.run(
        alerter.report(
            ReconciliationError(
                "store down",
                tx_ref="0xfeed",
                request_id="8f1c6a3e-5b7d-4f2a-9c1e-2d3b4a5c6d7e",
                action="certify",
            )
        )
    )

    output = runner.invoke(cli, ["incidents"]).output
    assert f"#{incident_id}" in output
    assert "tx=0xfeed" in output

    result = runner.invoke(cli, ["resolve-incident", str(incident_id)])
    assert result.exit_code == 0
    assert "No open reconciliation incidents" in runner.invoke(cli, ["incidents"]).output
    assert runner.invoke(cli, ["resolve-incident", str(incident_id + 1)]).exit_code != 0


def test_reset_db_requires_confirmation(db_url):
    runner = CliRunner()
    runner.invoke(cli, ["init-db"])
    assert runner.invoke(cli, ["reset-db"], input="n\n").exit_code != 0
    assert runner.invoke(cli, ["reset-db", "--yes"]).exit_code == 0
