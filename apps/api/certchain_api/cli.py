"""CLI commands for CertChain API."""

import uuid

import click

from certchain_api.auth.api_key import compute_key_digest, generate_api_key
from certchain_api.db.base import Base
from certchain_api.db.session import build_engine, build_session_factory
from certchain_api.lifecycle.reconciliation import ReconciliationAlerter
from certchain_api.lifecycle.states import Role
from certchain_api.models import Actor
from certchain_api.settings import get_settings


def _session_factory():
    return build_session_factory(build_engine(get_settings()))


@click.group()
def cli():
    """CertChain API CLI."""
    pass


@cli.command("init-db")
def init_db():
    """Create all tables."""
    engine = build_engine(get_settings())
    Base.metadata.create_all(engine)
    click.echo("✓ Tables created.")


@cli.command("reset-db")
@click.confirmation_option(prompt="Drop and recreate every table?")
def reset_db():
    """Drop and recreate all tables."""
    engine = build_engine(get_settings())
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    click.echo("✓ Database reset.")


@cli.command("create-actor")
@click.option("--username", required=True)
@click.option("--email", required=True)
@click.option("--role", type=click.Choice([r.value for r in Role]), required=True)
def create_actor(username, email, role):
    """Create an actor and print its API key once."""
    api_key = generate_api_key()
    with _session_factory()() as db:
        actor = Actor(
            id=str(uuid.uuid4()),
            username=username,
            email=email,
            role=role,
            api_key_hash=compute_key_digest(api_key),
            is_active=True,
        )
        try:
            db.add(actor)
            db.commit()
        except Exception as e:
            db.rollback()
            raise click.ClickException(f"Error creating actor: {e}")
        click.echo(f"✓ Actor {actor.id} ({role}) created.")
    click.echo(f"API key (store it now, it is not kept): {api_key}")


@cli.command()
def incidents():
    """List unresolved reconciliation incidents."""
    alerter = ReconciliationAlerter(_session_factory())
    rows = alerter.list_open()
    if not rows:
        click.echo("No open reconciliation incidents.")
        return
    for row in rows:
        click.echo(
            f"#{row.id} {row.created_at.isoformat()} request={row.request_id} "
            f"action={row.action} tx={row.tx_ref}\n    {row.error}"
        )


@cli.command("resolve-incident")
@click.argument("incident_id", type=int)
def resolve_incident(incident_id):
    """Mark a reconciliation incident as resolved."""
    alerter = ReconciliationAlerter(_session_factory())
    if not alerter.resolve(incident_id):
        raise click.ClickException(f"Incident {incident_id} not found")
    click.echo(f"✓ Incident {incident_id} resolved.")


if __name__ == "__main__":
    cli()
