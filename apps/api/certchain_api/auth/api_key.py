"""API key digests and actor lookup."""

import hashlib
import hmac
import secrets
from typing import Optional

from sqlalchemy.orm import Session

from certchain_api.models import Actor
from certchain_api.settings import get_settings


def generate_api_key() -> str:
    """Generate a new raw API key (shown once, never stored)."""
    return f"cc_{secrets.token_urlsafe(32)}"


def compute_key_digest(raw_key: str) -> str:
    """Compute HMAC-SHA256 digest of API key."""
    secret = get_settings().secret_key.encode()
    return hmac.new(secret, raw_key.encode(), hashlib.sha256).hexdigest()


def get_actor_by_api_key(db: Session, api_key: str) -> Optional[Actor]:
    """Get active actor by API key digest."""
    if not api_key or len(api_key) < 8:
        return None
    digest = compute_key_digest(api_key)
    actor = (
        db.query(Actor)
        .filter(Actor.api_key_hash == digest, Actor.is_active == True)  # noqa: E712
        .first()
    )
    if actor and hmac.compare_digest(actor.api_key_hash, digest):
        return actor
    return None
