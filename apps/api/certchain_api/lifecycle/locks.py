"""Per-request mutual exclusion.

Acquisition never waits: a second action on a request that is already being
processed fails fast with ``ConflictError``.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import LockError

from certchain_api.lifecycle.errors import ConflictError
from certchain_api.settings import Settings, get_settings
from certchain_api.utils.metrics import lock_conflicts

logger = logging.getLogger(__name__)


def _busy(request_id: str, action: Optional[str]) -> ConflictError:
    lock_conflicts.inc()
    return ConflictError(
        "Another action on this request is in progress",
        request_id=request_id,
        action=action,
    )


class RequestLocks(ABC):
    """Serializes coordinator invocations per request id."""

    @abstractmethod
    def hold(self, request_id: str, action: Optional[str] = None):
        """Async context manager holding the lock for ``request_id``."""

    async def close(self) -> None:
        pass


class LocalRequestLocks(RequestLocks):
    """Locks for a single event loop in a single process."""

    def __init__(self):
        self._held: set[str] = set()

    @asynccontextmanager
    async def hold(self, request_id: str, action: Optional[str] = None):
        if request_id in self._held:
            raise _busy(request_id, action)
        self._held.add(request_id)
        try:
            yield
        finally:
            self._held.discard(request_id)


class RedisRequestLocks(RequestLocks):
    """Locks shared by every API process through Redis."""

    def __init__(self, client: aioredis.Redis, ttl_seconds: int, prefix: str = "certchain:request-lock:"):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    @asynccontextmanager
    async def hold(self, request_id: str, action: Optional[str] = None):
        lock = self.client.lock(f"{self.prefix}{request_id}", timeout=self.ttl_seconds)
        if not await lock.acquire(blocking=False):
            raise _busy(request_id, action)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # TTL ran out mid-action; the store's compare-and-swap still guards the write
                logger.warning(
                    "Request lock expired before release",
                    extra={"request_id": request_id, "action": action},
                )

    async def close(self) -> None:
        await self.client.aclose()


def build_request_locks(settings: Optional[Settings] = None) -> RequestLocks:
    """Build the configured lock backend."""
    settings = settings or get_settings()
    backend = settings.request_lock_backend.lower()
    if backend == "local":
        return LocalRequestLocks()
    if backend == "redis":
        return RedisRequestLocks(
            aioredis.from_url(settings.redis_url),
            ttl_seconds=settings.request_lock_ttl_seconds,
        )
    raise ValueError(f"Unknown request lock backend: {settings.request_lock_backend}")
