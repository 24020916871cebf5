"""Authentication middleware resolving the acting user from an API key."""

import logging

from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from certchain_api.auth.api_key import get_actor_by_api_key
from certchain_api.lifecycle.records import ActorRef
from certchain_api.lifecycle.states import Role

logger = logging.getLogger(__name__)

PUBLIC_PATHS = {"/health", "/ready", "/metrics", "/docs", "/openapi.json", "/"}


class AuthMiddleware(BaseHTTPMiddleware):
    """Extract and validate the actor from the x-api-key header."""

    async def dispatch(self, request: Request, call_next):
        """Process request with actor extraction."""
        if request.url.path in PUBLIC_PATHS or request.url.path.startswith("/metrics"):
            return await call_next(request)

        api_key = request.headers.get("x-api-key")
        if not api_key:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Missing API key. Provide x-api-key header."},
            )

        with request.app.state.container.session_factory() as db:
            actor = get_actor_by_api_key(db, api_key)
            if not actor:
                return JSONResponse(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    content={"detail": "Invalid or inactive API key."},
                )
            request.state.actor = ActorRef(id=actor.id, role=Role(actor.role))

        logger.info(
            "Authenticated request",
            extra={
                "actor_id": request.state.actor.id,
                "correlation_id": getattr(request.state, "correlation_id", None),
                "path": request.url.path,
            },
        )
        return await call_next(request)


def get_actor(request: Request) -> ActorRef:
    """Dependency returning the authenticated actor."""
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return actor
