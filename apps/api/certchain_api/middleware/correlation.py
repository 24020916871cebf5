"""Correlation ID middleware and log filter."""

import logging
import re
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

CORRELATION_HEADER = "x-correlation-id"

# Client-supplied ids end up in logs and incident rows
_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def current_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


class CorrelationIdFilter(logging.Filter):
    """Stamp every log record with the current request's correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = correlation_id_var.get() or "-"
        return True


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Accept or mint a correlation id per request and echo it back."""

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(CORRELATION_HEADER)
        correlation_id = incoming if incoming and _VALID_ID.match(incoming) else str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)
        try:
            response: Response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
