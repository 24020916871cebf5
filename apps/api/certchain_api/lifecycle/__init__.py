"""Certification request lifecycle: state machine, journal and coordinator."""

from certchain_api.lifecycle.errors import (
    ConflictError,
    ForbiddenError,
    IllegalTransitionError,
    LedgerWriteError,
    LifecycleError,
    NotFoundError,
    ReconciliationError,
)
from certchain_api.lifecycle.states import Action, RequestStatus, Role

__all__ = [
    "Action",
    "RequestStatus",
    "Role",
    "LifecycleError",
    "NotFoundError",
    "ForbiddenError",
    "IllegalTransitionError",
    "LedgerWriteError",
    "ConflictError",
    "ReconciliationError",
]
