"""Lifecycle error taxonomy.

Every error carries the request id, the attempted action and the status the
request was in, so the caller can explain a rejection. ``to_dict`` is what
reaches clients; it never includes actor identities.
"""

from typing import Optional


class LifecycleError(Exception):
    """Base class for coordinator errors."""

    code = "lifecycle_error"

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        action: Optional[str] = None,
        current_status: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.action = action
        self.current_status = current_status

    def to_dict(self) -> dict:
        """Client-safe representation."""
        return {
            "error": self.code,
            "detail": self.message,
            "request_id": self.request_id,
            "action": self.action,
            "current_status": self.current_status,
        }

    def log_extra(self) -> dict:
        """Fields for structured logging."""
        return {
            "error_code": self.code,
            "request_id": self.request_id,
            "action": self.action,
            "current_status": self.current_status,
        }


class NotFoundError(LifecycleError):
    """Unknown request identifier."""

    code = "not_found"

    def to_dict(self) -> dict:
        # Status of an unknown request is meaningless
        data = super().to_dict()
        data["current_status"] = None
        return data


class ForbiddenError(LifecycleError):
    """Actor's role is not permitted to perform the action."""

    code = "forbidden"

    def to_dict(self) -> dict:
        # Do not reveal workflow state to an unauthorized actor
        data = super().to_dict()
        data["current_status"] = None
        return data


class IllegalTransitionError(LifecycleError):
    """Action is not valid for the request's current status."""

    code = "illegal_transition"


class ConflictError(LifecycleError):
    """Concurrent write to the same request detected."""

    code = "conflict"


class LedgerWriteError(LifecycleError):
    """The ledger call failed, timed out or was cancelled."""

    code = "ledger_write_failed"

    def __init__(self, message: str, cause: Optional[BaseException] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.cause = cause


class ReconciliationError(LifecycleError):
    """Ledger confirmed an action the request store could not record.

    Fatal: the two systems of record have diverged and need manual repair.
    """

    code = "reconciliation_required"

    def __init__(
        self,
        message: str,
        tx_ref: Optional[str] = None,
        cause: Optional[BaseException] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.tx_ref = tx_ref
        self.cause = cause

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["tx_ref"] = self.tx_ref
        return data
