"""Request lifecycle coordinator.

Couples each status change to a ledger transaction. The ledger write always
comes first and the store write second, as one compare-and-swap that moves
the status and appends the journal entry together:

* ledger fails or is cancelled -> no store mutation (creation additionally
  deletes its provisional record, and flags an incident when the create
  was broadcast but never confirmed);
* ledger confirms, store write fails -> ``ReconciliationError``, incident
  recorded, nothing retried.

Ledger calls are never retried here; a repeated call is a second,
distinguishable ledger transaction.
"""

import asyncio
import logging
import time
from typing import Iterable, Optional

from certchain_api.ledger.client import LedgerClient, LedgerReceipt
from certchain_api.lifecycle.errors import (
    ForbiddenError,
    LedgerWriteError,
    ReconciliationError,
)
from certchain_api.lifecycle.identifiers import IdentifierMapper
from certchain_api.lifecycle.journal import JournalEntry
from certchain_api.lifecycle.locks import RequestLocks
from certchain_api.lifecycle.reconciliation import ReconciliationAlerter
from certchain_api.lifecycle.records import (
    ActorRef,
    CertificationRecord,
    CheckpointInput,
    MediaInput,
    NewRequest,
)
from certchain_api.lifecycle.states import Action, RequestStatus, Role, StatusStateMachine
from certchain_api.store.repository import RequestStore
from certchain_api.utils.metrics import (
    compensating_deletes,
    ledger_write_duration,
    ledger_writes,
    transitions_completed,
)

logger = logging.getLogger(__name__)

CREATE_ACTION = "create"

# Action -> LedgerClient method
_LEDGER_METHODS = {
    Action.MARK_IN_PROGRESS: "mark_in_progress",
    Action.APPROVE: "approve",
    Action.REJECT: "reject",
    Action.CERTIFY: "certify",
    Action.REVERT: "revert",
}


class LifecycleCoordinator:
    """Orchestrates validation, ledger writes and store updates."""

    def __init__(
        self,
        store: RequestStore,
        ledger: LedgerClient,
        mapper: IdentifierMapper,
        locks: RequestLocks,
        alerter: Optional[ReconciliationAlerter] = None,
    ):
        """Initialize coordinator with its collaborators."""
        self.store = store
        self.ledger = ledger
        self.mapper = mapper
        self.locks = locks
        self.alerter = alerter

    async def create(
        self,
        actor: ActorRef,
        product_name: str,
        description: str,
        media: Iterable[MediaInput] = (),
        checkpoints: Iterable[CheckpointInput] = (),
        correlation_id: Optional[str] = None,
    ) -> CertificationRecord:
        """Allocate a request, record it on the ledger, then confirm it locally.

        The store record stays provisional (invisible to queries) until the
        ledger confirms; if the ledger write fails it is deleted again.
        """
        if Role(actor.role) != Role.PRODUCER:
            raise ForbiddenError("Only producers can create certification requests", action=CREATE_ACTION)

        new_request = NewRequest(
            product_name=product_name,
            description=description,
            creator_id=actor.id,
            media=list(media),
            checkpoints=list(checkpoints),
        )
        store_id = self.store.create_pending(new_request)
        ledger_id = self.mapper.to_ledger_id(store_id)
        log_extra = {"request_id": store_id, "action": CREATE_ACTION, "correlation_id": correlation_id}

        try:
            receipt = await self._submit(
                CREATE_ACTION,
                store_id,
                RequestStatus.PENDING,
                self.ledger.create,
                ledger_id,
                product_name,
                description,
                new_request.media_hashes,
                correlation_id=correlation_id,
            )
        except LedgerWriteError as e:
            self._compensate_create(store_id, log_extra)
            await self._alert_unconfirmed_create(e, ledger_id, correlation_id)
            raise
        except asyncio.CancelledError:
            self._compensate_create(store_id, log_extra)
            raise

        record = await self._apply(
            store_id=store_id,
            ledger_id=ledger_id,
            action=CREATE_ACTION,
            expected_status=RequestStatus.PENDING,
            new_status=RequestStatus.PENDING,
            entry=JournalEntry("creator", "initiated", receipt.tx_ref),
            assignments={"ledger_request_id": ledger_id},
            expected_version=None,
            correlation_id=correlation_id,
        )
        transitions_completed.labels(action=CREATE_ACTION).inc()
        logger.info("Certification request created", extra={**log_extra, "tx_ref": receipt.tx_ref})
        return record

    async def transition(
        self,
        actor: ActorRef,
        request_id: str,
        action: Action,
        correlation_id: Optional[str] = None,
    ) -> CertificationRecord:
        """Validate, write to the ledger, then advance status and journal atomically."""
        action = Action(action)
        # Role first: an unauthorized actor learns nothing about the request
        StatusStateMachine.authorize(action, actor.role, request_id=request_id)

        async with self.locks.hold(request_id, action.value):
            record = self.store.get_by_id(request_id, include_provisional=False)
            rule = StatusStateMachine.validate(
                record.status,
                action,
                actor.role,
                actor_is_creator=actor.id == record.creator_id,
                request_id=request_id,
            )
            ledger_id = self.mapper.to_ledger_id(record.id)

            receipt = await self._submit(
                action.value,
                request_id,
                record.status,
                getattr(self.ledger, _LEDGER_METHODS[action]),
                ledger_id,
                correlation_id=correlation_id,
            )

            updated = await self._apply(
                store_id=request_id,
                ledger_id=ledger_id,
                action=action.value,
                expected_status=record.status,
                new_status=rule.target,
                entry=JournalEntry(rule.journal_role, rule.journal_action, receipt.tx_ref),
                assignments={rule.assigns: actor.id} if rule.assigns else None,
                expected_version=record.version,
                correlation_id=correlation_id,
            )

        transitions_completed.labels(action=action.value).inc()
        logger.info(
            f"Request {record.status.value} -> {updated.status.value}",
            extra={
                "request_id": request_id,
                "action": action.value,
                "tx_ref": receipt.tx_ref,
                "correlation_id": correlation_id,
            },
        )
        return updated

    async def revert(
        self, actor: ActorRef, request_id: str, correlation_id: Optional[str] = None
    ) -> CertificationRecord:
        """Withdraw a request; creator only, never once certified."""
        return await self.transition(actor, request_id, Action.REVERT, correlation_id=correlation_id)

    def get(self, request_id: str) -> CertificationRecord:
        """Load a ledger-confirmed request."""
        return self.store.get_by_id(request_id, include_provisional=False)

    async def _submit(
        self,
        action: str,
        request_id: str,
        current_status: RequestStatus,
        call,
        *args,
        correlation_id: Optional[str] = None,
    ) -> LedgerReceipt:
        log_extra = {"request_id": request_id, "action": action, "correlation_id": correlation_id}
        started = time.monotonic()
        try:
            receipt = await call(*args)
        except asyncio.CancelledError:
            ledger_writes.labels(action=action, outcome="cancelled").inc()
            logger.warning("Ledger write cancelled before confirmation", extra=log_extra)
            raise
        except Exception as e:
            ledger_writes.labels(action=action, outcome="failed").inc()
            logger.error(
                f"Ledger write failed: {e}",
                extra={**log_extra, "tx_ref": getattr(e, "tx_ref", None)},
            )
            raise LedgerWriteError(
                f"Ledger write failed: {e}",
                cause=e,
                request_id=request_id,
                action=action,
                current_status=RequestStatus(current_status).value,
            ) from e
        finally:
            ledger_write_duration.labels(action=action).observe(time.monotonic() - started)

        ledger_writes.labels(action=action, outcome="confirmed").inc()
        return receipt

    async def _apply(
        self,
        store_id: str,
        ledger_id: int,
        action: str,
        expected_status: RequestStatus,
        new_status: RequestStatus,
        entry: JournalEntry,
        assignments: Optional[dict],
        expected_version: Optional[int],
        correlation_id: Optional[str],
    ) -> CertificationRecord:
        try:
            return self.store.atomic_update(
                store_id,
                expected_status=expected_status,
                new_status=new_status,
                journal_delta=entry,
                assignments=assignments,
                expected_version=expected_version,
            )
        except Exception as e:
            error = ReconciliationError(
                f"Ledger recorded {action} but the store update failed: {e}",
                tx_ref=entry.tx_ref,
                cause=e,
                request_id=store_id,
                action=action,
                current_status=RequestStatus(expected_status).value,
            )
            await self._alert(error, ledger_id, correlation_id)
            raise error from e

    async def _alert(self, error: ReconciliationError, ledger_id: int, correlation_id: Optional[str]) -> None:
        if self.alerter is None:
            logger.critical(
                f"Manual reconciliation required: {error.message}",
                extra={**error.log_extra(), "tx_ref": error.tx_ref},
            )
            return
        try:
            await self.alerter.report(error, ledger_request_id=ledger_id, correlation_id=correlation_id)
        except Exception:
            # The caller must still see the ReconciliationError
            logger.exception("Reconciliation alerting failed", extra=error.log_extra())

    async def _alert_unconfirmed_create(
        self, failure: LedgerWriteError, ledger_id: int, correlation_id: Optional[str]
    ) -> None:
        """Flag a create that was broadcast but not confirmed.

        The provisional record is already gone; if the transaction confirms
        late, the ledger holds a request with no store record.
        """
        tx_ref = getattr(failure.cause, "tx_ref", None)
        if not tx_ref:
            return
        error = ReconciliationError(
            f"Create broadcast as {tx_ref} was not confirmed and its provisional request was deleted",
            tx_ref=tx_ref,
            cause=failure.cause,
            request_id=failure.request_id,
            action=CREATE_ACTION,
            current_status=RequestStatus.PENDING.value,
        )
        await self._alert(error, ledger_id, correlation_id)

    def _compensate_create(self, store_id: str, log_extra: dict) -> None:
        try:
            self.store.delete_by_id(store_id)
        except Exception:
            # Left provisional, so still invisible to queries
            logger.exception("Compensating delete failed", extra=log_extra)
            return
        compensating_deletes.inc()
        logger.info("Deleted provisional request after failed ledger write", extra=log_extra)
