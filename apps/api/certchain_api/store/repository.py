"""Relational request store.

Every operation runs in its own short session. ``atomic_update`` is the only
way status and journal change: it re-checks the expected status and the row
version inside the UPDATE, so a lost race surfaces as ``ConflictError``
instead of a silent overwrite.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from certchain_api.lifecycle.errors import ConflictError, NotFoundError
from certchain_api.lifecycle.journal import JournalEntry, TransactionJournal
from certchain_api.lifecycle.records import (
    CertificationRecord,
    CheckpointRecord,
    MediaRecord,
    NewRequest,
)
from certchain_api.lifecycle.states import RequestStatus
from certchain_api.models import CertificationRequest, CheckpointAnswer, Media

logger = logging.getLogger(__name__)

ASSIGNABLE_FIELDS = frozenset({"ledger_request_id", "inspector_id", "certifier_id"})


class RequestStore(ABC):
    """Persistence for certification requests."""

    @abstractmethod
    def create_pending(self, new_request: NewRequest) -> str:
        """Allocate a pending request with an empty journal; return its id."""

    @abstractmethod
    def delete_by_id(self, store_id: str) -> None:
        """Remove a request that never reached the ledger (compensation only)."""

    @abstractmethod
    def get_by_id(self, store_id: str, include_provisional: bool = True) -> CertificationRecord:
        """Load a request or raise ``NotFoundError``."""

    @abstractmethod
    def atomic_update(
        self,
        store_id: str,
        expected_status: RequestStatus,
        new_status: RequestStatus,
        journal_delta: JournalEntry,
        assignments: Optional[dict] = None,
        expected_version: Optional[int] = None,
    ) -> CertificationRecord:
        """Compare-and-swap status, append one journal entry, set assignments."""

    @abstractmethod
    def list_by_creator(self, creator_id: str) -> list[CertificationRecord]:
        """Confirmed requests created by ``creator_id``."""

    @abstractmethod
    def list_by_status(self, statuses: Iterable[RequestStatus]) -> list[CertificationRecord]:
        """Confirmed requests in any of ``statuses``."""


def _to_record(row: CertificationRequest) -> CertificationRecord:
    return CertificationRecord(
        id=row.id,
        ledger_request_id=int(row.ledger_request_id) if row.ledger_request_id is not None else None,
        product_name=row.product_name,
        description=row.description,
        status=RequestStatus(row.status),
        creator_id=row.creator_id,
        inspector_id=row.inspector_id,
        certifier_id=row.certifier_id,
        journal=TransactionJournal.from_dict(row.journal),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
        media=[
            MediaRecord(id=m.id, type=m.type, url=m.url, hash=m.hash, created_at=m.created_at)
            for m in row.media
        ],
        checkpoints=[
            CheckpointRecord(
                id=c.id,
                checkpoint_id=c.checkpoint_id,
                answer=c.answer,
                media_url=c.media_url,
                created_at=c.created_at,
            )
            for c in sorted(row.checkpoint_answers, key=lambda c: c.id)
        ],
    )


class SqlAlchemyRequestStore(RequestStore):
    """Request store backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker):
        """Initialize store with a session factory."""
        self._session_factory = session_factory

    def _load(self, db: Session, store_id: str) -> Optional[CertificationRequest]:
        return db.query(CertificationRequest).filter(CertificationRequest.id == store_id).first()

    def create_pending(self, new_request: NewRequest) -> str:
        store_id = str(uuid.uuid4())
        with self._session_factory() as db:
            row = CertificationRequest(
                id=store_id,
                product_name=new_request.product_name,
                description=new_request.description,
                status=RequestStatus.PENDING.value,
                creator_id=new_request.creator_id,
                journal=TransactionJournal().to_dict(),
                version=1,
            )
            row.media = [
                Media(id=str(uuid.uuid4()), type=m.type, url=m.url, hash=m.hash)
                for m in new_request.media
            ]
            row.checkpoint_answers = [
                CheckpointAnswer(
                    checkpoint_id=cp.checkpoint_id,
                    answer=cp.answer,
                    media_url=cp.media_url,
                )
                for cp in new_request.checkpoints
            ]
            db.add(row)
            db.commit()
        logger.debug("Allocated pending request", extra={"request_id": store_id})
        return store_id

    def delete_by_id(self, store_id: str) -> None:
        with self._session_factory() as db:
            row = self._load(db, store_id)
            if row is None:
                return
            if row.ledger_request_id is not None:
                raise ConflictError(
                    "Refusing to delete a request recorded on the ledger",
                    request_id=store_id,
                    current_status=row.status,
                )
            db.delete(row)
            db.commit()

    def get_by_id(self, store_id: str, include_provisional: bool = True) -> CertificationRecord:
        with self._session_factory() as db:
            row = self._load(db, store_id)
            if row is None or (row.ledger_request_id is None and not include_provisional):
                raise NotFoundError(f"Request {store_id} not found", request_id=store_id)
            return _to_record(row)

    def atomic_update(
        self,
        store_id: str,
        expected_status: RequestStatus,
        new_status: RequestStatus,
        journal_delta: JournalEntry,
        assignments: Optional[dict] = None,
        expected_version: Optional[int] = None,
    ) -> CertificationRecord:
        assignments = dict(assignments or {})
        unknown = set(assignments) - ASSIGNABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot assign {sorted(unknown)} through atomic_update")
        # Ledger id and creation entry are written together or not at all
        sets_ledger_id = "ledger_request_id" in assignments
        is_creation = (journal_delta.role, journal_delta.action) == ("creator", "initiated")
        if sets_ledger_id != is_creation:
            raise ValueError("ledger_request_id is set only with the creator.initiated entry")

        with self._session_factory() as db:
            row = self._load(db, store_id)
            if row is None:
                raise NotFoundError(f"Request {store_id} not found", request_id=store_id)
            if row.status != RequestStatus(expected_status).value or (
                expected_version is not None and row.version != expected_version
            ):
                raise ConflictError(
                    "Request changed concurrently",
                    request_id=store_id,
                    action=journal_delta.action,
                    current_status=row.status,
                )

            journal = TransactionJournal.from_dict(row.journal).apply(journal_delta, request_id=store_id)
            values = {
                "status": RequestStatus(new_status).value,
                "journal": journal.to_dict(),
                "version": row.version + 1,
                "updated_at": datetime.utcnow(),
            }
            if sets_ledger_id:
                assignments["ledger_request_id"] = str(assignments["ledger_request_id"])
            values.update(assignments)

            result = db.execute(
                update(CertificationRequest)
                .where(
                    CertificationRequest.id == store_id,
                    CertificationRequest.status == row.status,
                    CertificationRequest.version == row.version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                raise ConflictError(
                    "Request changed concurrently",
                    request_id=store_id,
                    action=journal_delta.action,
                    current_status=row.status,
                )
            db.commit()
            db.expire_all()
            return _to_record(self._load(db, store_id))

    def list_by_creator(self, creator_id: str) -> list[CertificationRecord]:
        with self._session_factory() as db:
            rows = (
                db.query(CertificationRequest)
                .filter(
                    CertificationRequest.creator_id == creator_id,
                    CertificationRequest.ledger_request_id.isnot(None),
                )
                .order_by(CertificationRequest.created_at.desc())
                .all()
            )
            return [_to_record(row) for row in rows]

    def list_by_status(self, statuses: Iterable[RequestStatus]) -> list[CertificationRecord]:
        values = [RequestStatus(s).value for s in statuses]
        with self._session_factory() as db:
            rows = (
                db.query(CertificationRequest)
                .filter(
                    CertificationRequest.status.in_(values),
                    CertificationRequest.ledger_request_id.isnot(None),
                )
                .order_by(CertificationRequest.created_at.asc())
                .all()
            )
            return [_to_record(row) for row in rows]
