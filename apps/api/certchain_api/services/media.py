"""Media and checkpoint answers attached to a request.

Both are immutable once written, except the media URL of a checkpoint
answer, which the creator may set after uploading the file.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from certchain_api.lifecycle.errors import ForbiddenError, NotFoundError
from certchain_api.lifecycle.records import ActorRef, CheckpointRecord, MediaRecord
from certchain_api.models import CertificationRequest, CheckpointAnswer, Media

logger = logging.getLogger(__name__)


class MediaService:
    """Read access to media and the checkpoint media-URL update."""

    def __init__(self, session_factory: sessionmaker):
        """Initialize service with a session factory."""
        self.session_factory = session_factory

    def _confirmed_request(self, db: Session, request_id: str) -> CertificationRequest:
        request = (
            db.query(CertificationRequest)
            .filter(
                CertificationRequest.id == request_id,
                CertificationRequest.ledger_request_id.isnot(None),
            )
            .first()
        )
        if request is None:
            raise NotFoundError(f"Request {request_id} not found", request_id=request_id)
        return request

    def list_media(self, request_id: str) -> list[MediaRecord]:
        with self.session_factory() as db:
            self._confirmed_request(db, request_id)
            rows = (
                db.query(Media)
                .filter(Media.request_id == request_id)
                .order_by(Media.created_at.asc())
                .all()
            )
            return [MediaRecord(id=m.id, type=m.type, url=m.url, hash=m.hash, created_at=m.created_at) for m in rows]

    def list_checkpoints(self, request_id: str) -> list[CheckpointRecord]:
        with self.session_factory() as db:
            self._confirmed_request(db, request_id)
            rows = (
                db.query(CheckpointAnswer)
                .filter(CheckpointAnswer.request_id == request_id)
                .order_by(CheckpointAnswer.id.asc())
                .all()
            )
            return [
                CheckpointRecord(
                    id=c.id,
                    checkpoint_id=c.checkpoint_id,
                    answer=c.answer,
                    media_url=c.media_url,
                    created_at=c.created_at,
                )
                for c in rows
            ]

    def attach_checkpoint_media(
        self, actor: ActorRef, request_id: str, answer_id: int, media_url: Optional[str]
    ) -> CheckpointRecord:
        """Set the media URL on one of the creator's checkpoint answers."""
        with self.session_factory() as db:
            request = self._confirmed_request(db, request_id)
            if request.creator_id != actor.id:
                raise ForbiddenError(
                    "Only the request's creator can attach checkpoint media",
                    request_id=request_id,
                    action="attach-checkpoint-media",
                )
            answer = (
                db.query(CheckpointAnswer)
                .filter(
                    CheckpointAnswer.request_id == request_id,
                    CheckpointAnswer.id == answer_id,
                )
                .first()
            )
            if answer is None:
                raise NotFoundError(
                    f"Checkpoint answer {answer_id} not found",
                    request_id=request_id,
                    action="attach-checkpoint-media",
                )
            answer.media_url = media_url
            db.commit()
            logger.info(
                "Checkpoint media attached",
                extra={"request_id": request_id, "checkpoint_answer_id": answer_id},
            )
            return CheckpointRecord(
                id=answer.id,
                checkpoint_id=answer.checkpoint_id,
                answer=answer.answer,
                media_url=answer.media_url,
                created_at=answer.created_at,
            )
