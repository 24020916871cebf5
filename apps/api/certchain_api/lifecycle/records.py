"""Plain records exchanged between the coordinator and its collaborators."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from certchain_api.lifecycle.journal import TransactionJournal
from certchain_api.lifecycle.states import RequestStatus, Role


@dataclass(frozen=True)
class ActorRef:
    """The authenticated actor performing an operation."""

    id: str
    role: Role


@dataclass(frozen=True)
class MediaInput:
    type: str  # image, video
    url: str
    hash: str


@dataclass(frozen=True)
class CheckpointInput:
    checkpoint_id: int
    answer: str
    media_url: Optional[str] = None


@dataclass(frozen=True)
class NewRequest:
    """Fields for allocating a pending request."""

    product_name: str
    description: str
    creator_id: str
    media: list[MediaInput] = field(default_factory=list)
    checkpoints: list[CheckpointInput] = field(default_factory=list)

    @property
    def media_hashes(self) -> list[str]:
        return [m.hash for m in self.media]


@dataclass(frozen=True)
class MediaRecord:
    id: str
    type: str
    url: str
    hash: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class CheckpointRecord:
    id: int
    checkpoint_id: int
    answer: str
    media_url: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class CertificationRecord:
    """Snapshot of a certification request as stored."""

    id: str
    ledger_request_id: Optional[int]
    product_name: str
    description: str
    status: RequestStatus
    creator_id: str
    inspector_id: Optional[str]
    certifier_id: Optional[str]
    journal: TransactionJournal
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    media: list[MediaRecord] = field(default_factory=list)
    checkpoints: list[CheckpointRecord] = field(default_factory=list)

    @property
    def is_provisional(self) -> bool:
        """Allocated but not yet confirmed on the ledger."""
        return self.ledger_request_id is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ledger_request_id": str(self.ledger_request_id) if self.ledger_request_id is not None else None,
            "product_name": self.product_name,
            "description": self.description,
            "status": self.status.value,
            "creator_id": self.creator_id,
            "inspector_id": self.inspector_id,
            "certifier_id": self.certifier_id,
            "journal": self.journal.to_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "media": [
                {"id": m.id, "type": m.type, "url": m.url, "hash": m.hash}
                for m in self.media
            ],
            "checkpoints": [
                {
                    "id": c.id,
                    "checkpoint_id": c.checkpoint_id,
                    "answer": c.answer,
                    "media_url": c.media_url,
                }
                for c in self.checkpoints
            ],
        }
