"""Request/response models shared by the routers."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class MediaIn(BaseModel):
    """Reference to an already-stored media file."""

    type: Literal["image", "video"]
    url: str = Field(..., min_length=1, max_length=1024)
    hash: str = Field(..., min_length=1, max_length=255, description="Content hash recorded on the ledger")


class CheckpointIn(BaseModel):
    """Answer to an inspection checkpoint question."""

    checkpoint_id: int
    answer: str = Field(..., min_length=1, max_length=1024)
    media_url: Optional[str] = Field(None, max_length=1024)


class MediaOut(BaseModel):
    id: str
    type: str
    url: str
    hash: str


class CheckpointOut(BaseModel):
    id: int
    checkpoint_id: int
    answer: str
    media_url: Optional[str] = None


class RequestResponse(BaseModel):
    """Certification request as returned to clients."""

    id: str
    ledger_request_id: Optional[str] = None
    product_name: str
    description: str
    status: str
    creator_id: str
    inspector_id: Optional[str] = None
    certifier_id: Optional[str] = None
    journal: dict[str, dict[str, Optional[str]]]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    media: list[MediaOut] = Field(default_factory=list)
    checkpoints: list[CheckpointOut] = Field(default_factory=list)
