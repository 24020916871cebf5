"""Media and checkpoint answer endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from certchain_api.lifecycle.records import ActorRef
from certchain_api.middleware.auth import get_actor
from certchain_api.routes.schemas import CheckpointOut, MediaOut

router = APIRouter(prefix="/v1", tags=["media"])


class CheckpointMediaBody(BaseModel):
    """Attach (or clear) the media URL of a checkpoint answer."""

    media_url: Optional[str] = Field(None, max_length=1024)


@router.get("/requests/{request_id}/media", response_model=list[MediaOut])
async def list_media(request_id: str, request: Request, actor: ActorRef = Depends(get_actor)):
    """Media attached to a request."""
    media = request.app.state.container.media.list_media(request_id)
    return [{"id": m.id, "type": m.type, "url": m.url, "hash": m.hash} for m in media]


@router.get("/requests/{request_id}/checkpoints", response_model=list[CheckpointOut])
async def list_checkpoints(request_id: str, request: Request, actor: ActorRef = Depends(get_actor)):
    """Checkpoint answers of a request."""
    answers = request.app.state.container.media.list_checkpoints(request_id)
    return [
        {"id": c.id, "checkpoint_id": c.checkpoint_id, "answer": c.answer, "media_url": c.media_url}
        for c in answers
    ]


@router.patch("/requests/{request_id}/checkpoints/{answer_id}", response_model=CheckpointOut)
async def attach_checkpoint_media(
    request_id: str,
    answer_id: int,
    body: CheckpointMediaBody,
    request: Request,
    actor: ActorRef = Depends(get_actor),
):
    """Set the media URL of a checkpoint answer."""
    answer = request.app.state.container.media.attach_checkpoint_media(
        actor, request_id, answer_id, body.media_url
    )
    return {
        "id": answer.id,
        "checkpoint_id": answer.checkpoint_id,
        "answer": answer.answer,
        "media_url": answer.media_url,
    }
