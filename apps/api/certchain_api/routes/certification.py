"""Certification request lifecycle endpoints."""

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from certchain_api.lifecycle.errors import ForbiddenError
from certchain_api.lifecycle.records import ActorRef, CheckpointInput, MediaInput
from certchain_api.lifecycle.states import Action, RequestStatus, Role
from certchain_api.middleware.auth import get_actor
from certchain_api.routes.schemas import CheckpointIn, MediaIn, RequestResponse

router = APIRouter(prefix="/v1", tags=["certification"])


class CreateRequestBody(BaseModel):
    """Create certification request."""

    product_name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    media: list[MediaIn] = Field(default_factory=list, max_length=10)
    checkpoints: list[CheckpointIn] = Field(default_factory=list)


class InspectBody(BaseModel):
    """Inspection outcome."""

    approved: bool


def _coordinator(request: Request):
    return request.app.state.container.coordinator


def _correlation_id(request: Request):
    return getattr(request.state, "correlation_id", None)


def _require_role(actor: ActorRef, role: Role, action: str) -> None:
    if actor.role != role:
        raise ForbiddenError(f"Only {role.value}s can {action}", action=action)


@router.post("/requests", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    body: CreateRequestBody,
    request: Request,
    actor: ActorRef = Depends(get_actor),
):
    """Create a certification request and record it on the ledger."""
    record = await _coordinator(request).create(
        actor,
        product_name=body.product_name,
        description=body.description,
        media=[MediaInput(type=m.type, url=m.url, hash=m.hash) for m in body.media],
        checkpoints=[
            CheckpointInput(checkpoint_id=c.checkpoint_id, answer=c.answer, media_url=c.media_url)
            for c in body.checkpoints
        ],
        correlation_id=_correlation_id(request),
    )
    return record.to_dict()


@router.get("/requests", response_model=list[RequestResponse])
async def list_own_requests(request: Request, actor: ActorRef = Depends(get_actor)):
    """Producer's own requests."""
    _require_role(actor, Role.PRODUCER, "list-own-requests")
    records = request.app.state.container.store.list_by_creator(actor.id)
    return [r.to_dict() for r in records]


@router.get("/requests/inspection", response_model=list[RequestResponse])
async def inspection_queue(request: Request, actor: ActorRef = Depends(get_actor)):
    """Requests awaiting inspection."""
    _require_role(actor, Role.INSPECTOR, "list-inspection-queue")
    records = request.app.state.container.store.list_by_status(
        [RequestStatus.PENDING, RequestStatus.IN_PROGRESS]
    )
    return [r.to_dict() for r in records]


@router.get("/requests/certification", response_model=list[RequestResponse])
async def certification_queue(request: Request, actor: ActorRef = Depends(get_actor)):
    """Approved requests awaiting a certificate."""
    _require_role(actor, Role.CERTIFIER, "list-certification-queue")
    records = request.app.state.container.store.list_by_status([RequestStatus.APPROVED])
    return [r.to_dict() for r in records]


@router.get("/requests/{request_id}", response_model=RequestResponse)
async def get_request(request_id: str, request: Request, actor: ActorRef = Depends(get_actor)):
    """Request detail with media, checkpoints and journal."""
    return _coordinator(request).get(request_id).to_dict()


@router.post("/requests/{request_id}/in-progress", response_model=RequestResponse)
async def mark_in_progress(request_id: str, request: Request, actor: ActorRef = Depends(get_actor)):
    """Inspector starts working on a request."""
    record = await _coordinator(request).transition(
        actor, request_id, Action.MARK_IN_PROGRESS, correlation_id=_correlation_id(request)
    )
    return record.to_dict()


@router.post("/requests/{request_id}/inspect", response_model=RequestResponse)
async def inspect_request(
    request_id: str,
    body: InspectBody,
    request: Request,
    actor: ActorRef = Depends(get_actor),
):
    """Inspector approves or rejects a request."""
    action = Action.APPROVE if body.approved else Action.REJECT
    record = await _coordinator(request).transition(
        actor, request_id, action, correlation_id=_correlation_id(request)
    )
    return record.to_dict()


@router.post("/requests/{request_id}/certify", response_model=RequestResponse)
async def certify_request(request_id: str, request: Request, actor: ActorRef = Depends(get_actor)):
    """Certifier issues the certificate for an approved request."""
    record = await _coordinator(request).transition(
        actor, request_id, Action.CERTIFY, correlation_id=_correlation_id(request)
    )
    return record.to_dict()


@router.post("/requests/{request_id}/revert", response_model=RequestResponse)
async def revert_request(request_id: str, request: Request, actor: ActorRef = Depends(get_actor)):
    """Creator withdraws a request that is not yet certified."""
    record = await _coordinator(request).revert(
        actor, request_id, correlation_id=_correlation_id(request)
    )
    return record.to_dict()
