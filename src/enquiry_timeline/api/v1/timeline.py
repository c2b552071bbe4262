"""REST API endpoints for the enquiry timeline.

The surface is stateless: the caller sends the enquiry (and, for a manual
re-sync, the items it already holds) and gets the resulting state back by
value. Every request builds a TimelineOrchestrator around the shared CRM
client stored on app.state.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field, ValidationError

from src.enquiry_timeline.config import get_settings
from src.enquiry_timeline.timeline.errors import ForwardingError
from src.enquiry_timeline.timeline.merge import TimelineSummary
from src.enquiry_timeline.timeline.orchestrator import TimelineOrchestrator
from src.enquiry_timeline.timeline.schemas import (
    CommunicationType,
    EnquiryRecord,
    FetchResult,
    ForwardRequest,
    ForwardResult,
    InstructionStatus,
    SourceKind,
    SourceSyncState,
    SyncConfirmation,
    TimelineItem,
)

router = APIRouter(prefix="/api/v1/timeline", tags=["timeline"])


# ── Request / Response Schemas ───────────────────────────────────────────────


class TimelineRequest(BaseModel):
    """Request body identifying the enquiry."""

    enquiry: EnquiryRecord
    item_type: CommunicationType | None = None


class SyncRequest(BaseModel):
    """Manual re-sync of one source, merged into the caller's items."""

    enquiry: EnquiryRecord
    items: list[TimelineItem] = Field(default_factory=list)
    params: dict[str, Any] | None = None


class ResolveForwardRequest(BaseModel):
    enquiry: EnquiryRecord
    item: TimelineItem
    actor_address: str | None = None
    cc: str | None = None


class SubmitForwardRequest(BaseModel):
    enquiry: EnquiryRecord
    request: ForwardRequest


class TimelineResponse(BaseModel):
    """Timeline state plus header figures."""

    enquiry_id: str
    items: list[TimelineItem] = Field(default_factory=list)
    sources: dict[SourceKind, SourceSyncState] = Field(default_factory=dict)
    instruction_statuses: dict[str, InstructionStatus] = Field(default_factory=dict)
    results: list[FetchResult] = Field(default_factory=list)
    summary: TimelineSummary


# ── Helpers ──────────────────────────────────────────────────────────────────


def _get_crm_client(request: Request) -> Any:
    """Retrieve the CRM client from app.state, 503 if not available."""
    client = getattr(request.app.state, "crm_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="CRM client not initialized",
        )
    return client


def _build_orchestrator(
    request: Request,
    enquiry: EnquiryRecord,
    items: list[TimelineItem] | None = None,
) -> TimelineOrchestrator:
    client = _get_crm_client(request)
    return TimelineOrchestrator(
        enquiry,
        pitch_store=client,
        instruction_lookup=client,
        mailbox=client,
        telephony=client,
        forwarder=client,
        settings=get_settings(),
        items=items or [],
    )


def _to_response(
    orchestrator: TimelineOrchestrator,
    results: list[FetchResult],
    item_type: CommunicationType | None = None,
) -> TimelineResponse:
    snapshot = orchestrator.snapshot(results)
    return TimelineResponse(
        enquiry_id=snapshot.enquiry_id,
        items=orchestrator.items(item_type),
        sources=snapshot.sources,
        instruction_statuses=snapshot.instruction_statuses,
        results=snapshot.results,
        summary=orchestrator.summary(),
    )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("", response_model=TimelineResponse)
async def load_timeline(body: TimelineRequest, request: Request) -> TimelineResponse:
    """Fetch pitches, emails and calls for an enquiry concurrently.

    Always 200: a failed source is reported on its own state and result.
    """
    orchestrator = _build_orchestrator(request, body.enquiry)
    snapshot = await orchestrator.load()
    return _to_response(orchestrator, snapshot.results, body.item_type)


@router.post("/sync/{source}/prepare", response_model=SyncConfirmation)
async def prepare_sync(
    source: SourceKind,
    body: TimelineRequest,
    request: Request,
) -> SyncConfirmation:
    """Editable parameters for a manual re-sync of one source."""
    orchestrator = _build_orchestrator(request, body.enquiry)
    return orchestrator.prepare_sync(source)


@router.post("/sync/{source}", response_model=TimelineResponse)
async def sync_source(
    source: SourceKind,
    body: SyncRequest,
    request: Request,
) -> TimelineResponse:
    """Re-fetch one source and merge it into the items the caller holds."""
    orchestrator = _build_orchestrator(request, body.enquiry, body.items)
    try:
        result = await orchestrator.trigger_fetch(source, body.params)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {source.value} sync parameters: {exc.error_count()} error(s)",
        )
    return _to_response(orchestrator, [result])


@router.post("/forward/resolve", response_model=ForwardRequest)
async def resolve_forward(body: ResolveForwardRequest, request: Request) -> ForwardRequest:
    """Build a forward for confirmation; true forward when identifiers allow."""
    orchestrator = _build_orchestrator(request, body.enquiry, [body.item])
    try:
        return orchestrator.resolve_forward(body.item.id, body.actor_address, cc=body.cc)
    except ForwardingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        )


@router.post("/forward", response_model=ForwardResult)
async def submit_forward(body: SubmitForwardRequest, request: Request) -> ForwardResult:
    """Send a confirmed forward. Delivery failures come back with success=false."""
    orchestrator = _build_orchestrator(request, body.enquiry)
    return await orchestrator.submit_forward(body.request)
