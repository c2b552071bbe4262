"""Source sync orchestrator -- independent, partially-failing fetches.

TimelineOrchestrator owns the state of one enquiry's timeline: the merged
item list, the per-source sync state and the instruction statuses keyed by
pitch item id. Callers never touch that state directly; they get copies by
value through snapshot().

Each source (pitches, emails, calls) is fetched on its own. A failure is
caught, logged, recorded on that source's state and returned on its
FetchResult. It never cancels or delays the other two and never escapes the
orchestrator. Nothing is retried; the user re-triggers a failed source.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from src.enquiry_timeline.config import Settings, get_settings
from src.enquiry_timeline.timeline.errors import ForwardingError, SourceBusyError
from src.enquiry_timeline.timeline.forwarding import resolve_forward
from src.enquiry_timeline.timeline.merge import (
    TimelineSummary,
    filter_by_type,
    merge_timeline,
    summarize_timeline,
)
from src.enquiry_timeline.timeline.normalizer import normalize
from src.enquiry_timeline.timeline.schemas import (
    CallSyncParams,
    CommunicationType,
    EmailSyncParams,
    EnquiryRecord,
    FetchResult,
    ForwardRequest,
    ForwardResult,
    InstructionStatus,
    PitchMetadata,
    PitchSyncParams,
    SourceKind,
    SourceSyncState,
    SyncConfirmation,
    SyncParams,
    SyncStatus,
    TimelineItem,
    TimelineSnapshot,
)
from src.enquiry_timeline.timeline.status import derive_status

logger = structlog.get_logger(__name__)

NO_PHONE_ON_RECORD = "No phone number on record. Enter one to search."
PHONE_REQUIRED = "Enter a phone number to search"
NO_MAILBOX_ON_RECORD = "No fee earner mailbox on record. Enter one to search."
NO_PROSPECT_EMAIL = "No prospect email on record. Enter one to search."

_PARAM_MODELS: dict[SourceKind, type[SyncParams]] = {
    SourceKind.PITCHES: PitchSyncParams,
    SourceKind.EMAILS: EmailSyncParams,
    SourceKind.CALLS: CallSyncParams,
}


# ── Collaborator protocols ───────────────────────────────────────────────────
# Minimal interfaces for dependency injection and testing.


class PitchStoreProtocol(Protocol):
    async def list_pitches(self, enquiry_id: str) -> list[Any]: ...


class InstructionLookupProtocol(Protocol):
    async def get_instruction(self, prospect_id: str) -> Mapping[str, Any] | None: ...


class MailboxSearchProtocol(Protocol):
    async def search_inbox(
        self, fee_earner_email: str, prospect_email: str, max_results: int
    ) -> list[Any]: ...


class TelephonySearchProtocol(Protocol):
    async def search_calls(self, phone_number: str, max_results: int) -> list[Any]: ...


class ForwarderProtocol(Protocol):
    async def forward_email(
        self, request: ForwardRequest, fee_earner_email: str | None = None
    ) -> Mapping[str, Any]: ...


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


# ── TimelineOrchestrator ─────────────────────────────────────────────────────


class TimelineOrchestrator:
    """Fetches, normalizes and merges one enquiry's activity.

    Args:
        enquiry: The enquiry record (parsed or as a raw mapping).
        pitch_store: Lists pitches for an enquiry.
        instruction_lookup: Resolves the instruction linked to a pitch.
        mailbox: Searches a fee earner's mailbox.
        telephony: Searches the telephony log.
        forwarder: Submits forwards. Optional; without it submit_forward
            reports failure.
        settings: Application settings (defaults to get_settings()).
        items: Items already on the timeline, e.g. from a previous snapshot.
    """

    def __init__(
        self,
        enquiry: EnquiryRecord | Mapping[str, Any],
        *,
        pitch_store: PitchStoreProtocol,
        instruction_lookup: InstructionLookupProtocol,
        mailbox: MailboxSearchProtocol,
        telephony: TelephonySearchProtocol,
        forwarder: ForwarderProtocol | None = None,
        settings: Settings | None = None,
        items: Iterable[TimelineItem] = (),
    ) -> None:
        if not isinstance(enquiry, EnquiryRecord):
            enquiry = EnquiryRecord.model_validate(enquiry)
        self._enquiry = enquiry
        self._pitch_store = pitch_store
        self._instruction_lookup = instruction_lookup
        self._mailbox = mailbox
        self._telephony = telephony
        self._forwarder = forwarder
        self._settings = settings or get_settings()

        self._items: list[TimelineItem] = merge_timeline([], items)
        self._sources: dict[SourceKind, SourceSyncState] = {
            source: SourceSyncState() for source in SourceKind
        }
        self._statuses: dict[str, InstructionStatus] = {}

    # ── Read access ───────────────────────────────────────────────────────

    @property
    def enquiry(self) -> EnquiryRecord:
        return self._enquiry

    @property
    def fee_earner_email(self) -> str | None:
        return self._settings.fee_earner_mailbox(self._enquiry.point_of_contact)

    def state(self, source: SourceKind) -> SourceSyncState:
        return self._sources[source]

    def can_trigger(self, source: SourceKind) -> bool:
        """False while a fetch for ``source`` is in flight."""
        return self._sources[source].status != SyncStatus.LOADING

    def items(self, item_type: CommunicationType | str | None = None) -> list[TimelineItem]:
        return filter_by_type(self._items, item_type)

    def summary(self, now: datetime | None = None) -> TimelineSummary:
        return summarize_timeline(self._items, now=now, tz=self._settings.firm_timezone)

    def snapshot(self, results: Iterable[FetchResult] = ()) -> TimelineSnapshot:
        """Copy of the current state; later fetches do not change it."""
        return TimelineSnapshot(
            enquiry_id=self._enquiry.id,
            items=list(self._items),
            sources=dict(self._sources),
            instruction_statuses=dict(self._statuses),
            results=list(results),
        )

    # ── Sync parameters ───────────────────────────────────────────────────

    def available_numbers(self) -> list[str]:
        """Phone numbers on file, trimmed and deduplicated, primary first."""
        numbers: list[str] = []
        for raw in (self._enquiry.phone_number, self._enquiry.secondary_phone):
            number = raw.strip() if raw else ""
            if number and number not in numbers:
                numbers.append(number)
        return numbers

    def default_params(self, source: SourceKind) -> SyncParams:
        """Parameters pre-populated from the enquiry record."""
        if source == SourceKind.PITCHES:
            return PitchSyncParams(enquiry_id=self._enquiry.id)
        if source == SourceKind.EMAILS:
            return EmailSyncParams(
                fee_earner_email=self.fee_earner_email or "",
                prospect_email=(self._enquiry.email or "").strip(),
                max_results=self._settings.DEFAULT_MAX_RESULTS,
            )
        numbers = self.available_numbers()
        return CallSyncParams(
            phone_number=numbers[0] if numbers else "",
            available_numbers=numbers,
            contact_name=self._enquiry.contact_name,
            max_results=self._settings.DEFAULT_MAX_RESULTS,
        )

    def prepare_sync(self, source: SourceKind) -> SyncConfirmation:
        """Editable parameters to confirm before a manual re-sync.

        Missing values produce warnings, never errors: the user can still
        type in a mailbox or phone number and go ahead.
        """
        params = self.default_params(source)
        return SyncConfirmation(
            source=source,
            params=params,
            warnings=self._missing_parameters(params, prepared=True),
        )

    def _coerce_params(
        self,
        source: SourceKind,
        params: SyncParams | Mapping[str, Any] | None,
    ) -> SyncParams:
        model = _PARAM_MODELS[source]
        if params is None:
            return self.default_params(source)
        if isinstance(params, model):
            return params
        if isinstance(params, Mapping):
            return model.model_validate(params)
        raise TypeError(
            f"{source.value} sync expects {model.__name__}, got {type(params).__name__}"
        )

    @staticmethod
    def _missing_parameters(params: SyncParams, prepared: bool = False) -> list[str]:
        if isinstance(params, EmailSyncParams):
            warnings = []
            if not params.fee_earner_email.strip():
                warnings.append(NO_MAILBOX_ON_RECORD)
            if not params.prospect_email.strip():
                warnings.append(NO_PROSPECT_EMAIL)
            return warnings
        if isinstance(params, CallSyncParams) and not params.phone_number:
            return [NO_PHONE_ON_RECORD if prepared else PHONE_REQUIRED]
        return []

    # ── Fetching ──────────────────────────────────────────────────────────

    def _set_state(
        self,
        source: SourceKind,
        status: SyncStatus,
        *,
        error: str | None = None,
        item_count: int = 0,
    ) -> None:
        self._sources[source] = SourceSyncState(
            status=status,
            error=error,
            item_count=item_count,
            updated_at=datetime.now(timezone.utc),
        )

    async def trigger_fetch(
        self,
        source: SourceKind,
        params: SyncParams | Mapping[str, Any] | None = None,
    ) -> FetchResult:
        """Fetch one source and merge its items into the timeline.

        The source moves to ``loading`` before the first await and ends in
        ``success`` or ``error``. When a required parameter is blank the
        fetch is skipped with a warning and the state is left as it was.

        Args:
            source: Which source to fetch.
            params: Search parameters; defaults to those on the enquiry.

        Returns:
            FetchResult with the new items or the error.

        Raises:
            SourceBusyError: If ``source`` is already loading.
        """
        if not self.can_trigger(source):
            raise SourceBusyError(source)

        params = self._coerce_params(source, params)
        missing = self._missing_parameters(params)
        if missing:
            logger.info(
                "timeline.fetch_skipped",
                enquiry_id=self._enquiry.id,
                source=source.value,
                warnings=missing,
            )
            return FetchResult(
                source=source,
                status=self._sources[source].status,
                warnings=missing,
                skipped=True,
            )

        self._set_state(source, SyncStatus.LOADING)
        try:
            items, warnings = await self._fetch(source, params)
        except Exception as exc:
            error = _error_text(exc)
            logger.warning(
                "timeline.fetch_failed",
                enquiry_id=self._enquiry.id,
                source=source.value,
                error=error,
                exc_info=True,
            )
            self._set_state(source, SyncStatus.ERROR, error=error)
            return FetchResult(source=source, status=SyncStatus.ERROR, error=error)

        self._items = merge_timeline(self._items, items)
        self._set_state(source, SyncStatus.SUCCESS, item_count=len(items))
        logger.info(
            "timeline.fetch_completed",
            enquiry_id=self._enquiry.id,
            source=source.value,
            item_count=len(items),
            total_items=len(self._items),
        )
        return FetchResult(
            source=source,
            status=SyncStatus.SUCCESS,
            items=items,
            warnings=warnings,
        )

    async def load(self) -> TimelineSnapshot:
        """Fetch all three sources concurrently.

        A source with nothing to search for (no mailbox, no phone number)
        completes with no items and a warning instead of being skipped, so
        every source leaves ``idle`` on entry.
        """
        results = await asyncio.gather(
            *(self._initial_fetch(source) for source in SourceKind)
        )
        logger.info(
            "timeline.loaded",
            enquiry_id=self._enquiry.id,
            total_items=len(self._items),
            failed_sources=[r.source.value for r in results if r.status == SyncStatus.ERROR],
        )
        return self.snapshot(results)

    async def _initial_fetch(self, source: SourceKind) -> FetchResult:
        try:
            result = await self.trigger_fetch(source)
        except SourceBusyError as exc:
            return FetchResult(
                source=source,
                status=SyncStatus.LOADING,
                warnings=[str(exc)],
                skipped=True,
            )
        if result.skipped:
            self._set_state(source, SyncStatus.SUCCESS)
            return FetchResult(
                source=source,
                status=SyncStatus.SUCCESS,
                warnings=result.warnings,
            )
        return result

    async def _fetch(
        self,
        source: SourceKind,
        params: SyncParams,
    ) -> tuple[list[TimelineItem], list[str]]:
        if isinstance(params, PitchSyncParams):
            raws = await self._pitch_store.list_pitches(params.enquiry_id)
            items, warnings = self._normalize_batch(source, raws)
            await self._refresh_statuses(items)
            return items, warnings

        if isinstance(params, EmailSyncParams):
            raws = await self._mailbox.search_inbox(
                params.fee_earner_email, params.prospect_email, params.max_results
            )
            return self._normalize_batch(
                source,
                raws,
                prospect_email=params.prospect_email,
                mailbox_owner=params.fee_earner_email,
            )

        raws = await self._telephony.search_calls(params.phone_number, params.max_results)
        return self._normalize_batch(source, raws)

    def _normalize_batch(
        self,
        source: SourceKind,
        raws: Iterable[Any] | None,
        **context: Any,
    ) -> tuple[list[TimelineItem], list[str]]:
        """Normalize a batch, skipping records that fail to parse."""
        items: list[TimelineItem] = []
        skipped = 0
        for index, raw in enumerate(raws or []):
            try:
                items.append(normalize(source, raw, index=index, **context))
            except ValidationError as exc:
                skipped += 1
                logger.warning(
                    "timeline.record_skipped",
                    enquiry_id=self._enquiry.id,
                    source=source.value,
                    index=index,
                    error_count=exc.error_count(),
                )
        warnings = [f"{skipped} malformed {source.value} record(s) skipped"] if skipped else []
        return items, warnings

    # ── Instruction statuses ──────────────────────────────────────────────

    async def _refresh_statuses(self, pitches: list[TimelineItem]) -> None:
        """Look up the instruction behind each pitched prospect concurrently.

        One lookup per distinct prospect. A failed lookup leaves that
        pitch's status as it was; a prospect with no instruction has none.
        """
        by_prospect: dict[str, list[str]] = {}
        for item in pitches:
            meta = item.metadata
            if isinstance(meta, PitchMetadata) and meta.prospect_id:
                by_prospect.setdefault(meta.prospect_id, []).append(item.id)
        if not by_prospect:
            return

        prospect_ids = list(by_prospect)
        outcomes = await asyncio.gather(
            *(self._lookup_status(pid) for pid in prospect_ids),
            return_exceptions=True,
        )

        for prospect_id, outcome in zip(prospect_ids, outcomes):
            pitch_ids = by_prospect[prospect_id]
            if isinstance(outcome, BaseException):
                logger.warning(
                    "timeline.instruction_lookup_failed",
                    enquiry_id=self._enquiry.id,
                    prospect_id=prospect_id,
                    error=_error_text(outcome),
                )
                continue
            for pitch_id in pitch_ids:
                if outcome is None:
                    self._statuses.pop(pitch_id, None)
                else:
                    self._statuses[pitch_id] = outcome

    async def _lookup_status(self, prospect_id: str) -> InstructionStatus | None:
        payload = await self._instruction_lookup.get_instruction(prospect_id)
        if payload is None:
            return None
        return derive_status(payload)

    # ── Forwarding ────────────────────────────────────────────────────────

    def resolve_forward(
        self,
        item_id: str,
        actor_address: str | None = None,
        cc: str | None = None,
    ) -> ForwardRequest:
        """Resolve a forward for a timeline item, to the fee earner by default.

        Raises:
            ForwardingError: If the item is unknown, not forwardable, or no
                recipient could be determined.
        """
        item = next((i for i in self._items if i.id == item_id), None)
        if item is None:
            raise ForwardingError(f"No timeline item with id '{item_id}'")
        return resolve_forward(item, actor_address or self.fee_earner_email or "", cc=cc)

    async def submit_forward(self, request: ForwardRequest) -> ForwardResult:
        """Send a confirmed forward. Failures come back on the result."""
        if self._forwarder is None:
            return ForwardResult(
                success=False,
                mode=request.mode,
                error="Forwarding is not configured",
            )

        try:
            response = await self._forwarder.forward_email(
                request, fee_earner_email=self.fee_earner_email
            )
        except Exception as exc:
            error = _error_text(exc)
            logger.warning(
                "timeline.forward_failed",
                enquiry_id=self._enquiry.id,
                item_id=request.item_id,
                mode=request.mode.value,
                error=error,
            )
            return ForwardResult(success=False, mode=request.mode, error=error)

        success = bool(response.get("success"))
        logger.info(
            "timeline.forward_submitted",
            enquiry_id=self._enquiry.id,
            item_id=request.item_id,
            mode=request.mode.value,
            success=success,
        )
        return ForwardResult(
            success=success,
            mode=request.mode,
            method=response.get("method"),
            source_mailbox=response.get("sourceMailbox"),
            error=None if success else response.get("error") or "Forward was not accepted",
        )
