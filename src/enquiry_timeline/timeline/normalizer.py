"""Source record normalization into TimelineItem.

Each external collaborator returns its own record shape. The functions here
map one raw record into the single canonical TimelineItem, tagging the
metadata with the variant for its source. Absent optional fields are simply
omitted; nothing in this module raises for a sparse record.

Raw records are accepted either as already-parsed models (RawPitch,
RawEmail, RawCall) or as plain mappings straight off the wire. Parsing a
mapping can raise pydantic.ValidationError for values of the wrong type; the
orchestrator treats that as a per-record failure.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from src.enquiry_timeline.timeline.schemas import (
    CallMetadata,
    CommunicationType,
    Direction,
    EmailMetadata,
    PitchMetadata,
    RawCall,
    RawEmail,
    RawPitch,
    SourceKind,
    TimelineItem,
    scenario_label,
)

DEFAULT_PITCH_SUBJECT = "Pitch Sent"
DEFAULT_EMAIL_SUBJECT = "(No Subject)"
CALL_DETAILS_UNAVAILABLE = "Call details unavailable"
UNKNOWN_CALLER = "Unknown Caller"

# Records without a usable timestamp sort to the bottom of the timeline.
UNKNOWN_TIMESTAMP = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _timestamp(value: datetime | None) -> datetime:
    if value is None:
        return UNKNOWN_TIMESTAMP
    return value


def _direction(value: str | None) -> Direction | None:
    if not value:
        return None
    try:
        return Direction(value.strip().lower())
    except ValueError:
        return None


def _format_money(value: float | str) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ── Pitches ─────────────────────────────────────────────────────────────────


def normalize_pitch(raw: RawPitch | Mapping[str, Any], index: int = 0) -> TimelineItem:
    """Map a pitch store record to a pitch TimelineItem.

    The item id uses the store's pitch id when present and falls back to the
    record's position in the response, so re-fetching the same list yields
    the same ids.
    """
    pitch = raw if isinstance(raw, RawPitch) else RawPitch.model_validate(raw)
    key = pitch.pitch_id or str(index)

    return TimelineItem(
        id=f"pitch-{key}",
        type=CommunicationType.PITCH,
        timestamp=_timestamp(pitch.created_at),
        subject=pitch.subject or DEFAULT_PITCH_SUBJECT,
        content=pitch.body,
        rich_content=pitch.body_html,
        author=pitch.created_by or "Unknown",
        metadata=PitchMetadata(
            amount=pitch.amount,
            scenario_id=pitch.scenario_id,
            scenario_label=scenario_label(pitch.scenario_id),
            prospect_id=pitch.prospect_id,
        ),
    )


# ── Emails ──────────────────────────────────────────────────────────────────


def classify_direction(sender: str | None, prospect_email: str | None) -> Direction:
    """Inbound when the prospect sent it (case-insensitive), otherwise outbound."""
    if sender and prospect_email and sender.strip().lower() == prospect_email.strip().lower():
        return Direction.INBOUND
    return Direction.OUTBOUND


def normalize_email(
    raw: RawEmail | Mapping[str, Any],
    prospect_email: str | None = None,
    mailbox_owner: str | None = None,
    index: int = 0,
) -> TimelineItem:
    """Map a mailbox search hit to an email TimelineItem.

    Args:
        raw: Message from the mailbox search service.
        prospect_email: Prospect address used to classify direction.
        mailbox_owner: Mailbox the search ran against; kept for true forwarding.
        index: Position in the response, used only when the message has no id.
    """
    email = raw if isinstance(raw, RawEmail) else RawEmail.model_validate(raw)
    key = email.id or email.internet_message_id or f"unknown-{index}"

    return TimelineItem(
        id=f"email-{key}",
        type=CommunicationType.EMAIL,
        timestamp=_timestamp(email.received_at),
        subject=email.subject or DEFAULT_EMAIL_SUBJECT,
        content=email.body_text or email.body_preview or "",
        rich_content=email.body_html or None,
        author=email.sender_name or email.sender or "Unknown",
        metadata=EmailMetadata(
            direction=classify_direction(email.sender, prospect_email),
            message_id=email.id,
            internet_message_id=email.internet_message_id or None,
            mailbox_owner=mailbox_owner,
        ),
    )


# ── Calls ───────────────────────────────────────────────────────────────────


def build_call_facts(call: RawCall) -> list[str]:
    """Ordered list of the facts present on a call record.

    Absent fields are skipped rather than rendered as empty placeholders.
    Note, transcription and recording are set off by a blank line.
    """
    facts: list[str] = []
    duration = call.duration or 0

    if duration:
        minutes, seconds = divmod(duration, 60)
        facts.append(f"Duration: {minutes}:{seconds:02d}")
    if call.answered is not None:
        facts.append("Answered" if call.answered else "Unanswered")

    if call.customer_name and call.customer_name != UNKNOWN_CALLER:
        facts.append(f"Contact: {call.customer_name}")
    if call.company_name:
        facts.append(f"Company: {call.company_name}")
    if call.customer_phone_number:
        facts.append(f"Phone: {call.customer_phone_number}")

    if call.source and call.source != "Unknown":
        facts.append(f"Source: {call.source}")
    if call.keywords:
        facts.append(f"Keywords: {call.keywords}")
    if call.campaign:
        facts.append(f"Campaign: {call.campaign}")
    if call.medium:
        facts.append(f"Medium: {call.medium}")

    if call.value:
        facts.append(f"Value: £{_format_money(call.value)}")

    if call.tracking_phone_number:
        facts.append(f"Tracking Number: {call.tracking_phone_number}")
    if call.business_phone_number:
        facts.append(f"Business Number: {call.business_phone_number}")

    if call.note:
        facts.append(f"\nNote: {call.note}")
    if call.transcription:
        facts.append(f"\nTranscription:\n{call.transcription}")
    if call.recording_url:
        facts.append("\nRecording available")

    return facts


def call_content(call: RawCall) -> str:
    facts = build_call_facts(call)
    return "\n".join(facts) if facts else CALL_DETAILS_UNAVAILABLE


def normalize_call(raw: RawCall | Mapping[str, Any], index: int = 0) -> TimelineItem:
    """Map a telephony log entry to a call TimelineItem."""
    call = raw if isinstance(raw, RawCall) else RawCall.model_validate(raw)
    direction = _direction(call.direction)
    label = "Inbound" if direction == Direction.INBOUND else "Outbound"
    missed = "" if call.answered else " (Missed)"

    return TimelineItem(
        id=f"call-{call.id or f'unknown-{index}'}",
        type=CommunicationType.CALL,
        timestamp=_timestamp(call.start_time),
        subject=f"{label} Call{missed}",
        content=call_content(call),
        author=call.customer_name or call.customer_phone_number or UNKNOWN_CALLER,
        metadata=CallMetadata(
            duration_seconds=call.duration or 0,
            answered=call.answered,
            direction=direction,
            source=call.source,
            recording_url=call.recording_url,
        ),
    )


# ── Dispatch ────────────────────────────────────────────────────────────────


def normalize(
    source: SourceKind,
    raw: Mapping[str, Any] | RawPitch | RawEmail | RawCall,
    *,
    prospect_email: str | None = None,
    mailbox_owner: str | None = None,
    index: int = 0,
) -> TimelineItem:
    """Normalize one raw record from ``source`` into a TimelineItem."""
    if source == SourceKind.PITCHES:
        return normalize_pitch(raw, index=index)  # type: ignore[arg-type]
    if source == SourceKind.EMAILS:
        return normalize_email(
            raw,  # type: ignore[arg-type]
            prospect_email=prospect_email,
            mailbox_owner=mailbox_owner,
            index=index,
        )
    if source == SourceKind.CALLS:
        return normalize_call(raw, index=index)  # type: ignore[arg-type]
    raise ValueError(f"Unknown timeline source: {source!r}")
