"""Pydantic schemas for the enquiry timeline -- items, raw source records, status.

Defines all structured types for the timeline lifecycle:
- Enums: CommunicationType, SourceKind, SyncStatus, Direction, ForwardMode,
  and the five pipeline dimension enums
- Timeline entities: TimelineItem with tagged metadata variants
  (PitchMetadata, EmailMetadata, CallMetadata)
- Raw source records: RawPitch, RawEmail, RawCall, InstructionPayload
- Sync bookkeeping: SourceSyncState, FetchResult, SyncConfirmation,
  EmailSyncParams, CallSyncParams, TimelineSnapshot
- Forwarding: ForwardRequest, ForwardResult

Raw records accept the external services' camelCase keys as well as
snake_case, and every field is optional so that a sparse record never fails
to parse.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# ── Enums ───────────────────────────────────────────────────────────────────


class CommunicationType(str, Enum):
    """Kind of prospect-facing activity shown on the timeline."""

    PITCH = "pitch"
    EMAIL = "email"
    CALL = "call"
    INSTRUCTION = "instruction"
    NOTE = "note"


class SourceKind(str, Enum):
    """External collaborator a batch of timeline items was fetched from."""

    PITCHES = "pitches"
    EMAILS = "emails"
    CALLS = "calls"


class SyncStatus(str, Enum):
    """Per-source fetch lifecycle: idle -> loading -> success | error."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class IdentityStatus(str, Enum):
    PENDING = "pending"
    RECEIVED = "received"
    REVIEW = "review"
    COMPLETE = "complete"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"


class RiskStatus(str, Enum):
    PENDING = "pending"
    REVIEW = "review"
    COMPLETE = "complete"


class MatterStatus(str, Enum):
    PENDING = "pending"
    COMPLETE = "complete"


class ComplianceLetterStatus(str, Enum):
    PENDING = "pending"
    COMPLETE = "complete"


class ForwardMode(str, Enum):
    """How a forward will be performed."""

    TRUE_FORWARD = "true_forward"
    SYNTHETIC = "synthetic"


# ── Scenario Labels ─────────────────────────────────────────────────────────

SCENARIO_LABELS: dict[str, str] = {
    "before-call-call": "Before call — Call",
    "before-call-no-call": "Before call — No call",
    "after-call-probably-cant-assist": "After call — Cannot assist",
    "after-call-want-instruction": "After call — Want instruction",
    "cfa": "CFA",
}


def scenario_label(scenario_id: str | None) -> str | None:
    """Display label for a pitch scenario id; unknown ids pass through."""
    if not scenario_id:
        return None
    return SCENARIO_LABELS.get(scenario_id, scenario_id)


# ── Timeline Entities ───────────────────────────────────────────────────────


class PitchMetadata(BaseModel):
    """Pitch-specific facts: fee quoted and the scenario it was sent under."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pitch"] = "pitch"
    amount: float | None = None
    scenario_id: str | None = None
    scenario_label: str | None = None
    status: str = "sent"
    prospect_id: str | None = None


class EmailMetadata(BaseModel):
    """Email identifiers needed for direction display and true forwarding."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["email"] = "email"
    direction: Direction | None = None
    message_id: str | None = Field(
        default=None, description="Mailbox-native message id (true forward)"
    )
    internet_message_id: str | None = Field(
        default=None, description="Cross-system RFC 5322 Message-ID"
    )
    mailbox_owner: str | None = Field(
        default=None, description="Address of the mailbox the message was found in"
    )


class CallMetadata(BaseModel):
    """Telephony facts kept alongside the rendered call content."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["call"] = "call"
    duration_seconds: int = 0
    answered: bool | None = None
    direction: Direction | None = None
    source: str | None = None
    recording_url: str | None = None


ItemMetadata = Annotated[
    Union[PitchMetadata, EmailMetadata, CallMetadata],
    Field(discriminator="kind"),
]


class TimelineItem(BaseModel):
    """One unit of prospect-facing activity.

    Items are immutable once normalized. ``id`` is namespaced per source
    (``pitch-``, ``email-``, ``call-``) and is the merge/dedup key.
    Naive timestamps are taken as UTC so every item sorts against every other.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: CommunicationType
    timestamp: datetime
    subject: str
    content: str | None = None
    rich_content: str | None = None
    author: str
    metadata: ItemMetadata | None = None

    @field_validator("timestamp")
    @classmethod
    def ensure_utc_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class InstructionStatus(BaseModel):
    """Five independent onboarding pipeline dimensions for one pitch."""

    model_config = ConfigDict(frozen=True)

    identity: IdentityStatus = IdentityStatus.PENDING
    payment: PaymentStatus = PaymentStatus.PENDING
    risk: RiskStatus = RiskStatus.PENDING
    matter: MatterStatus = MatterStatus.PENDING
    compliance_letter: ComplianceLetterStatus = ComplianceLetterStatus.PENDING


# ── Raw Source Records ──────────────────────────────────────────────────────


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


def _to_optional_str(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


class _RawRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RawPitch(_RawRecord):
    """Pitch record as returned by the pitch store."""

    pitch_id: str | None = Field(
        default=None, validation_alias=_aliases("PitchID", "PitchId", "pitchId", "pitch_id", "id")
    )
    created_at: datetime | None = Field(
        default=None, validation_alias=_aliases("CreatedAt", "createdAt", "created_at")
    )
    subject: str | None = Field(
        default=None, validation_alias=_aliases("EmailSubject", "emailSubject", "subject")
    )
    body: str | None = Field(
        default=None, validation_alias=_aliases("EmailBody", "emailBody", "body")
    )
    body_html: str | None = Field(
        default=None, validation_alias=_aliases("EmailBodyHtml", "emailBodyHtml", "body_html")
    )
    created_by: str | None = Field(
        default=None, validation_alias=_aliases("CreatedBy", "createdBy", "created_by")
    )
    amount: float | None = Field(
        default=None, validation_alias=_aliases("Amount", "amount")
    )
    scenario_id: str | None = Field(
        default=None, validation_alias=_aliases("ScenarioId", "scenarioId", "scenario_id")
    )
    prospect_id: str | None = Field(
        default=None, validation_alias=_aliases("ProspectId", "prospectId", "prospect_id")
    )

    @field_validator("pitch_id", "prospect_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _to_optional_str(value)


class RawEmail(_RawRecord):
    """Message returned by the mailbox search service."""

    id: str | None = None
    subject: str | None = None
    received_at: datetime | None = Field(
        default=None,
        validation_alias=_aliases("receivedDateTime", "received_date_time", "received_at"),
    )
    sender: str | None = Field(default=None, validation_alias=_aliases("from", "sender"))
    sender_name: str | None = Field(
        default=None, validation_alias=_aliases("fromName", "from_name", "sender_name")
    )
    body_preview: str | None = Field(
        default=None, validation_alias=_aliases("bodyPreview", "body_preview")
    )
    body_text: str | None = Field(
        default=None, validation_alias=_aliases("bodyText", "body_text")
    )
    body_html: str | None = Field(
        default=None, validation_alias=_aliases("bodyHtml", "body_html")
    )
    internet_message_id: str | None = Field(
        default=None, validation_alias=_aliases("internetMessageId", "internet_message_id")
    )


class RawCall(_RawRecord):
    """Call returned by the telephony log search service."""

    id: str | None = None
    start_time: datetime | None = Field(
        default=None, validation_alias=_aliases("startTime", "start_time")
    )
    direction: str | None = None
    duration: int | None = None
    answered: bool | None = None
    customer_name: str | None = Field(
        default=None, validation_alias=_aliases("customerName", "customer_name")
    )
    company_name: str | None = Field(
        default=None, validation_alias=_aliases("companyName", "company_name")
    )
    customer_phone_number: str | None = Field(
        default=None,
        validation_alias=_aliases("customerPhoneNumber", "customer_phone_number"),
    )
    source: str | None = None
    keywords: str | None = None
    campaign: str | None = None
    medium: str | None = None
    value: float | str | None = None
    tracking_phone_number: str | None = Field(
        default=None,
        validation_alias=_aliases("trackingPhoneNumber", "tracking_phone_number"),
    )
    business_phone_number: str | None = Field(
        default=None,
        validation_alias=_aliases("businessPhoneNumber", "business_phone_number"),
    )
    note: str | None = None
    transcription: str | None = None
    recording_url: str | None = Field(
        default=None, validation_alias=_aliases("recordingUrl", "recording_url", "recording")
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _to_optional_str(value)


class PaymentRecord(_RawRecord):
    """One payment attempt attached to an instruction."""

    payment_status: str | None = Field(
        default=None, validation_alias=_aliases("payment_status", "paymentStatus")
    )
    internal_status: str | None = Field(
        default=None, validation_alias=_aliases("internal_status", "internalStatus")
    )


class RiskRecord(_RawRecord):
    """Risk assessment or compliance record attached to an instruction."""

    result: str | None = Field(
        default=None,
        validation_alias=_aliases(
            "RiskAssessmentResult", "riskAssessmentResult", "risk_assessment_result", "result"
        ),
    )

    @field_validator("result", mode="before")
    @classmethod
    def coerce_result(cls, value: Any) -> Any:
        return _to_optional_str(value)


class InstructionPayload(_RawRecord):
    """Instruction record returned by the instruction lookup.

    Only the fields read by the status derivation are modelled; everything
    else in the payload is ignored.
    """

    stage: str | None = Field(default=None, validation_alias=_aliases("Stage", "stage"))
    eid_result: str | None = Field(
        default=None,
        validation_alias=_aliases("EIDOverallResult", "eidResult", "eid_result"),
    )
    eid_status: str | None = Field(
        default=None, validation_alias=_aliases("EIDStatus", "eidStatus", "eid_status")
    )
    passport_number: str | None = Field(
        default=None,
        validation_alias=_aliases("PassportNumber", "passportNumber", "passport_number"),
    )
    drivers_license_number: str | None = Field(
        default=None,
        validation_alias=_aliases(
            "DriversLicenseNumber", "driversLicenseNumber", "drivers_license_number"
        ),
    )
    electronic_id_checks: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=_aliases("electronicIDChecks", "electronic_id_checks"),
    )
    internal_status: str | None = Field(
        default=None,
        validation_alias=_aliases("InternalStatus", "internalStatus", "internal_status"),
    )
    payments: list[PaymentRecord] = Field(default_factory=list)
    risk_assessments: list[RiskRecord] = Field(
        default_factory=list,
        validation_alias=_aliases("riskAssessments", "risk_assessments"),
    )
    compliance: list[RiskRecord] = Field(default_factory=list)
    matter_id: str | None = Field(
        default=None, validation_alias=_aliases("MatterId", "matterId", "matter_id")
    )
    matters: list[dict[str, Any]] = Field(default_factory=list)
    ccl_submitted: bool = Field(
        default=False,
        validation_alias=_aliases("CCLSubmitted", "cclSubmitted", "ccl_submitted"),
    )

    @field_validator(
        "stage",
        "eid_result",
        "eid_status",
        "passport_number",
        "drivers_license_number",
        "internal_status",
        "matter_id",
        mode="before",
    )
    @classmethod
    def coerce_strings(cls, value: Any) -> Any:
        return _to_optional_str(value)

    @field_validator(
        "electronic_id_checks",
        "payments",
        "risk_assessments",
        "compliance",
        "matters",
        mode="before",
    )
    @classmethod
    def coerce_lists(cls, value: Any) -> Any:
        return _none_to_list(value)

    @field_validator("ccl_submitted", mode="before")
    @classmethod
    def coerce_flag(cls, value: Any) -> Any:
        return False if value is None else value


# ── Enquiry & Sync Parameters ───────────────────────────────────────────────


class EnquiryRecord(BaseModel):
    """The slice of an enquiry the timeline needs to locate its activity."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=_aliases("ID", "id"))
    first_name: str | None = Field(
        default=None, validation_alias=_aliases("First_Name", "first_name")
    )
    last_name: str | None = Field(
        default=None, validation_alias=_aliases("Last_Name", "last_name")
    )
    email: str | None = Field(default=None, validation_alias=_aliases("Email", "email"))
    phone_number: str | None = Field(
        default=None, validation_alias=_aliases("Phone_Number", "phone_number")
    )
    secondary_phone: str | None = Field(
        default=None, validation_alias=_aliases("Secondary_Phone", "secondary_phone")
    )
    point_of_contact: str | None = Field(
        default=None, validation_alias=_aliases("Point_of_Contact", "point_of_contact")
    )
    created_at: datetime | None = Field(
        default=None, validation_alias=_aliases("Date_Created", "created_at")
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _to_optional_str(value)

    @property
    def contact_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Prospect"


class PitchSyncParams(BaseModel):
    enquiry_id: str


class EmailSyncParams(BaseModel):
    """Editable mailbox search parameters (pre-populated from the enquiry)."""

    fee_earner_email: str
    prospect_email: str
    max_results: int = 50

    @field_validator("max_results", mode="before")
    @classmethod
    def clamp_results(cls, value: Any) -> int:
        return clamp_max_results(value)


class CallSyncParams(BaseModel):
    """Editable telephony search parameters.

    ``phone_number`` may be blank when nothing is on file; the user is
    expected to type one before executing the search.
    """

    phone_number: str = ""
    available_numbers: list[str] = Field(default_factory=list)
    contact_name: str = "Prospect"
    max_results: int = 50

    @field_validator("max_results", mode="before")
    @classmethod
    def clamp_results(cls, value: Any) -> int:
        return clamp_max_results(value)

    @field_validator("phone_number", mode="before")
    @classmethod
    def strip_phone(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else ("" if value is None else value)


SyncParams = Union[PitchSyncParams, EmailSyncParams, CallSyncParams]

MIN_RESULTS = 1
MAX_RESULTS = 100


def clamp_max_results(value: Any) -> int:
    """Clamp a user-supplied result cap into [1, 100]; junk falls back to 50."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 50
    return max(MIN_RESULTS, min(MAX_RESULTS, number))


class SyncConfirmation(BaseModel):
    """Pre-populated parameters shown to the user before a manual re-sync."""

    source: SourceKind
    params: SyncParams
    warnings: list[str] = Field(default_factory=list)


# ── Sync Bookkeeping ────────────────────────────────────────────────────────


class SourceSyncState(BaseModel):
    """Fetch state of one source, independent of the other two."""

    model_config = ConfigDict(frozen=True)

    status: SyncStatus = SyncStatus.IDLE
    error: str | None = None
    item_count: int = 0
    updated_at: datetime | None = None


class FetchResult(BaseModel):
    """Outcome of one source fetch, returned as a value to the caller.

    ``status`` is the state the source ended in. A skipped fetch (missing
    parameter) leaves the source state untouched and reports ``skipped``.
    """

    source: SourceKind
    status: SyncStatus
    items: list[TimelineItem] = Field(default_factory=list)
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)
    skipped: bool = False


class TimelineSnapshot(BaseModel):
    """Everything the surrounding UI layer renders, by value."""

    enquiry_id: str
    items: list[TimelineItem] = Field(default_factory=list)
    sources: dict[SourceKind, SourceSyncState] = Field(default_factory=dict)
    instruction_statuses: dict[str, InstructionStatus] = Field(default_factory=dict)
    results: list[FetchResult] = Field(default_factory=list)


# ── Forwarding ──────────────────────────────────────────────────────────────


class ForwardRequest(BaseModel):
    """A resolved forward, shown to the user for confirmation before submission."""

    mode: ForwardMode
    item_id: str
    to: str
    cc: str | None = None
    subject: str
    body: str
    original_date: datetime
    original_from: str
    message_id: str | None = None
    internet_message_id: str | None = None
    mailbox_address: str | None = None
    degraded: bool = False
    warning: str | None = None


class ForwardResult(BaseModel):
    """Outcome of submitting a ForwardRequest."""

    success: bool
    mode: ForwardMode
    method: str | None = None
    source_mailbox: str | None = None
    error: str | None = None
