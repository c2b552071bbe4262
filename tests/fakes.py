"""In-memory fakes and raw record builders for the enquiry timeline tests.

Provides:
- FakeCrmBackend: in-memory stand-in for every CRM collaborator (pitch
  store, instruction lookup, mailbox search, telephony search, forwarding)
- Builders for a canonical enquiry and one pitch / inbound email / missed
  call at T0 < T1 < T2
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from src.enquiry_timeline.timeline.schemas import ForwardRequest, SourceKind

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 3, 2, 10, 30, tzinfo=timezone.utc)
T2 = datetime(2024, 3, 3, 14, 0, tzinfo=timezone.utc)

PROSPECT_EMAIL = "alex.client@example.com"


# ── Raw records ─────────────────────────────────────────────────────────────


def make_enquiry(**overrides: Any) -> dict[str, Any]:
    enquiry = {
        "ID": "E-1001",
        "First_Name": "Alex",
        "Last_Name": "Client",
        "Email": PROSPECT_EMAIL,
        "Phone_Number": " +447700900123 ",
        "Secondary_Phone": "+447700900123",
        "Point_of_Contact": "Jane Smith",
        "Date_Created": "2024-02-28T16:00:00Z",
    }
    enquiry.update(overrides)
    return enquiry


def make_pitch(**overrides: Any) -> dict[str, Any]:
    pitch = {
        "PitchID": 7,
        "CreatedAt": T0.isoformat(),
        "EmailSubject": "Your enquiry with us",
        "EmailBody": "Thank you for your enquiry.",
        "CreatedBy": "Jane Smith",
        "Amount": 500,
        "ScenarioId": "cfa",
        "ProspectId": "P-100",
    }
    pitch.update(overrides)
    return pitch


def make_email(**overrides: Any) -> dict[str, Any]:
    email = {
        "id": "AAMkAGI1",
        "subject": "Re: Your enquiry with us",
        "receivedDateTime": T1.isoformat(),
        "from": PROSPECT_EMAIL.upper(),
        "fromName": "Alex Client",
        "bodyPreview": "Thanks, I'd like to go ahead.",
        "internetMessageId": "<abc123@mail.example.com>",
    }
    email.update(overrides)
    return email


def make_call(**overrides: Any) -> dict[str, Any]:
    call = {
        "id": "CAL-42",
        "startTime": T2.isoformat(),
        "direction": "outbound",
        "duration": 0,
        "answered": False,
        "customerName": "Alex Client",
        "customerPhoneNumber": "+447700900123",
    }
    call.update(overrides)
    return call


# ── In-Memory Test Double ────────────────────────────────────────────────────


class FakeCrmBackend:
    """In-memory CRM backend implementing every collaborator protocol."""

    def __init__(self) -> None:
        self.pitches: list[Any] = [make_pitch()]
        self.emails: list[Any] = [make_email()]
        self.calls: list[Any] = [make_call()]
        self.instructions: dict[str, Any] = {}
        self.failures: dict[SourceKind, Exception] = {}
        self.instruction_failures: dict[str, Exception] = {}
        self.forward_response: dict[str, Any] = {
            "success": True,
            "method": "graph-forward-action",
            "sourceMailbox": "jane.smith@helix-law.com",
        }
        self.forward_error: Exception | None = None
        self.requests: list[tuple[str, Any]] = []

    async def list_pitches(self, enquiry_id: str) -> list[Any]:
        self.requests.append(("list_pitches", enquiry_id))
        if SourceKind.PITCHES in self.failures:
            raise self.failures[SourceKind.PITCHES]
        return list(self.pitches)

    async def get_instruction(self, prospect_id: str) -> dict[str, Any] | None:
        self.requests.append(("get_instruction", prospect_id))
        if prospect_id in self.instruction_failures:
            raise self.instruction_failures[prospect_id]
        return self.instructions.get(prospect_id)

    async def search_inbox(
        self, fee_earner_email: str, prospect_email: str, max_results: int
    ) -> list[Any]:
        self.requests.append(("search_inbox", (fee_earner_email, prospect_email, max_results)))
        if SourceKind.EMAILS in self.failures:
            raise self.failures[SourceKind.EMAILS]
        return list(self.emails)

    async def search_calls(self, phone_number: str, max_results: int) -> list[Any]:
        self.requests.append(("search_calls", (phone_number, max_results)))
        if SourceKind.CALLS in self.failures:
            raise self.failures[SourceKind.CALLS]
        return list(self.calls)

    async def forward_email(
        self, request: ForwardRequest, fee_earner_email: str | None = None
    ) -> dict[str, Any]:
        self.requests.append(("forward_email", (request, fee_earner_email)))
        if self.forward_error is not None:
            raise self.forward_error
        return dict(self.forward_response)

    def calls_to(self, operation: str) -> list[Any]:
        return [args for name, args in self.requests if name == operation]
