"""Async HTTP client wrapper for the CRM backend REST API.

One client covers every collaborator the timeline consumes: the pitch
store, the instruction lookup, mailbox search, telephony log search and
forward submission. All methods are async and log with structlog.

Failures are not retried. A non-success response raises CrmApiError and a
transport failure propagates as httpx.HTTPError; the orchestrator scopes
either to the one source (or pitch, or forward) that produced it.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.enquiry_timeline.timeline.schemas import ForwardMode, ForwardRequest

logger = structlog.get_logger(__name__)


class CrmApiError(Exception):
    """Raised when the CRM backend answers with a non-success status.

    Attributes:
        status_code: HTTP status returned by the backend.
        message: The backend's ``error`` field when present, else the reason.
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"CRM API error {status_code}: {message}")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.reason_phrase or "request failed"


class CrmApiClient:
    """Async client for the CRM backend.

    Creates a fresh httpx.AsyncClient per call. ``timeout=None`` waits
    indefinitely, so a hung backend leaves only its own source loading.

    Args:
        base_url: Backend root, e.g. ``https://crm.example.com``.
        token: Optional bearer token.
        timeout: Per-request timeout in seconds, or None for no timeout.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client bound to the backend."""
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    @staticmethod
    def _check(response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        message = _error_message(response)
        logger.warning(
            "crm_api.request_failed",
            operation=operation,
            status_code=response.status_code,
            error=message,
        )
        raise CrmApiError(response.status_code, message)

    # ── Sources ─────────────────────────────────────────────────────────────

    async def list_pitches(self, enquiry_id: str) -> list[dict[str, Any]]:
        """List pitch records sent for an enquiry.

        GET /api/pitches/{enquiry_id} returns ``{"pitches": [...]}``.

        Args:
            enquiry_id: Enquiry identifier.

        Returns:
            Raw pitch records in store order.
        """
        async with self._client() as client:
            response = await client.get(f"/api/pitches/{enquiry_id}")
            self._check(response, "list_pitches")
            data = response.json()
        pitches = data.get("pitches") if isinstance(data, dict) else data
        pitches = pitches if isinstance(pitches, list) else []
        logger.info("crm_api.pitches_listed", enquiry_id=enquiry_id, count=len(pitches))
        return pitches

    async def get_instruction(self, prospect_id: str) -> dict[str, Any] | None:
        """Look up the instruction record linked to a pitched prospect.

        GET /api/instruction-data/{prospect_id}. A 404 or an empty body means
        the prospect has not instructed yet.

        Returns:
            Instruction payload, or None when not found.
        """
        async with self._client() as client:
            response = await client.get(f"/api/instruction-data/{prospect_id}")
            if response.status_code == httpx.codes.NOT_FOUND:
                return None
            self._check(response, "get_instruction")
            data = response.json()
        if isinstance(data, list):
            data = data[0] if data else None
        return data if isinstance(data, dict) and data else None

    async def search_inbox(
        self,
        fee_earner_email: str,
        prospect_email: str,
        max_results: int,
    ) -> list[dict[str, Any]]:
        """Search a fee earner's mailbox for messages with the prospect.

        POST /api/searchInbox returns ``{"emails": [...]}``.

        Args:
            fee_earner_email: Mailbox to search.
            prospect_email: Counterpart address.
            max_results: Result cap, already clamped by the caller.

        Returns:
            Raw message records.
        """
        async with self._client() as client:
            response = await client.post(
                "/api/searchInbox",
                json={
                    "feeEarnerEmail": fee_earner_email,
                    "prospectEmail": prospect_email,
                    "maxResults": max_results,
                },
            )
            self._check(response, "search_inbox")
            data = response.json()
        emails = data.get("emails") if isinstance(data, dict) else None
        emails = emails if isinstance(emails, list) else []
        logger.info(
            "crm_api.inbox_searched",
            mailbox=fee_earner_email,
            count=len(emails),
        )
        return emails

    async def search_calls(self, phone_number: str, max_results: int) -> list[dict[str, Any]]:
        """Search the telephony log for calls with a phone number.

        POST /api/callrailCalls returns ``{"calls": [...], "totalCount": n}``.
        """
        async with self._client() as client:
            response = await client.post(
                "/api/callrailCalls",
                json={"phoneNumber": phone_number, "maxResults": max_results},
            )
            self._check(response, "search_calls")
            data = response.json()
        calls = data.get("calls") if isinstance(data, dict) else None
        calls = calls if isinstance(calls, list) else []
        logger.info("crm_api.calls_searched", count=len(calls))
        return calls

    # ── Forwarding ──────────────────────────────────────────────────────────

    async def forward_email(
        self,
        request: ForwardRequest,
        fee_earner_email: str | None = None,
    ) -> dict[str, Any]:
        """Submit a resolved forward.

        POST /api/forwardEmail. True forwards carry the original message
        identifiers and mailbox so the backend can forward in place; a
        synthetic forward is sent as a new message.

        Args:
            request: Resolved and user-confirmed forward request.
            fee_earner_email: Mailbox to send from when no owner is known.

        Returns:
            Backend response with ``success``, ``method`` and ``sourceMailbox``.
        """
        payload: dict[str, Any] = {
            "to": request.to,
            "cc": request.cc or "",
            "subject": request.subject,
            "body": request.body,
            "originalDate": request.original_date.isoformat(),
            "originalFrom": request.original_from,
            "feeEarnerEmail": fee_earner_email,
        }
        if request.mode == ForwardMode.TRUE_FORWARD:
            payload["messageId"] = request.message_id
            payload["internetMessageId"] = request.internet_message_id
            payload["mailboxEmail"] = request.mailbox_address

        async with self._client() as client:
            response = await client.post("/api/forwardEmail", json=payload)
            self._check(response, "forward_email")
            data = response.json()
        logger.info(
            "crm_api.forward_submitted",
            item_id=request.item_id,
            mode=request.mode.value,
            method=data.get("method") if isinstance(data, dict) else None,
        )
        return data if isinstance(data, dict) else {}
