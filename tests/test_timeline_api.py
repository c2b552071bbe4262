"""Integration tests for the timeline API endpoints.

Uses FakeCrmBackend on app.state.crm_client and httpx AsyncClient with
ASGITransport. Covers full load, per-source re-sync, sync preparation,
forward resolution and submission, health, and 503 when the CRM client
is not initialized.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.enquiry_timeline.timeline.schemas import SourceKind
from tests.fakes import FakeCrmBackend, make_email, make_enquiry

ENQUIRY = make_enquiry()


def _make_app(crm_client=None):
    """Create a minimal FastAPI app with the v1 routers."""
    from fastapi import FastAPI

    from src.enquiry_timeline.api.v1.router import router

    app = FastAPI()
    app.include_router(router)
    app.state.crm_client = crm_client
    return app


@pytest_asyncio.fixture
async def client_and_backend():
    """Create test client backed by an in-memory CRM."""
    backend = FakeCrmBackend()
    app = _make_app(backend)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, backend


# ── Load ────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_load_timeline(client_and_backend):
    """POST /api/v1/timeline -> merged items, per-source state, summary."""
    client, backend = client_and_backend
    backend.instructions["P-100"] = {"MatterId": "HLX-1"}

    response = await client.post("/api/v1/timeline", json={"enquiry": ENQUIRY})

    assert response.status_code == 200
    data = response.json()
    assert data["enquiry_id"] == "E-1001"
    assert [i["id"] for i in data["items"]] == ["call-CAL-42", "email-AAMkAGI1", "pitch-7"]
    assert data["items"][2]["metadata"]["kind"] == "pitch"
    assert {s: v["status"] for s, v in data["sources"].items()} == {
        "pitches": "success",
        "emails": "success",
        "calls": "success",
    }
    assert data["instruction_statuses"]["pitch-7"]["matter"] == "complete"
    assert data["summary"]["total"] == 3
    assert data["summary"]["counts"]["pitch"] == 1


@pytest.mark.asyncio
async def test_load_timeline_filtered_by_type(client_and_backend):
    client, _ = client_and_backend

    response = await client.post(
        "/api/v1/timeline", json={"enquiry": ENQUIRY, "item_type": "pitch"}
    )

    assert response.status_code == 200
    assert [i["id"] for i in response.json()["items"]] == ["pitch-7"]


@pytest.mark.asyncio
async def test_load_timeline_with_failed_source(client_and_backend):
    """A failing source still answers 200 with that source in error."""
    client, backend = client_and_backend
    backend.failures[SourceKind.EMAILS] = RuntimeError("mailbox search timed out")

    response = await client.post("/api/v1/timeline", json={"enquiry": ENQUIRY})

    assert response.status_code == 200
    data = response.json()
    assert data["sources"]["emails"]["status"] == "error"
    assert data["sources"]["emails"]["error"] == "mailbox search timed out"
    assert len(data["items"]) == 2


# ── Sync ────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_prepare_call_sync(client_and_backend):
    client, _ = client_and_backend

    response = await client.post(
        "/api/v1/timeline/sync/calls/prepare", json={"enquiry": ENQUIRY}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "calls"
    assert data["params"]["phone_number"] == "+447700900123"
    assert data["params"]["max_results"] == 50
    assert data["warnings"] == []


@pytest.mark.asyncio
async def test_sync_emails_merges_into_existing_items(client_and_backend):
    client, backend = client_and_backend
    loaded = (await client.post("/api/v1/timeline", json={"enquiry": ENQUIRY})).json()

    backend.emails = [make_email(id="AAMkAGI2", receivedDateTime="2024-03-05T08:00:00Z")]
    response = await client.post(
        "/api/v1/timeline/sync/emails",
        json={
            "enquiry": ENQUIRY,
            "items": loaded["items"],
            "params": {
                "fee_earner_email": "lz@helix-law.com",
                "prospect_email": "alex.client@example.com",
                "max_results": 500,
            },
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["items"][0]["id"] == "email-AAMkAGI2"
    assert len(data["items"]) == 4
    assert data["results"][0]["status"] == "success"
    assert backend.calls_to("search_inbox")[-1] == (
        "lz@helix-law.com",
        "alex.client@example.com",
        100,
    )


@pytest.mark.asyncio
async def test_sync_accepts_items_without_timezone(client_and_backend):
    """Held items with naive timestamps are read as UTC and merge cleanly."""
    client, _ = client_and_backend
    note = {
        "id": "note-1",
        "type": "note",
        "timestamp": "2024-01-01T00:00:00",
        "subject": "Intake call notes",
        "author": "Jane Smith",
    }

    response = await client.post(
        "/api/v1/timeline/sync/pitches",
        json={"enquiry": ENQUIRY, "items": [note]},
    )

    assert response.status_code == 200
    items = response.json()["items"]
    assert [i["id"] for i in items] == ["pitch-7", "note-1"]
    assert items[1]["timestamp"] == "2024-01-01T00:00:00Z"


@pytest.mark.asyncio
async def test_sync_unknown_source_is_422(client_and_backend):
    client, _ = client_and_backend
    response = await client.post("/api/v1/timeline/sync/notes", json={"enquiry": ENQUIRY})
    assert response.status_code == 422


# ── Forwarding ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_resolve_and_submit_forward(client_and_backend):
    client, backend = client_and_backend
    loaded = (await client.post("/api/v1/timeline", json={"enquiry": ENQUIRY})).json()
    email = next(i for i in loaded["items"] if i["type"] == "email")

    resolved = await client.post(
        "/api/v1/timeline/forward/resolve",
        json={"enquiry": ENQUIRY, "item": email},
    )

    assert resolved.status_code == 200
    request = resolved.json()
    assert request["mode"] == "true_forward"
    assert request["to"] == "jane.smith@helix-law.com"

    submitted = await client.post(
        "/api/v1/timeline/forward",
        json={"enquiry": ENQUIRY, "request": request},
    )

    assert submitted.status_code == 200
    assert submitted.json()["success"] is True
    assert submitted.json()["method"] == "graph-forward-action"
    assert len(backend.calls_to("forward_email")) == 1


@pytest.mark.asyncio
async def test_resolve_forward_for_call_is_400(client_and_backend):
    client, _ = client_and_backend
    loaded = (await client.post("/api/v1/timeline", json={"enquiry": ENQUIRY})).json()
    call = next(i for i in loaded["items"] if i["type"] == "call")

    response = await client.post(
        "/api/v1/timeline/forward/resolve",
        json={"enquiry": ENQUIRY, "item": call},
    )

    assert response.status_code == 400
    assert "cannot be forwarded" in response.json()["detail"]


# ── Health & Wiring ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client_and_backend):
    client, _ = client_and_backend

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_timeline_api_503_when_not_initialized():
    """app.state.crm_client = None -> 503."""
    app = _make_app(None)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/v1/timeline", json={"enquiry": ENQUIRY})
        ready = await client.get("/health/ready")

    assert response.status_code == 503
    assert ready.status_code == 503
    assert ready.json()["checks"]["crm_client"] == "missing"
