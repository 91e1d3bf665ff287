"""Integration tests for the HTTP surfaces.

Uses a minimal FastAPI app with in-memory digest stores on app.state and
httpx AsyncClient over ASGITransport. Covers the signed transcript
webhook, the public digest endpoints, the internal digest-state surface,
health checks, and the full application factory.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.recap.api.errors import install_error_handlers
from src.recap.api.v1 import digest_state
from src.recap.api.v1.router import router as v1_router
from src.recap.core.security import SIGNATURE_HEADER, compute_signature
from src.recap.digests.service import DigestService
from src.recap.digests.store import DigestStateStore, InMemoryStateStorage
from src.recap.main import create_app, lifespan
from src.recap.transcripts.pipeline import TranscriptPipeline, today_iso

TEAM = "team-a"
DATE = "2024-05-01"
STATE_URL = f"/internal/digest-state/{TEAM}/{DATE}"


def _make_app() -> FastAPI:
    """Minimal app with the routers and error handlers, no lifespan."""
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(v1_router)
    app.include_router(digest_state.router)
    return app


def _signed(payload: dict, secret: str) -> tuple[bytes, dict]:
    body = json.dumps(payload).encode()
    return body, {SIGNATURE_HEADER: compute_signature(body, secret), "Content-Type": "application/json"}


@pytest_asyncio.fixture
async def client_and_service():
    """Client over an app with an in-memory primary store and an email channel."""
    app = _make_app()
    store = DigestStateStore(InMemoryStateStorage())
    service = DigestService(store, email_channel="email")
    app.state.digest_state_store = store
    app.state.digest_service = service
    app.state.transcript_pipeline = TranscriptPipeline(service)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, service


# ── Transcript Webhook ───────────────────────────────────────────────────────


class TestTranscriptIngest:
    """POST /api/v1/transcripts/ingest"""

    @pytest.mark.asyncio
    async def test_signed_transcript_lands_in_digest(self, client_and_service, webhook_secret):
        client, _ = client_and_service
        body, headers = _signed(
            {
                "teamId": TEAM,
                "dateISO": DATE,
                "meetingId": "m1",
                "title": "Standup",
                "participants": ["Alice", "Bob"],
                "text": "Alice: deploy the billing fix. Mail alice@example.com\nBob: check infra",
            },
            webhook_secret,
        )

        response = await client.post("/api/v1/transcripts/ingest", content=body, headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["teamId"] == TEAM
        assert data["dateISO"] == DATE
        assert data["meetingId"] == "m1"
        assert data["persisted"]["source"] == "primary"

        read = await client.get("/api/v1/digests", params={"team": TEAM, "date": DATE})
        digest = read.json()["digest"]
        assert digest["summaries"][0]["bullets"] == ["Alice: deploy the billing fix"]
        assert digest["topics"] == ["billing", "deploy", "infra"]
        assert [a["owner"] for a in digest["actions"]] == ["Alice", "Bob"]
        assert "alice@example.com" not in read.text

    @pytest.mark.asyncio
    async def test_prefixed_signature_accepted(self, client_and_service, webhook_secret):
        client, _ = client_and_service
        body = json.dumps({"teamId": TEAM, "dateISO": DATE, "text": "hi"}).encode()
        headers = {SIGNATURE_HEADER: "sha256=" + compute_signature(body, webhook_secret)}

        response = await client.post("/api/v1/transcripts/ingest", content=body, headers=headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_missing_signature(self, client_and_service, webhook_secret):
        client, _ = client_and_service
        response = await client.post("/api/v1/transcripts/ingest", json={"text": "hi"})
        assert response.status_code == 401
        assert response.json() == {"ok": False, "error": "bad signature"}

    @pytest.mark.asyncio
    async def test_tampered_body(self, client_and_service, webhook_secret):
        client, service = client_and_service
        body, headers = _signed({"teamId": TEAM, "dateISO": DATE, "text": "hi"}, webhook_secret)
        tampered = body.replace(b"hi", b"ho")

        response = await client.post("/api/v1/transcripts/ingest", content=tampered, headers=headers)

        assert response.status_code == 401
        assert (await service.get_digest(TEAM, DATE)).digest is None

    @pytest.mark.asyncio
    async def test_unconfigured_secret_rejects_everything(self, client_and_service):
        client, _ = client_and_service
        body, headers = _signed({"text": "hi"}, "")
        response = await client.post("/api/v1/transcripts/ingest", content=body, headers=headers)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_json(self, client_and_service, webhook_secret):
        client, _ = client_and_service
        body = b"{not json"
        headers = {SIGNATURE_HEADER: compute_signature(body, webhook_secret)}

        response = await client.post("/api/v1/transcripts/ingest", content=body, headers=headers)

        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "malformed JSON body"}

    @pytest.mark.asyncio
    async def test_invalid_fields(self, client_and_service, webhook_secret):
        client, _ = client_and_service
        body, headers = _signed({"dateISO": "yesterday", "text": "hi"}, webhook_secret)

        response = await client.post("/api/v1/transcripts/ingest", content=body, headers=headers)

        assert response.status_code == 422
        data = response.json()
        assert data["ok"] is False
        assert data["errors"][0]["loc"] == ["dateISO"]

    @pytest.mark.asyncio
    async def test_defaults_to_default_team_today(self, client_and_service, webhook_secret):
        client, _ = client_and_service
        body, headers = _signed({"text": "Bob: ship it"}, webhook_secret)

        response = await client.post("/api/v1/transcripts/ingest", content=body, headers=headers)
        assert response.json()["teamId"] == "default"
        assert response.json()["dateISO"] == today_iso()

        read = await client.get("/api/v1/digests")
        assert read.json()["digest"]["actions"][0]["owner"] == "Bob"


# ── Digest Endpoints ─────────────────────────────────────────────────────────


class TestDigestEndpoints:
    """GET /api/v1/digests, POST /approve, POST /send"""

    @pytest.mark.asyncio
    async def test_missing_digest(self, client_and_service):
        client, _ = client_and_service
        response = await client.get("/api/v1/digests", params={"team": TEAM, "date": DATE})
        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["digest"] is None

    @pytest.mark.asyncio
    async def test_bad_date_query(self, client_and_service):
        client, _ = client_and_service
        response = await client.get("/api/v1/digests", params={"date": "2024/05/01"})
        assert response.status_code == 422
        assert response.json()["ok"] is False

    @pytest.mark.asyncio
    async def test_approve_with_edits(self, client_and_service):
        client, _ = client_and_service
        await client.post(
            f"{STATE_URL}/append",
            json={"summaries": [{"meetingId": "m1", "bullets": ["did X"]}]},
        )

        response = await client.post(
            "/api/v1/digests/approve",
            json={"teamId": TEAM, "dateISO": DATE, "edits": {"summaries": []}},
        )

        assert response.status_code == 200
        assert response.json()["ok"] is True
        digest = (await client.get("/api/v1/digests", params={"team": TEAM, "date": DATE})).json()["digest"]
        assert digest["approved"] is True
        assert digest["summaries"] == []

    @pytest.mark.asyncio
    async def test_approve_invalid_edits(self, client_and_service):
        client, _ = client_and_service
        response = await client.post(
            "/api/v1/digests/approve",
            json={"teamId": TEAM, "dateISO": DATE, "edits": {"actions": "nope"}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is False
        assert data["error"].startswith("Invalid digest edits")

    @pytest.mark.asyncio
    async def test_approve_requires_team(self, client_and_service):
        client, _ = client_and_service
        response = await client.post("/api/v1/digests/approve", json={"dateISO": DATE})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_send_gate(self, client_and_service):
        client, _ = client_and_service
        payload = {"teamId": TEAM, "dateISO": DATE, "to": "team@example.com"}

        missing = await client.post("/api/v1/digests/send", json=payload)
        assert missing.json() == {"ok": False, "error": "digest not found"}

        await client.post(f"{STATE_URL}/append", json={"topics": ["infra"]})
        unapproved = await client.post("/api/v1/digests/send", json=payload)
        assert unapproved.json()["error"] == "digest not approved"

        await client.post("/api/v1/digests/approve", json={"teamId": TEAM, "dateISO": DATE})
        approved = await client.post("/api/v1/digests/send", json=payload)
        assert approved.json()["error"] == "email delivery not implemented"

    @pytest.mark.asyncio
    async def test_send_rejects_bad_recipient(self, client_and_service):
        client, _ = client_and_service
        response = await client.post(
            "/api/v1/digests/send",
            json={"teamId": TEAM, "dateISO": DATE, "to": "not-an-email"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_service_missing_is_503(self):
        transport = ASGITransport(app=_make_app())
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/digests")
        assert response.status_code == 503
        assert response.json()["ok"] is False


# ── Digest-State Surface ─────────────────────────────────────────────────────


class TestDigestStateSurface:
    """/internal/digest-state/{teamId}/{dateISO}/..."""

    @pytest.mark.asyncio
    async def test_append_get_approve(self, client_and_service):
        client, _ = client_and_service

        appended = await client.post(
            f"{STATE_URL}/append",
            json={"summaries": [{"meetingId": "m1", "title": "Standup", "bullets": ["did X"]}], "topics": ["infra"]},
        )
        assert appended.json() == {"ok": True}
        await client.post(
            f"{STATE_URL}/append",
            json={"actions": [{"owner": "Bob", "task": "fix bug"}], "topics": ["infra", "deploy"]},
        )

        digest = (await client.get(f"{STATE_URL}/get")).json()
        assert digest["teamId"] == TEAM
        assert digest["dateISO"] == DATE
        assert len(digest["summaries"]) == 1
        assert len(digest["actions"]) == 1
        assert digest["topics"] == ["infra", "deploy"]
        assert digest["approved"] is False

        approved = await client.post(f"{STATE_URL}/approve", json={})
        assert approved.json() == {"ok": True}
        assert (await client.get(f"{STATE_URL}/get")).json()["approved"] is True

    @pytest.mark.asyncio
    async def test_get_missing_is_null(self, client_and_service):
        client, _ = client_and_service
        response = await client.get(f"{STATE_URL}/get")
        assert response.status_code == 200
        assert response.json() is None

    @pytest.mark.asyncio
    async def test_empty_body_append(self, client_and_service):
        client, _ = client_and_service
        response = await client.post(f"{STATE_URL}/append", content=b"")
        assert response.json() == {"ok": True}
        assert (await client.get(f"{STATE_URL}/get")).json()["summaries"] == []

    @pytest.mark.asyncio
    async def test_unknown_action_is_404(self, client_and_service):
        client, _ = client_and_service
        response = await client.post(f"{STATE_URL}/delete", json={})
        assert response.status_code == 404
        assert response.json() == {"ok": False, "error": "not found"}

    @pytest.mark.asyncio
    async def test_malformed_json_is_400(self, client_and_service):
        client, _ = client_and_service
        response = await client.post(f"{STATE_URL}/append", content=b"{oops")
        assert response.status_code == 400
        assert response.json()["ok"] is False

    @pytest.mark.asyncio
    async def test_invalid_partial_is_422(self, client_and_service):
        client, _ = client_and_service
        response = await client.post(f"{STATE_URL}/append", json={"summaries": "nope"})
        assert response.status_code == 422
        assert response.json()["ok"] is False

    @pytest.mark.asyncio
    async def test_invalid_edits_are_422(self, client_and_service):
        client, _ = client_and_service
        bad_type = await client.post(f"{STATE_URL}/approve", json={"edits": ["summaries"]})
        assert bad_type.status_code == 422

        # approved is overwritten after the edits, so the edited value is never validated
        forced = await client.post(f"{STATE_URL}/approve", json={"edits": {"approved": "maybe"}})
        assert forced.status_code == 200

        bad_field = await client.post(f"{STATE_URL}/approve", json={"edits": {"createdAt": "soon"}})
        assert bad_field.status_code == 422
        assert bad_field.json()["errors"][0]["loc"] == ["createdAt"]

        snake_case = await client.post(f"{STATE_URL}/approve", json={"edits": {"created_at": 5}})
        assert snake_case.status_code == 422
        assert snake_case.json()["errors"][0]["loc"] == ["created_at"]


# ── Health ───────────────────────────────────────────────────────────────────


class TestHealth:
    """Liveness and readiness checks."""

    @pytest.mark.asyncio
    async def test_liveness(self, client_and_service):
        client, _ = client_and_service
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_ready_with_storage(self, client_and_service):
        client, _ = client_and_service
        response = await client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"] == {"digest_storage": "ok", "redis": "unused"}

    @pytest.mark.asyncio
    async def test_not_ready_without_storage(self):
        app = _make_app()
        app.state.digest_service = DigestService(None)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_redis_ping_checked(self):
        app = _make_app()
        app.state.digest_service = DigestService(None, AsyncMock())
        app.state.redis_client = AsyncMock()
        app.state.redis_client.ping.side_effect = ConnectionError("refused")
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health/ready")
        assert response.status_code == 503
        assert response.json()["checks"]["redis"] == "error"


# ── Application Factory ──────────────────────────────────────────────────────


class TestCreateApp:
    """The full app: middleware, /metrics, lifespan wiring."""

    @pytest.mark.asyncio
    async def test_metrics_and_request_id(self):
        app = create_app()
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            health = await client.get("/health")
            metrics = await client.get("/metrics")

        assert "X-Request-ID" in health.headers
        assert metrics.status_code == 200
        assert "digest_store_operations_total" in metrics.text
        assert "http_requests_total" in metrics.text

    @pytest.mark.asyncio
    async def test_inbound_request_id_kept(self):
        app = create_app()
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health", headers={"X-Request-ID": "upstream-1"})
        assert response.headers["X-Request-ID"] == "upstream-1"

    @pytest.mark.asyncio
    async def test_lifespan_wires_memory_stores(self):
        app = create_app()
        async with lifespan(app):
            assert app.state.redis_client is None
            assert isinstance(app.state.digest_state_store, DigestStateStore)
            assert isinstance(app.state.digest_service, DigestService)
            assert app.state.digest_service.has_storage is True
            assert isinstance(app.state.transcript_pipeline, TranscriptPipeline)
