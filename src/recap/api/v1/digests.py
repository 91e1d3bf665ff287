"""REST endpoints for reading, approving and sending daily digests.

Every endpoint answers with the DigestService result object, so expected
failures (no storage bound, invalid edits, delivery not configured) are
``200`` responses with ``ok: false`` and a reason.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import EmailStr, Field

import structlog

from src.recap.api.deps import get_digest_service
from src.recap.config import get_settings
from src.recap.digests.schemas import (
    DigestReadResult,
    DigestSendResult,
    DigestWriteResult,
    WireModel,
)
from src.recap.digests.service import DigestService
from src.recap.transcripts.pipeline import today_iso

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/digests", tags=["digests"])

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# ── Request Schemas ──────────────────────────────────────────────────────────


class ApproveDigestRequest(WireModel):
    """Approval of one digest, with optional top-level field overwrites."""

    team_id: str = Field(min_length=1)
    date_iso: str = Field(alias="dateISO", pattern=DATE_PATTERN)
    edits: dict[str, Any] | None = None


class SendDigestRequest(WireModel):
    """Request to deliver an approved digest."""

    team_id: str = Field(min_length=1)
    date_iso: str = Field(alias="dateISO", pattern=DATE_PATTERN)
    to: EmailStr | None = None


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=DigestReadResult)
async def read_digest(
    team: str | None = Query(default=None, description="Team id (defaults to the configured team)"),
    date: str | None = Query(default=None, pattern=DATE_PATTERN, description="Digest date, YYYY-MM-DD (defaults to today UTC)"),
    service: DigestService = Depends(get_digest_service),
) -> DigestReadResult:
    """Get the digest for a team and date."""
    team_id = team or get_settings().DEFAULT_TEAM_ID
    return await service.get_digest(team_id, date or today_iso())


@router.post("/approve", response_model=DigestWriteResult)
async def approve_digest(
    body: ApproveDigestRequest,
    service: DigestService = Depends(get_digest_service),
) -> DigestWriteResult:
    """Approve a digest, applying any edits first."""
    result = await service.approve_digest(body.team_id, body.date_iso, body.edits)
    logger.info(
        "digest.approve_requested",
        team_id=body.team_id,
        date_iso=body.date_iso,
        ok=result.ok,
        source=result.source,
    )
    return result


@router.post("/send", response_model=DigestSendResult)
async def send_digest(
    body: SendDigestRequest,
    service: DigestService = Depends(get_digest_service),
) -> DigestSendResult:
    """Send gate: reports why the digest cannot be delivered yet."""
    return await service.send_digest_email(body.team_id, body.date_iso, body.to)
