"""Pydantic schemas for transcript ingestion."""

from __future__ import annotations

from pydantic import Field

from src.recap.digests.schemas import DigestWriteResult, WireModel


class TranscriptPayload(WireModel):
    """Inbound transcript as posted by the webhook sender.

    Missing ``teamId``/``dateISO``/``meetingId`` are filled in by the
    pipeline (default team, today's UTC date, generated id).
    """

    team_id: str | None = None
    date_iso: str | None = Field(None, alias="dateISO", pattern=r"^\d{4}-\d{2}-\d{2}$")
    meeting_id: str | None = None
    title: str = ""
    participants: list[str] = Field(default_factory=list)
    text: str = ""


class IngestResult(WireModel):
    """Where a transcript landed and how it was persisted."""

    ok: bool
    team_id: str
    date_iso: str = Field(alias="dateISO")
    meeting_id: str
    persisted: DigestWriteResult
