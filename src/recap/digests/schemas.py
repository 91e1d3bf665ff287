"""Pydantic v2 schemas for the digest domain.

Defines the Digest record, its summary and action entries, the partial
payload merged by an append, and the result objects returned by the
DigestService. Wire format is camelCase JSON (``teamId``, ``dateISO``,
``createdAt``); Python attributes are snake_case.
"""

from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

StoreSource = Literal["primary", "fallback"]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def dedupe(values: list[str]) -> list[str]:
    """Drop repeated strings, keeping first-seen order."""
    return list(dict.fromkeys(values))


class WireModel(BaseModel):
    """Base model serialised with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump to the JSON-ready camelCase form used in storage and HTTP."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Digest Entries ───────────────────────────────────────────────────────────


class DigestSummary(WireModel):
    """Summary of one meeting within a daily digest."""

    meeting_id: str
    title: str = ""
    bullets: list[str] = Field(default_factory=list)
    topics: list[str] | None = None


class DigestAction(WireModel):
    """An action item with its owner."""

    owner: str
    task: str
    due: str | None = None
    confidence: float | None = Field(None, ge=0.0, le=1.0)


# ── Digest ───────────────────────────────────────────────────────────────────


class Digest(WireModel):
    """Aggregated daily digest for one team and date."""

    team_id: str
    date_iso: str = Field(alias="dateISO")
    summaries: list[DigestSummary] = Field(default_factory=list)
    actions: list[DigestAction] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    approved: bool = False
    sent: bool = False
    created_at: int
    updated_at: int

    @field_validator("topics")
    @classmethod
    def _dedupe_topics(cls, v: list[str]) -> list[str]:
        return dedupe(v)

    @classmethod
    def empty(cls, team_id: str, date_iso: str, at: int) -> Digest:
        """Zero-value digest for a key that has never been written."""
        return cls(team_id=team_id, date_iso=date_iso, created_at=at, updated_at=at)


class DigestPartial(WireModel):
    """Content merged into a digest by a single append.

    Absent flags count as false: they can raise ``approved``/``sent`` but
    never lower them.
    """

    summaries: list[DigestSummary] = Field(default_factory=list)
    actions: list[DigestAction] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    approved: bool | None = None
    sent: bool | None = None


# ── Service Results ──────────────────────────────────────────────────────────


class DigestWriteResult(BaseModel):
    """Outcome of persist/approve on the DigestService."""

    ok: bool
    source: StoreSource | None = None
    error: str | None = None


class DigestReadResult(BaseModel):
    """Outcome of a digest lookup. ``digest`` is None when nothing is stored."""

    ok: bool
    source: StoreSource | None = None
    digest: Digest | None = None
    error: str | None = None


class DigestSendResult(BaseModel):
    """Outcome of the send gate."""

    ok: bool
    error: str | None = None
