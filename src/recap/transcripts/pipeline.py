"""TranscriptPipeline -- transcript text to digest append.

Steps, in order: redact PII, chunk the redacted text, summarize chunks into
bullets, extract action items and topic tags from the redacted text, then
append one meeting summary plus its actions and topics to the team's
digest for the day.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog

from src.recap.core.monitoring import transcripts_ingested_total
from src.recap.digests.schemas import DigestPartial, DigestSummary
from src.recap.digests.service import DigestService
from src.recap.extractors import (
    chunk_text,
    extract_actions,
    redact_pii,
    summarize,
    tag_topics,
)
from src.recap.extractors.chunking import DEFAULT_MAX_TOKENS
from src.recap.transcripts.schemas import IngestResult, TranscriptPayload

logger = structlog.get_logger(__name__)


def today_iso() -> str:
    """Today's date in UTC as ``YYYY-MM-DD``."""
    return datetime.now(timezone.utc).date().isoformat()


class TranscriptPipeline:
    """Runs the extractors over a transcript and persists the result.

    Args:
        service: DigestService receiving the append.
        default_team_id: Team used when the payload names none.
        chunk_max_tokens: Token budget per chunk for summarization.
    """

    def __init__(
        self,
        service: DigestService,
        default_team_id: str = "default",
        chunk_max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        self._service = service
        self._default_team_id = default_team_id
        self._chunk_max_tokens = chunk_max_tokens

    def build_partial(self, payload: TranscriptPayload, meeting_id: str) -> DigestPartial:
        """Extract digest content from a transcript without persisting it."""
        redacted = redact_pii(payload.text).text
        bullets = summarize(chunk_text(redacted, self._chunk_max_tokens))
        topics = tag_topics(redacted)
        return DigestPartial(
            summaries=[
                DigestSummary(
                    meeting_id=meeting_id,
                    title=payload.title,
                    bullets=bullets,
                    topics=topics,
                )
            ],
            actions=extract_actions(redacted),
            topics=topics,
        )

    async def ingest(self, payload: TranscriptPayload) -> IngestResult:
        """Process one transcript into its team's daily digest."""
        team_id = payload.team_id or self._default_team_id
        date_iso = payload.date_iso or today_iso()
        meeting_id = payload.meeting_id or str(uuid.uuid4())

        partial = self.build_partial(payload, meeting_id)
        persisted = await self._service.persist_digest(team_id, date_iso, partial)
        transcripts_ingested_total.labels(status="ok" if persisted.ok else "error").inc()

        log = logger.info if persisted.ok else logger.error
        log(
            "transcript.ingested",
            team_id=team_id,
            date_iso=date_iso,
            meeting_id=meeting_id,
            bullets=len(partial.summaries[0].bullets),
            actions=len(partial.actions),
            topics=partial.topics,
            source=persisted.source,
            error=persisted.error,
        )
        return IngestResult(
            ok=persisted.ok,
            team_id=team_id,
            date_iso=date_iso,
            meeting_id=meeting_id,
            persisted=persisted,
        )
