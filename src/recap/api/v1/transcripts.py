"""Transcript webhook endpoint.

The sender signs the raw body with HMAC-SHA256 (``X-Signature`` header,
hex, optional ``sha256=`` prefix). Requests with a bad or missing signature
are rejected with 401 before the body is parsed.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import ValidationError

import structlog

from src.recap.api.deps import get_transcript_pipeline, parse_json_body
from src.recap.core.security import require_webhook_signature
from src.recap.transcripts.pipeline import TranscriptPipeline
from src.recap.transcripts.schemas import IngestResult, TranscriptPayload

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/transcripts", tags=["transcripts"])


@router.post("/ingest", response_model=IngestResult)
async def ingest_transcript(
    body: bytes = Depends(require_webhook_signature),
    pipeline: TranscriptPipeline = Depends(get_transcript_pipeline),
):
    """Run a signed transcript through the extractors into its team's digest."""
    data = parse_json_body(body)
    try:
        payload = TranscriptPayload.model_validate(data)
    except ValidationError as exc:
        logger.warning("transcript.invalid_payload", error_count=exc.error_count())
        return JSONResponse(
            status_code=422,
            content={
                "ok": False,
                "error": "invalid transcript payload",
                "errors": [
                    {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                    for e in exc.errors()
                ],
            },
        )
    return await pipeline.ingest(payload)
