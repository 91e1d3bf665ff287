"""FastAPI dependency injection for digest services.

Collaborators are built once in the application lifespan and stored on
``app.state``. These dependencies fetch them for endpoint signatures and
answer 503 when a collaborator was not configured for this process.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import HTTPException, Request, status

from src.recap.digests.service import DigestService
from src.recap.digests.store import DigestStateStore
from src.recap.transcripts.pipeline import TranscriptPipeline


def get_digest_service(request: Request) -> DigestService:
    """Retrieve DigestService from app.state, 503 if not available."""
    service = getattr(request.app.state, "digest_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Digest service not initialized",
        )
    return service


def get_digest_state_store(request: Request) -> DigestStateStore:
    """Retrieve the in-process DigestStateStore, 503 if this process does not host it."""
    store = getattr(request.app.state, "digest_state_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Digest state store not hosted by this process",
        )
    return store


def get_transcript_pipeline(request: Request) -> TranscriptPipeline:
    """Retrieve TranscriptPipeline from app.state, 503 if not available."""
    pipeline = getattr(request.app.state, "transcript_pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Transcript pipeline not initialized",
        )
    return pipeline


def parse_json_body(body: bytes) -> Any:
    """Decode a raw JSON request body; an empty body decodes to ``{}``.

    Raises:
        HTTPException(400): If the body is not valid JSON.
    """
    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="malformed JSON body",
        )
