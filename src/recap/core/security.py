"""Webhook signature verification.

Inbound transcript webhooks are signed with HMAC-SHA256 over the raw
request body. The hex digest travels in the ``X-Signature`` header,
optionally prefixed with ``sha256=``.
"""

from __future__ import annotations

import hashlib
import hmac

import structlog
from fastapi import HTTPException, Request, status

from src.recap.config import get_settings

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "X-Signature"
SIGNATURE_PREFIX = "sha256="


def compute_signature(payload: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``payload`` under ``secret``."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, header_sig: str | None, secret: str) -> bool:
    """Check a webhook signature in constant time.

    An empty secret never verifies: there is no "auth disabled" mode.

    Args:
        payload: Raw request body bytes.
        header_sig: Header value, hex digest with optional ``sha256=`` prefix.
        secret: Shared webhook secret.

    Returns:
        True only if the signature matches.
    """
    if not secret or not header_sig:
        return False
    provided = header_sig
    if provided.startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected.encode("ascii"), provided.encode("ascii", "replace"))


async def require_webhook_signature(request: Request) -> bytes:
    """FastAPI dependency: verify the request signature and return the body.

    Raises:
        HTTPException(401): If the signature is missing or wrong.
    """
    body = await request.body()
    settings = get_settings()
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), settings.WEBHOOK_SECRET):
        logger.warning(
            "webhook.bad_signature",
            path=request.url.path,
            has_header=SIGNATURE_HEADER in request.headers,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="bad signature",
        )
    return body
