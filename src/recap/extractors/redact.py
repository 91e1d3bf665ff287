"""PII redaction for transcript text.

Masks email addresses and phone-number-shaped digit runs before any
content reaches the digest store.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

EMAIL_PLACEHOLDER = "[redacted-email]"
PHONE_PLACEHOLDER = "[redacted-phone]"

_EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# 9+ characters: optional +, ASCII digits with spaces/dashes/parentheses, ending on a digit
_PHONE = re.compile(r"\+?[0-9][0-9\s\-()]{7,}[0-9]")


class RedactionResult(BaseModel):
    """Redacted text plus the reported replacement count."""

    text: str
    # Always 0: counting matches is pending a product decision.
    replaced: int = 0


def redact_pii(text: str) -> RedactionResult:
    """Replace emails and phone numbers with fixed placeholders."""
    cleaned = _EMAIL.sub(EMAIL_PLACEHOLDER, text or "")
    cleaned = _PHONE.sub(PHONE_PLACEHOLDER, cleaned)
    return RedactionResult(text=cleaned)
