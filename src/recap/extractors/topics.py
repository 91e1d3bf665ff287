"""Keyword topic tagging."""

from __future__ import annotations

MAX_TOPICS = 5

# (substring, tag) in check order
TOPIC_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("bill", "billing"),
    ("deploy", "deploy"),
    ("security", "security"),
    ("infra", "infra"),
)


def tag_topics(text: str) -> list[str]:
    """Return the topic tags whose keyword occurs in ``text`` (case-insensitive)."""
    lowered = (text or "").lower()
    tags = [tag for keyword, tag in TOPIC_KEYWORDS if keyword in lowered]
    return tags[:MAX_TOPICS]
