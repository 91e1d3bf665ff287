"""First-sentence summarization placeholder.

Each chunk contributes one bullet: its text up to the first sentence
terminator. Summary quality is delegated to an external model; this keeps
the pipeline deterministic.
"""

from __future__ import annotations

import re

MAX_BULLETS = 5
EMPTY_BULLET = "(no content)"

_SENTENCE_END = re.compile(r"[.\n]")


def first_sentence(chunk: str) -> str:
    """Return the trimmed text before the first ``.`` or newline."""
    head = _SENTENCE_END.split(chunk.strip(), maxsplit=1)[0]
    return head.strip()


def summarize(chunks: list[str]) -> list[str]:
    """Produce at most five bullets, one per chunk, in chunk order."""
    bullets = [first_sentence(chunk) or EMPTY_BULLET for chunk in chunks]
    return bullets[:MAX_BULLETS]
