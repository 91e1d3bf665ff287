"""Fixed-size transcript chunking.

Uses the rough chars-per-token ratio for token estimation rather than a
tokenizer, so chunk boundaries fall at exact character offsets and never
drop or duplicate text.
"""

from __future__ import annotations

CHARS_PER_TOKEN = 4
DEFAULT_MAX_TOKENS = 1500


def chunk_text(text: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> list[str]:
    """Split text into consecutive chunks of ``max_tokens * 4`` characters.

    The last chunk may be shorter. Joining the chunks reproduces ``text``
    exactly. Empty text yields no chunks.

    Args:
        text: Transcript text.
        max_tokens: Approximate token budget per chunk, at least 1.

    Returns:
        Ordered list of chunks.

    Raises:
        ValueError: If max_tokens is less than 1.
    """
    if max_tokens < 1:
        raise ValueError(f"max_tokens must be >= 1, got {max_tokens}")
    size = max_tokens * CHARS_PER_TOKEN
    return [text[i:i + size] for i in range(0, len(text), size)]
