"""Deterministic content extractors for meeting transcripts.

Pure functions that turn raw transcript text into digest contributions:
redacted text, chunks, summary bullets, action items and topic tags.
"""

from src.recap.extractors.actions import extract_actions
from src.recap.extractors.chunking import chunk_text
from src.recap.extractors.redact import RedactionResult, redact_pii
from src.recap.extractors.summarize import summarize
from src.recap.extractors.topics import tag_topics

__all__ = [
    "RedactionResult",
    "chunk_text",
    "extract_actions",
    "redact_pii",
    "summarize",
    "tag_topics",
]
