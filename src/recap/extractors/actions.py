"""Line-based action item extraction.

A line such as ``Bob: fix the login bug`` or ``alice ship the release``
becomes an action owned by its first word token.
"""

from __future__ import annotations

import re

from src.recap.digests.schemas import DigestAction

MAX_ACTIONS = 20
MAX_TASK_CHARS = 200

_LINE_SPLIT = re.compile(r"\n+")
_ACTION_LINE = re.compile(r"^\s*(\w+):?\s+(.*)$")


def extract_actions(text: str) -> list[DigestAction]:
    """Extract up to 20 owner/task pairs from transcript lines.

    Lines that do not look like ``<word>[:] <text>`` are skipped.
    """
    items: list[DigestAction] = []
    for line in _LINE_SPLIT.split(text or ""):
        match = _ACTION_LINE.match(line)
        if match is None:
            continue
        items.append(
            DigestAction(owner=match.group(1), task=match.group(2)[:MAX_TASK_CHARS])
        )
        if len(items) == MAX_ACTIONS:
            break
    return items
