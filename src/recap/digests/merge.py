"""Digest merge rules shared by the primary and fallback stores.

Both stores apply the same transitions; only their concurrency guarantees
differ. Append is a content merge that never discards or reorders entries
and never lowers the approved/sent flags. Approve is a shallow field
overwrite followed by forcing ``approved`` on.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from src.recap.digests.errors import InvalidDigestEditError
from src.recap.digests.schemas import Digest, DigestPartial, dedupe

logger = structlog.get_logger(__name__)

# Fields that identify the storage key; edits cannot move a digest
KEY_FIELDS = ("teamId", "dateISO")

# camelCase keys an approval edit may carry
EDITABLE_FIELDS = frozenset(field.alias or name for name, field in Digest.model_fields.items())


def merge_append(
    current: Digest | None,
    partial: DigestPartial,
    team_id: str,
    date_iso: str,
    at: int,
) -> Digest:
    """Return ``current`` with ``partial`` appended.

    Args:
        current: Stored digest, or None if the key has never been written.
        partial: Content to merge.
        team_id: Team of the storage key.
        date_iso: Date of the storage key.
        at: Mutation timestamp (epoch ms).

    Returns:
        New Digest; ``current`` is not modified.
    """
    base = current or Digest.empty(team_id, date_iso, at)
    return base.model_copy(
        update={
            "summaries": [*base.summaries, *partial.summaries],
            "actions": [*base.actions, *partial.actions],
            "topics": dedupe([*base.topics, *partial.topics]),
            "approved": base.approved or bool(partial.approved),
            "sent": base.sent or bool(partial.sent),
            "updated_at": at,
        }
    )


def apply_approval(
    current: Digest | None,
    edits: dict[str, Any] | None,
    team_id: str,
    date_iso: str,
    at: int,
) -> Digest:
    """Return ``current`` with ``edits`` overwritten and ``approved`` forced on.

    Edits use the camelCase wire keys. Any top-level field may be replaced,
    including emptying ``summaries`` or ``actions``. ``teamId``/``dateISO``
    stay pinned to the storage key and ``updatedAt`` is set to ``at``.
    Keys that are not wire fields (``created_at``, ``bogus``) are rejected.

    Raises:
        InvalidDigestEditError: If an edit key is unknown or the edited record
            fails validation.
    """
    unknown = sorted(set(edits or {}) - EDITABLE_FIELDS)
    if unknown:
        raise InvalidDigestEditError(
            [
                {"loc": [key], "msg": "Unknown digest field", "type": "extra_forbidden"}
                for key in unknown
            ]
        )

    base = current or Digest.empty(team_id, date_iso, at)
    data = base.to_wire()
    data.update(edits or {})
    data.update({"teamId": team_id, "dateISO": date_iso, "approved": True, "updatedAt": at})

    if (edits or {}).get("sent") and not base.sent:
        # Open product question: edits can mark a digest sent without delivery.
        logger.warning("digest.sent_set_by_edits", team_id=team_id, date_iso=date_iso)

    try:
        return Digest.model_validate(data)
    except ValidationError as exc:
        errors = [
            {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
            for e in exc.errors()
        ]
        raise InvalidDigestEditError(errors) from exc
