"""HTTP surface of the single-writer digest store.

One resource per digest key, ``/internal/digest-state/{team_id}/{date_iso}``:

- ``POST .../append``  -- body: partial digest JSON; -> ``{"ok": true}``
- ``GET  .../get``     -- -> digest JSON or ``null``
- ``POST .../approve`` -- body: ``{"edits"?: {...}}``; -> ``{"ok": true}``
- anything else        -- 404 ``{"ok": false, "error": "not found"}``

RemoteDigestStateClient is the consumer. Served only by the process
that hosts the DigestStateStore (DIGEST_PRIMARY_STORE=local).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

import structlog

from src.recap.api.deps import get_digest_state_store, parse_json_body
from src.recap.digests.errors import InvalidDigestEditError
from src.recap.digests.schemas import DigestPartial
from src.recap.digests.store import DigestStateStore

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/internal/digest-state/{team_id}/{date_iso}",
    tags=["digest-state"],
)


def _invalid(error: str, errors: list) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"ok": False, "error": error, "errors": errors},
    )


@router.post("/append")
async def append_digest_state(
    team_id: str,
    date_iso: str,
    request: Request,
    store: DigestStateStore = Depends(get_digest_state_store),
):
    """Merge a partial digest into the stored digest."""
    data = parse_json_body(await request.body())
    try:
        partial = DigestPartial.model_validate(data)
    except ValidationError as exc:
        return _invalid(
            "invalid digest payload",
            [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()],
        )
    await store.get_state(team_id, date_iso).append(partial)
    return {"ok": True}


@router.get("/get")
async def get_digest_state(
    team_id: str,
    date_iso: str,
    store: DigestStateStore = Depends(get_digest_state_store),
):
    """Return the stored digest, or ``null`` when the key was never written."""
    digest = await store.get_state(team_id, date_iso).get()
    return JSONResponse(content=digest.to_wire() if digest is not None else None)


@router.post("/approve")
async def approve_digest_state(
    team_id: str,
    date_iso: str,
    request: Request,
    store: DigestStateStore = Depends(get_digest_state_store),
):
    """Apply optional edits and mark the digest approved."""
    data = parse_json_body(await request.body())
    edits = data.get("edits") if isinstance(data, dict) else None
    if not isinstance(data, dict) or (edits is not None and not isinstance(edits, dict)):
        return _invalid("edits must be an object", [])
    try:
        await store.get_state(team_id, date_iso).approve(edits)
    except InvalidDigestEditError as exc:
        return _invalid(str(exc), exc.errors)
    return {"ok": True}


@router.api_route(
    "/{action}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def unknown_digest_state_action(team_id: str, date_iso: str, action: str):
    """Any other path under a digest key is not found."""
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"ok": False, "error": "not found"},
    )
