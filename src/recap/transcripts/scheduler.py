"""Daily finalize job for digests.

Each morning, checks yesterday's digest for every configured team and logs
where it stands in the approval flow so reviewers can chase pending ones.
The task function is decoupled from the loop that schedules it so tests
can call it directly.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import structlog

from src.recap.digests.schemas import DigestReadResult
from src.recap.digests.service import DigestService

logger = structlog.get_logger(__name__)


def digest_status(result: DigestReadResult) -> str:
    """Classify a DigestReadResult: error, missing, pending_approval, approved or sent."""
    if not result.ok:
        return "error"
    digest = result.digest
    if digest is None:
        return "missing"
    if digest.sent:
        return "sent"
    if digest.approved:
        return "approved"
    return "pending_approval"


async def finalize_yesterday(
    service: DigestService,
    team_ids: list[str],
    today: date | None = None,
) -> dict:
    """Report the status of yesterday's digest for each team.

    Args:
        service: DigestService to read from.
        team_ids: Teams to check.
        today: Reference date (defaults to today in UTC).

    Returns:
        ``{"dateISO": ..., "teams": {team_id: status}}``.
    """
    today = today or datetime.now(timezone.utc).date()
    date_iso = (today - timedelta(days=1)).isoformat()

    statuses: dict[str, str] = {}
    for team_id in team_ids:
        result = await service.get_digest(team_id, date_iso)
        statuses[team_id] = digest_status(result)

    pending = [t for t, s in statuses.items() if s == "pending_approval"]
    logger.info(
        "finalize.completed",
        date_iso=date_iso,
        teams=len(team_ids),
        pending_approval=pending,
    )
    return {"dateISO": date_iso, "teams": statuses}


def seconds_until(hour: int, now: datetime | None = None) -> float:
    """Seconds from ``now`` until the next ``hour:00`` UTC."""
    now = now or datetime.now(timezone.utc)
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def _finalize_loop(service: DigestService, team_ids: list[str], hour: int) -> None:
    while True:
        await asyncio.sleep(seconds_until(hour))
        try:
            await finalize_yesterday(service, team_ids)
        except Exception:
            logger.warning("finalize.failed", exc_info=True)


def start_finalize_scheduler(
    service: DigestService, team_ids: list[str], hour: int = 8
) -> asyncio.Task:
    """Start the daily finalize loop as a background task."""
    task = asyncio.create_task(_finalize_loop(service, team_ids, hour), name="digest-finalize")
    logger.info("finalize.scheduler_started", hour=hour, teams=team_ids)
    return task
