"""Single-writer digest store.

DigestStateStore hands out one DigestState per ``teamId:dateISO`` name.
Each DigestState serialises its read-modify-write cycles behind its own
asyncio.Lock, so two appends (or an append and an approve) for the same
key never interleave while different keys proceed independently.

The persisted record lives in a StateStorage backend: in-process memory
for tests and single-node deployments, or Redis so the record survives
restarts. The lock is per process; run one writer process per key space
and let other processes reach it through the digest-state HTTP surface
(see RemoteDigestStateClient).

Storage faults propagate to the caller; nothing here retries.
"""

from __future__ import annotations

import asyncio
import json
import weakref
from collections.abc import Callable
from typing import Any, Protocol

import redis.asyncio as aioredis
import structlog

from src.recap.digests.merge import apply_approval, merge_append
from src.recap.digests.schemas import Digest, DigestPartial, now_ms

logger = structlog.get_logger(__name__)


def state_name(team_id: str, date_iso: str) -> str:
    """Name of the single-writer unit for a digest key."""
    return f"{team_id}:{date_iso}"


# ── State Storage Backends ───────────────────────────────────────────────────


class StateStorage(Protocol):
    """Durable storage behind the single-writer store."""

    async def get(self, name: str) -> dict[str, Any] | None: ...

    async def put(self, name: str, value: dict[str, Any]) -> None: ...


class InMemoryStateStorage:
    """Process-local state storage."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    async def get(self, name: str) -> dict[str, Any] | None:
        record = self._records.get(name)
        return dict(record) if record is not None else None

    async def put(self, name: str, value: dict[str, Any]) -> None:
        self._records[name] = dict(value)


class RedisStateStorage:
    """Redis-backed state storage, one JSON string per digest.

    Args:
        redis: Raw async Redis client.
        prefix: Key prefix; keys look like ``digest_state:{team}:{date}``.
    """

    def __init__(self, redis: aioredis.Redis, prefix: str = "digest_state") -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, name: str) -> str:
        return f"{self._prefix}:{name}"

    async def get(self, name: str) -> dict[str, Any] | None:
        raw = await self._redis.get(self._key(name))
        return json.loads(raw) if raw else None

    async def put(self, name: str, value: dict[str, Any]) -> None:
        await self._redis.set(self._key(name), json.dumps(value))


# ── Single-Writer Units ──────────────────────────────────────────────────────


class DigestState:
    """The single writer for one ``(teamId, dateISO)`` digest.

    State machine: NEW -> (append)* -> APPENDED -> (approve) -> APPROVED
    -> (send, external) -> SENT. Appends after approval still merge content
    and keep ``approved`` set.

    Args:
        team_id: Team of the digest.
        date_iso: Date of the digest (``YYYY-MM-DD``).
        storage: Backend holding the persisted record.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        team_id: str,
        date_iso: str,
        storage: StateStorage,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.team_id = team_id
        self.date_iso = date_iso
        self.name = state_name(team_id, date_iso)
        self._storage = storage
        self._clock = clock
        self._lock = asyncio.Lock()

    async def _load(self) -> Digest | None:
        raw = await self._storage.get(self.name)
        return Digest.model_validate(raw) if raw is not None else None

    async def append(self, partial: DigestPartial) -> None:
        """Merge ``partial`` into the stored digest, creating it if absent."""
        async with self._lock:
            current = await self._load()
            merged = merge_append(current, partial, self.team_id, self.date_iso, self._clock())
            await self._storage.put(self.name, merged.to_wire())
        logger.debug(
            "digest.appended",
            digest=self.name,
            summaries=len(merged.summaries),
            actions=len(merged.actions),
            created=current is None,
        )

    async def get(self) -> Digest | None:
        """Return the stored digest, or None if nothing was ever appended."""
        return await self._load()

    async def approve(self, edits: dict[str, Any] | None = None) -> None:
        """Apply ``edits`` and mark the digest approved.

        Raises:
            InvalidDigestEditError: If the edits do not validate; nothing is written.
        """
        async with self._lock:
            current = await self._load()
            approved = apply_approval(current, edits, self.team_id, self.date_iso, self._clock())
            await self._storage.put(self.name, approved.to_wire())
        logger.info(
            "digest.approved",
            digest=self.name,
            edited_fields=sorted((edits or {}).keys()),
        )


class DigestStateStore:
    """Registry of DigestState units, one per key, created on first use.

    Units are held weakly: a unit lives while a call on it is in flight
    (the running coroutine references it), so same-key calls share one
    lock, and it is dropped once idle. Reads of unknown keys and finished
    writes leave nothing behind.

    Args:
        storage: Backend shared by all units.
        clock: Time source passed to each unit.
    """

    def __init__(self, storage: StateStorage, clock: Callable[[], int] = now_ms) -> None:
        self._storage = storage
        self._clock = clock
        self._states: weakref.WeakValueDictionary[str, DigestState] = (
            weakref.WeakValueDictionary()
        )

    def get_state(self, team_id: str, date_iso: str) -> DigestState:
        """Return the single writer for a key."""
        name = state_name(team_id, date_iso)
        state = self._states.get(name)
        if state is None:
            state = DigestState(team_id, date_iso, self._storage, clock=self._clock)
            self._states[name] = state
        return state

    # DigestStateClient interface, used by DigestService

    async def append(self, team_id: str, date_iso: str, partial: DigestPartial) -> None:
        await self.get_state(team_id, date_iso).append(partial)

    async def get(self, team_id: str, date_iso: str) -> Digest | None:
        return await self.get_state(team_id, date_iso).get()

    async def approve(
        self, team_id: str, date_iso: str, edits: dict[str, Any] | None = None
    ) -> None:
        await self.get_state(team_id, date_iso).approve(edits)
