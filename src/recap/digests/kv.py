"""Best-effort key-value digest store used as the fallback path.

Records live under ``digest:{teamId}:{dateISO}`` as JSON strings. Appends
and approvals are read-modify-write cycles with NO atomicity: two writers
racing on the same key can overwrite each other and silently drop one
contribution. The merge rules match the primary store, but they only hold
when writes to a key are not concurrent. Use this path for availability,
never as an equivalent of DigestStateStore.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, Protocol

import redis.asyncio as aioredis
import structlog

from src.recap.digests.merge import apply_approval, merge_append
from src.recap.digests.schemas import Digest, DigestPartial, now_ms

logger = structlog.get_logger(__name__)


def digest_key(team_id: str, date_iso: str) -> str:
    """Fallback storage key for a digest."""
    return f"digest:{team_id}:{date_iso}"


class KeyValueStore(Protocol):
    """Minimal string key-value interface."""

    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local key-value store."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def put(self, key: str, value: str) -> None:
        self.data[key] = value


class RedisKeyValueStore:
    """Key-value store on plain Redis GET/SET."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    async def put(self, key: str, value: str) -> None:
        await self._redis.set(key, value)


class KeyValueDigestStore:
    """Digest operations over a KeyValueStore, without per-key serialisation.

    Args:
        kv: Backing key-value store.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(self, kv: KeyValueStore, clock: Callable[[], int] = now_ms) -> None:
        self._kv = kv
        self._clock = clock

    async def get(self, team_id: str, date_iso: str) -> Digest | None:
        raw = await self._kv.get(digest_key(team_id, date_iso))
        return Digest.model_validate(json.loads(raw)) if raw else None

    async def _put(self, digest: Digest) -> None:
        await self._kv.put(
            digest_key(digest.team_id, digest.date_iso),
            json.dumps(digest.to_wire()),
        )

    async def append(self, team_id: str, date_iso: str, partial: DigestPartial) -> None:
        current = await self.get(team_id, date_iso)
        await self._put(merge_append(current, partial, team_id, date_iso, self._clock()))
        logger.debug("digest.kv_appended", team_id=team_id, date_iso=date_iso)

    async def approve(
        self, team_id: str, date_iso: str, edits: dict[str, Any] | None = None
    ) -> None:
        current = await self.get(team_id, date_iso)
        await self._put(apply_approval(current, edits, team_id, date_iso, self._clock()))
        logger.info("digest.kv_approved", team_id=team_id, date_iso=date_iso)
