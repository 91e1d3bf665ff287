"""DigestService -- persist, read, approve and send-gate for daily digests.

Routes every call to the primary single-writer store (local
DigestStateStore or a RemoteDigestStateClient) and, when that store is
unbound or raises, to the fallback KeyValueDigestStore. The fallback has
weaker guarantees: it does not serialise writers, so concurrent appends
for one key can lose data. Each fallback activation is logged as
``digest.primary_store_failed`` and counted in
``digest_store_fallback_total`` so it never passes for a healthy primary.

Which stores are active is decided once, from settings, by
``DigestStoreConfig.from_settings`` and the ``build_*`` factories below.

Expected failures (no storage, missing digest, invalid edits, delivery
not wired) come back as result objects with ``ok=False``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

import redis.asyncio as aioredis
import structlog

from src.recap.config import (
    FallbackStoreMode,
    PrimaryStoreMode,
    Settings,
    StateStorageBackend,
)
from src.recap.core.monitoring import digest_store_fallback_total, track_store_call
from src.recap.digests.errors import DigestStorageUnavailableError, InvalidDigestEditError
from src.recap.digests.kv import InMemoryKeyValueStore, KeyValueDigestStore, RedisKeyValueStore
from src.recap.digests.remote import RemoteDigestStateClient
from src.recap.digests.schemas import (
    Digest,
    DigestPartial,
    DigestReadResult,
    DigestSendResult,
    DigestWriteResult,
    StoreSource,
)
from src.recap.digests.store import DigestStateStore, InMemoryStateStorage, RedisStateStorage

logger = structlog.get_logger(__name__)

T = TypeVar("T")

NO_STORAGE = "no storage bound"


class DigestBackend(Protocol):
    """Interface shared by DigestStateStore, RemoteDigestStateClient and KeyValueDigestStore."""

    async def append(self, team_id: str, date_iso: str, partial: DigestPartial) -> None: ...

    async def get(self, team_id: str, date_iso: str) -> Digest | None: ...

    async def approve(
        self, team_id: str, date_iso: str, edits: dict[str, Any] | None = None
    ) -> None: ...


class DigestService:
    """Façade over the primary and fallback digest stores.

    Args:
        primary: Single-writer store, or None if none is bound.
        fallback: Best-effort key-value store, or None.
        email_channel: Delivery channel name; empty means not configured.
    """

    def __init__(
        self,
        primary: DigestBackend | None,
        fallback: DigestBackend | None = None,
        email_channel: str = "",
    ) -> None:
        self._primary = primary
        self._fallback = fallback
        self._email_channel = email_channel

    @property
    def has_storage(self) -> bool:
        return self._primary is not None or self._fallback is not None

    async def _dispatch(
        self,
        operation: str,
        team_id: str,
        date_iso: str,
        call: Callable[[DigestBackend], Awaitable[T]],
    ) -> tuple[StoreSource, T]:
        """Run ``call`` on the primary store, then on the fallback if needed.

        InvalidDigestEditError is a caller error and is re-raised without
        trying the fallback.

        Raises:
            DigestStorageUnavailableError: If no bound store succeeded.
        """
        if self._primary is not None:
            try:
                async with track_store_call(operation, "primary"):
                    value = await call(self._primary)
            except InvalidDigestEditError:
                raise
            except Exception:
                logger.warning(
                    "digest.primary_store_failed",
                    operation=operation,
                    team_id=team_id,
                    date_iso=date_iso,
                    fallback_bound=self._fallback is not None,
                    exc_info=True,
                )
                if self._fallback is None:
                    raise DigestStorageUnavailableError(
                        "primary digest store failed and no fallback store is bound"
                    )
                digest_store_fallback_total.labels(operation).inc()
            else:
                return "primary", value

        if self._fallback is None:
            raise DigestStorageUnavailableError(NO_STORAGE)

        try:
            async with track_store_call(operation, "fallback"):
                value = await call(self._fallback)
        except InvalidDigestEditError:
            raise
        except Exception as exc:
            logger.error(
                "digest.fallback_store_failed",
                operation=operation,
                team_id=team_id,
                date_iso=date_iso,
                exc_info=True,
            )
            raise DigestStorageUnavailableError("fallback digest store failed") from exc

        logger.info(
            "digest.served_by_fallback",
            operation=operation,
            team_id=team_id,
            date_iso=date_iso,
        )
        return "fallback", value

    async def persist_digest(
        self, team_id: str, date_iso: str, partial: DigestPartial
    ) -> DigestWriteResult:
        """Append extractor output to the digest for ``(team_id, date_iso)``."""
        try:
            source, _ = await self._dispatch(
                "persist",
                team_id,
                date_iso,
                lambda store: store.append(team_id, date_iso, partial),
            )
        except DigestStorageUnavailableError as exc:
            return DigestWriteResult(ok=False, error=str(exc))
        return DigestWriteResult(ok=True, source=source)

    async def get_digest(self, team_id: str, date_iso: str) -> DigestReadResult:
        """Read the digest; ``digest`` is None when nothing was appended yet."""
        try:
            source, digest = await self._dispatch(
                "get",
                team_id,
                date_iso,
                lambda store: store.get(team_id, date_iso),
            )
        except DigestStorageUnavailableError as exc:
            return DigestReadResult(ok=False, error=str(exc))
        return DigestReadResult(ok=True, source=source, digest=digest)

    async def approve_digest(
        self,
        team_id: str,
        date_iso: str,
        edits: dict[str, Any] | None = None,
    ) -> DigestWriteResult:
        """Apply optional edits and mark the digest approved."""
        try:
            source, _ = await self._dispatch(
                "approve",
                team_id,
                date_iso,
                lambda store: store.approve(team_id, date_iso, edits),
            )
        except InvalidDigestEditError as exc:
            return DigestWriteResult(ok=False, error=str(exc))
        except DigestStorageUnavailableError as exc:
            return DigestWriteResult(ok=False, error=str(exc))
        return DigestWriteResult(ok=True, source=source)

    async def send_digest_email(
        self, team_id: str, date_iso: str, to: str | None = None
    ) -> DigestSendResult:
        """Send gate for digest delivery.

        No transport exists yet: this reports why the digest was not sent
        and never flips ``sent``. Reasons, in check order: no channel
        configured, digest unreadable or missing, digest not approved,
        delivery not implemented.
        """
        if not self._email_channel:
            return DigestSendResult(ok=False, error="no email channel configured")

        read = await self.get_digest(team_id, date_iso)
        if not read.ok:
            return DigestSendResult(ok=False, error=read.error)
        if read.digest is None:
            return DigestSendResult(ok=False, error="digest not found")
        if not read.digest.approved:
            return DigestSendResult(ok=False, error="digest not approved")

        logger.info(
            "digest.send_not_implemented",
            team_id=team_id,
            date_iso=date_iso,
            channel=self._email_channel,
            has_recipient=bool(to),
        )
        return DigestSendResult(ok=False, error="email delivery not implemented")


# ── Configuration & Wiring ───────────────────────────────────────────────────


@dataclass(frozen=True)
class DigestStoreConfig:
    """Which digest stores are active, resolved once from settings."""

    primary: PrimaryStoreMode
    state_storage: StateStorageBackend
    fallback: FallbackStoreMode
    state_url: str = ""
    state_timeout: float = 10.0
    email_channel: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> DigestStoreConfig:
        config = cls(
            primary=settings.DIGEST_PRIMARY_STORE,
            state_storage=settings.DIGEST_STATE_STORAGE,
            fallback=settings.DIGEST_FALLBACK_STORE,
            state_url=settings.DIGEST_STATE_URL,
            state_timeout=settings.DIGEST_STATE_TIMEOUT,
            email_channel=settings.DIGEST_EMAIL_CHANNEL,
        )
        if config.primary == PrimaryStoreMode.remote and not config.state_url:
            raise ValueError("DIGEST_STATE_URL is required when DIGEST_PRIMARY_STORE=remote")
        return config

    @property
    def uses_redis(self) -> bool:
        local_redis = (
            self.primary == PrimaryStoreMode.local
            and self.state_storage == StateStorageBackend.redis
        )
        return local_redis or self.fallback == FallbackStoreMode.redis


def build_state_store(
    config: DigestStoreConfig, redis_client: aioredis.Redis | None = None
) -> DigestStateStore | None:
    """Create the in-process single-writer store, if this process hosts it."""
    if config.primary != PrimaryStoreMode.local:
        return None
    if config.state_storage == StateStorageBackend.redis:
        if redis_client is None:
            raise ValueError("Redis state storage selected but no Redis client given")
        return DigestStateStore(RedisStateStorage(redis_client))
    return DigestStateStore(InMemoryStateStorage())


def build_digest_service(
    config: DigestStoreConfig,
    state_store: DigestStateStore | None = None,
    redis_client: aioredis.Redis | None = None,
) -> DigestService:
    """Wire a DigestService from a resolved config."""
    primary: DigestBackend | None = None
    if config.primary == PrimaryStoreMode.local:
        primary = state_store
    elif config.primary == PrimaryStoreMode.remote:
        primary = RemoteDigestStateClient(config.state_url, timeout=config.state_timeout)

    fallback: DigestBackend | None = None
    if config.fallback == FallbackStoreMode.redis:
        if redis_client is None:
            raise ValueError("Redis fallback store selected but no Redis client given")
        fallback = KeyValueDigestStore(RedisKeyValueStore(redis_client))
    elif config.fallback == FallbackStoreMode.memory:
        fallback = KeyValueDigestStore(InMemoryKeyValueStore())

    logger.info(
        "digest.stores_configured",
        primary=config.primary.value,
        state_storage=config.state_storage.value,
        fallback=config.fallback.value,
        email_channel_configured=bool(config.email_channel),
    )
    return DigestService(primary, fallback, email_channel=config.email_channel)
