"""Async HTTP client for a digest-state surface served by another process.

When the single-writer store runs in a dedicated process, other replicas
reach it through its ``/append``, ``/get`` and ``/approve`` endpoints.
The client exposes the same interface as DigestStateStore so the
DigestService cannot tell the two apart.

No retries: a transport error or a non-2xx answer raises, and the
DigestService decides whether to fall back.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

from src.recap.digests.errors import InvalidDigestEditError, RemoteDigestStateError
from src.recap.digests.schemas import Digest, DigestPartial

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RemoteDigestStateClient:
    """Client for ``{base_url}/{teamId}/{dateISO}/{append|get|approve}``.

    Args:
        base_url: Root of the digest-state surface, e.g.
            ``http://digest-state:8000/internal/digest-state``.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests mount the app directly).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client with the configured timeout.

        Forwards the current request id so both processes log under it.
        """
        headers = {}
        request_id = structlog.contextvars.get_contextvars().get("request_id")
        if request_id:
            headers[REQUEST_ID_HEADER] = request_id
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport, headers=headers)

    def _url(self, team_id: str, date_iso: str, action: str) -> str:
        return f"{self._base_url}/{quote(team_id, safe='')}/{quote(date_iso, safe='')}/{action}"

    @staticmethod
    def _check(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        logger.warning(
            "digest_state.remote_error",
            action=action,
            status_code=response.status_code,
        )
        raise RemoteDigestStateError(action, response.status_code, response.text)

    async def append(self, team_id: str, date_iso: str, partial: DigestPartial) -> None:
        async with self._client() as client:
            response = await client.post(
                self._url(team_id, date_iso, "append"),
                json=partial.to_wire(),
            )
        self._check(response, "append")

    async def get(self, team_id: str, date_iso: str) -> Digest | None:
        async with self._client() as client:
            response = await client.get(self._url(team_id, date_iso, "get"))
        self._check(response, "get")
        data = response.json()
        return Digest.model_validate(data) if data is not None else None

    async def approve(
        self, team_id: str, date_iso: str, edits: dict[str, Any] | None = None
    ) -> None:
        async with self._client() as client:
            response = await client.post(
                self._url(team_id, date_iso, "approve"),
                json={"edits": edits} if edits is not None else {},
            )
        if response.status_code == httpx.codes.UNPROCESSABLE_ENTITY:
            raise InvalidDigestEditError(response.json().get("errors", []))
        self._check(response, "approve")
