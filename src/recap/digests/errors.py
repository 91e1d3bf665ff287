"""Digest store exceptions."""

from __future__ import annotations


class DigestStoreError(Exception):
    """Base class for digest storage failures."""


class InvalidDigestEditError(DigestStoreError, ValueError):
    """Raised when approval edits would produce an invalid digest."""

    def __init__(self, errors: list[dict]) -> None:
        self.errors = errors
        fields = ", ".join(".".join(str(p) for p in e.get("loc", ())) for e in errors)
        super().__init__(f"Invalid digest edits: {fields or 'unknown field'}")


class DigestStorageUnavailableError(DigestStoreError):
    """Raised when no bound store could serve an operation."""


class RemoteDigestStateError(DigestStoreError):
    """Raised when a remote digest-state endpoint answers with a server error."""

    def __init__(self, path: str, status_code: int, body: str = "") -> None:
        self.path = path
        self.status_code = status_code
        self.body = body
        super().__init__(f"Remote digest state {path} failed with HTTP {status_code}")
