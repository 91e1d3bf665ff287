"""Daily digest aggregation -- schemas, merge rules, stores and service.

Provides the Digest data contract, the single-writer DigestStateStore, the
best-effort KeyValueDigestStore fallback, the RemoteDigestStateClient for
a store hosted elsewhere, and the DigestService façade that routes between
them.
"""

from src.recap.digests.schemas import (
    Digest,
    DigestAction,
    DigestPartial,
    DigestReadResult,
    DigestSendResult,
    DigestSummary,
    DigestWriteResult,
)

__all__ = [
    "Digest",
    "DigestAction",
    "DigestPartial",
    "DigestReadResult",
    "DigestSendResult",
    "DigestSummary",
    "DigestWriteResult",
]
