"""Shared test fixtures.

Provides:
- A deterministic millisecond clock for digest stores
- A configured webhook secret (settings cache cleared around each use)
"""

from __future__ import annotations

import pytest

from src.recap.config import get_settings

WEBHOOK_SECRET = "test-webhook-secret"


class FakeClock:
    """Monotonic fake clock: every call advances one second (in ms)."""

    def __init__(self, start: int = 1_714_550_400_000) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 1000
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Never leak cached settings between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def webhook_secret(monkeypatch) -> str:
    """Configure WEBHOOK_SECRET for the duration of a test."""
    monkeypatch.setenv("WEBHOOK_SECRET", WEBHOOK_SECRET)
    get_settings.cache_clear()
    return WEBHOOK_SECRET
