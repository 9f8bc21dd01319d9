"""Shared fixtures for the registration core tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from rdns.domains import DomainBackend
from rdns.store import MemoryStore

ROOT_DOMAIN = "lb.rancher.cloud"
PREFIX = "/rdns"
TTL = 240 * 3600


class FakeClock:
    """Manually advanced clock for MemoryStore expiry."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture
def backend(store: MemoryStore) -> DomainBackend:
    return DomainBackend(store, ROOT_DOMAIN, prefix=PREFIX, ttl=TTL)
