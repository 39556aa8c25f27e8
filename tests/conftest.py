"""
Shared pytest fixtures for the marketfeed test suite.

Everything runs offline: vendors are mocks or httpx.MockTransport, time is
a FakeClock and retry sleeps are recorded instead of awaited.

Fixture overview
----------------
clock          FakeClock starting at 2025-12-08 10:00 (a Monday).
sleeps         RecordingSleep; await it like asyncio.sleep, inspect .delays.
registry       Fresh CircuitBreakerRegistry on the fake clock.
cache          CacheManager on the fake clock.
"""

from datetime import datetime, timedelta

import pytest

from marketfeed.services.cache import CacheManager
from marketfeed.services.circuit_breaker import CircuitBreakerRegistry


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 12, 8, 10, 0, 0))


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def registry(clock) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(clock=clock)


@pytest.fixture
def cache(clock) -> CacheManager:
    return CacheManager(max_size=100, clock=clock)
