"""Pytest configuration and shared fixtures.

Provides test settings, a controllable clock, shared in-memory storage
areas (one area, several handles = several tabs) and a store factory.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from traffiq_analytics.containers import build_analytics_store
from traffiq_analytics.core.config import get_settings_for_testing
from traffiq_analytics.models.document import AnalyticsDocument
from traffiq_analytics.services.aggregation_service import AggregationEngine
from traffiq_analytics.services.analytics_store import AnalyticsStore
from traffiq_analytics.services.event_log_service import EventLog
from traffiq_analytics.services.summary_service import SummaryProjector
from traffiq_analytics.storage.memory import MemoryArea, MemoryStorage


class FakeClock:
    """Settable clock for dedup windows, retention and expiry."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def test_settings():
    """Test application settings."""
    return get_settings_for_testing()


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at 2024-01-10 14:30 UTC."""
    return FakeClock(datetime(2024, 1, 10, 14, 30, tzinfo=timezone.utc))


@pytest.fixture
def memory_area() -> MemoryArea:
    return MemoryArea()


@pytest.fixture
def backend(memory_area) -> MemoryStorage:
    return MemoryStorage(memory_area)


@pytest.fixture
def document() -> AnalyticsDocument:
    return AnalyticsDocument()


@pytest.fixture
def engine(test_settings, clock) -> AggregationEngine:
    return AggregationEngine(test_settings.analytics, clock)


@pytest.fixture
def event_log(test_settings, clock) -> EventLog:
    return EventLog(test_settings.analytics, clock)


@pytest.fixture
def projector(test_settings, clock) -> SummaryProjector:
    return SummaryProjector(test_settings.analytics, clock)


@pytest.fixture
def make_store(test_settings, memory_area, clock) -> Callable[..., AnalyticsStore]:
    """Factory for stores; each call is a new tab on the shared area."""

    def factory(
        identity_key: str | None = None, area: MemoryArea | None = None
    ) -> AnalyticsStore:
        return build_analytics_store(
            settings=test_settings,
            backend=MemoryStorage(area or memory_area),
            clock=clock,
            identity_key=identity_key,
        )

    return factory


@pytest.fixture
def store(make_store) -> AnalyticsStore:
    return make_store()
