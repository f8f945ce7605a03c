"""
Pytest configuration and shared fixtures.

Provides a settable clock, in-memory monitors, record factories and a
FastAPI TestClient for the AI usage monitor test suite.

IMPORTANT: Environment variables must be set BEFORE importing modules
that use pydantic-settings, as Settings validates on first access.
"""

import os

# Set test environment variables before importing app modules
os.environ["STORE_BACKEND"] = "memory"
os.environ["ALERT_CHECK_INTERVAL_SECONDS"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DEBUG"] = "false"

# Now safe to import everything else
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from usage_monitor.schemas import AIOperation, AIService, MetricRecord

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: mark test as slow-running")


class FrozenClock:
    """Clock returning a fixed instant until moved."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def reset_singletons():
    """
    Reset all singleton instances between tests.

    This ensures each test starts with a clean state.
    """
    from usage_monitor.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

    from usage_monitor.registry import services

    services._registry_instance = None


@pytest.fixture
def clock():
    """A FrozenClock fixed at NOW."""
    return FrozenClock()


@pytest.fixture
def memory_store():
    """A fresh in-memory document store."""
    from usage_monitor.storage import InMemoryDocumentStore

    return InMemoryDocumentStore()


@pytest.fixture
def monitor(memory_store, clock):
    """A UsageMonitor on an in-memory store with a frozen clock."""
    from usage_monitor.monitor import UsageMonitor

    return UsageMonitor(memory_store, clock=clock)


@pytest.fixture
def make_record():
    """
    Factory fixture for MetricRecord objects.

    Usage:
        record = make_record(success=False, age=timedelta(hours=2))
    """

    def _create(
        service: AIService = AIService.GROQ,
        operation: AIOperation = AIOperation.CLASSIFICATION,
        success: bool = True,
        response_time_ms: float = 500.0,
        confidence: float | None = None,
        tokens_used: int | None = None,
        estimated_cost: float = 0.0,
        age: timedelta = timedelta(minutes=5),
        now: datetime = NOW,
    ) -> MetricRecord:
        return MetricRecord(
            timestamp=now - age,
            service=service,
            operation=operation,
            success=success,
            response_time_ms=response_time_ms,
            error=None if success else "upstream error",
            confidence=confidence,
            tokens_used=tokens_used,
            estimated_cost=estimated_cost,
        )

    return _create


@pytest.fixture
def seed_records(make_record):
    """
    Factory fixture appending `count` identical records to a monitor.

    Usage:
        seed_records(monitor, 9, success=True)
        seed_records(monitor, 1, success=False)
    """

    def _seed(monitor, count: int, **kwargs) -> None:
        for _ in range(count):
            monitor.metric_records.append(make_record(**kwargs))

    return _seed


@pytest.fixture
def test_client():
    """
    Create a FastAPI TestClient running the full lifespan.

    The monitor built at startup sits on an in-memory store and is
    reachable as test_client.app.state.monitor for seeding.
    """
    from usage_monitor.main import app

    with TestClient(app) as client:
        yield client
