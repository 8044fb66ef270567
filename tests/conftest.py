"""Shared pytest fixtures for RhinoGuard tests.

This module provides fixtures for:
- Settings pointed at a fake backend
- A controllable clock for dedup window and recency tests
- Backend HTTP mocking (respx)
- Gateway/store instances wired to the above
- Test data factories

Usage:
    async def test_something(store, detection_factory):
        alert = await store.create_alert_from_detection(detection_factory())
        assert alert.detection_id
"""

import os
from collections.abc import AsyncGenerator, Generator
from datetime import UTC, datetime, timedelta

import pytest
import respx

from tests.factories.alert import AlertFactory
from tests.factories.detection import DetectionFactory

API_URL = "http://backend.test"

# =============================================================================
# Environment Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """Set up test environment variables.

    Loads .env file first, then sets defaults for any missing variables.
    """
    from dotenv import load_dotenv

    original_env = os.environ.copy()

    # Load .env file if it exists (won't override existing env vars)
    load_dotenv()

    os.environ.setdefault("API_URL", API_URL)
    os.environ.setdefault("LOG_LEVEL", "DEBUG")
    os.environ.setdefault("REAL_TIME_UPDATES_ENABLED", "false")

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Drop cached settings so each test sees its own environment."""
    from rhinoguard.config.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Core Fixtures
# =============================================================================


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Provide a frozen clock starting at a fixed instant."""
    return FakeClock(datetime(2026, 3, 14, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def settings():
    """Provide settings pointed at the mocked backend, ignoring any .env file."""
    from rhinoguard.config.settings import Settings

    return Settings(
        _env_file=None,
        api_url=API_URL,
        alerts_enabled=True,
        ranger_positions_enabled=False,
        real_time_updates_enabled=False,
        max_retries=2,
    )


@pytest.fixture
def backend() -> Generator[respx.MockRouter, None, None]:
    """Mock the detection backend.

    Routes are registered per test, e.g.:
        backend.post("/alerts/trigger").mock(return_value=Response(404))
    """
    with respx.mock(base_url=API_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture
async def gateway(settings, clock) -> AsyncGenerator:
    """Provide an AlertGateway against the mocked backend."""
    from rhinoguard.services.alerts.gateway import AlertGateway

    client = AlertGateway(settings=settings, clock=clock)
    yield client
    await client.close()


@pytest.fixture
def store(gateway, settings, clock):
    """Provide an empty AlertStore on the gateway fixture."""
    from rhinoguard.services.alerts.store import AlertStore

    return AlertStore(gateway, settings=settings, clock=clock)


# =============================================================================
# Factory Fixtures
# =============================================================================


@pytest.fixture
def detection_factory() -> type[DetectionFactory]:
    """Provide detection factory for creating test detections."""
    return DetectionFactory


@pytest.fixture
def alert_factory() -> type[AlertFactory]:
    """Provide alert factory for creating test alerts."""
    return AlertFactory
