"""Fixtures for API route tests.

Routes are exercised against an engine whose gateway is a test double, so
no request leaves the process and no lifespan polling is started.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def fake_gateway(settings):
    gateway = MagicMock()
    gateway.settings = settings
    gateway.trigger_alert = AsyncMock()
    gateway.fetch_alerts = AsyncMock(return_value=[])
    gateway.fetch_ranger_positions = AsyncMock(return_value=[])
    gateway.close = AsyncMock()
    return gateway


@pytest.fixture
def engine(settings, fake_gateway, clock):
    from rhinoguard.services.alerts.engine import AlertEngine

    return AlertEngine(settings=settings, gateway=fake_gateway, clock=clock)


@pytest.fixture
def client(engine) -> TestClient:
    """Create test client with the engine attached to app state."""
    from rhinoguard.main import create_app

    app = create_app()
    app.state.alert_engine = engine
    return TestClient(app)
