"""Tests for application lifespan management."""

from fastapi.testclient import TestClient


class TestLifespan:
    """Tests for engine construction and teardown in the lifespan."""

    def test_lifespan_builds_and_releases_engine(self) -> None:
        """
        Given: Real-time updates disabled in the environment
        When: The app starts and shuts down
        Then: An engine is available while running and cleared afterwards
        """
        from rhinoguard.main import create_app
        from rhinoguard.services.alerts.engine import AlertEngine

        app = create_app()

        with TestClient(app) as client:
            engine = app.state.alert_engine
            assert isinstance(engine, AlertEngine)
            assert engine.sync.is_running is False
            assert client.get("/api/health").status_code == 200

        assert app.state.alert_engine is None

    def test_lifespan_uses_configured_backend(self, monkeypatch) -> None:
        from rhinoguard.config.settings import get_settings
        from rhinoguard.main import create_app

        monkeypatch.setenv("API_URL", "http://detections.internal:9000/")
        get_settings.cache_clear()
        app = create_app()

        with TestClient(app):
            assert app.state.alert_engine.gateway.base_url == "http://detections.internal:9000"
