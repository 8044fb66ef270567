"""RhinoGuard alert engine - main application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from rhinoguard.api.routes import alerts, health
from rhinoguard.config import get_settings
from rhinoguard.config.logging import configure_logging
from rhinoguard.services.alerts.engine import AlertEngine

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle.

    On startup: Build the alert engine and start polling the backend.
    On shutdown: Stop polling and close the backend client.
    """
    engine = AlertEngine(settings=get_settings())
    app.state.alert_engine = engine
    await engine.start()
    log.info("startup_alert_engine_started", api_url=engine.settings.api_url)

    yield

    await engine.stop()
    app.state.alert_engine = None
    log.info("shutdown_complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging()

    application = FastAPI(
        title=settings.app_name,
        description="Ranger alert lifecycle and synchronization for rhino protection",
        version=settings.app_version,
        lifespan=lifespan,
    )

    application.include_router(health.router, prefix="/api")
    application.include_router(alerts.router, prefix="/api")

    return application


app = create_app()


def main() -> None:
    """Run the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "rhinoguard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
