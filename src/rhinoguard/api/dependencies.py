"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from rhinoguard.services.alerts.engine import AlertEngine


def get_alert_engine(request: Request) -> AlertEngine:
    """Get the engine built by the application lifespan."""
    engine: AlertEngine | None = getattr(request.app.state, "alert_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Alert engine not started")
    return engine


EngineDep = Annotated[AlertEngine, Depends(get_alert_engine)]
