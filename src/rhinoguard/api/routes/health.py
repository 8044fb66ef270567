"""Health check endpoint with sync engine status."""

from typing import Any

from fastapi import APIRouter

from rhinoguard.api.dependencies import EngineDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(engine: EngineDep) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        dict with overall status, version, sync engine status and feature flags.
        Status is "degraded" while the store carries a refresh error.
    """
    settings = engine.settings

    return {
        "status": "degraded" if engine.store.error else "ok",
        "version": settings.app_version,
        "sync": engine.sync.get_status(),
        "error": engine.store.error,
        "features": {
            "alerts_enabled": settings.alerts_enabled,
            "ranger_positions_enabled": settings.ranger_positions_enabled,
            "real_time_updates_enabled": settings.real_time_updates_enabled,
        },
    }
