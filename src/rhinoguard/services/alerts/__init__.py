"""Alert lifecycle services: gateway, store, sync engine, selection."""

from rhinoguard.services.alerts.engine import AlertEngine
from rhinoguard.services.alerts.gateway import AlertGateway, normalize_alert
from rhinoguard.services.alerts.selection import AlertSelection
from rhinoguard.services.alerts.store import AlertStore
from rhinoguard.services.alerts.sync import AlertSyncEngine

__all__ = [
    "AlertEngine",
    "AlertGateway",
    "AlertSelection",
    "AlertStore",
    "AlertSyncEngine",
    "normalize_alert",
]
