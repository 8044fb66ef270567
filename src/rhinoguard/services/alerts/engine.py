"""Alert engine container.

Wires the gateway, store, sync engine and selection state together with an
explicit lifecycle. The host builds exactly one engine and hands it to its
consumers; nothing here is a module-level global.
"""

from __future__ import annotations

import structlog

from rhinoguard.config.settings import Settings, get_settings
from rhinoguard.models.alert import Alert
from rhinoguard.services.alerts.gateway import AlertGateway, Clock
from rhinoguard.services.alerts.selection import AlertSelection
from rhinoguard.services.alerts.store import AlertStore
from rhinoguard.services.alerts.sync import AlertSyncEngine

logger = structlog.get_logger(__name__)


class AlertEngine:
    """Single alert service instance shared by all UI layers.

    Usage:
        engine = AlertEngine()
        await engine.start()
        alert = await engine.store.create_alert_from_detection(detection)
        await engine.stop()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        gateway: AlertGateway | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.gateway = gateway or AlertGateway(settings=self.settings, clock=clock)
        self.store = AlertStore(self.gateway, settings=self.settings, clock=clock)
        self.sync = AlertSyncEngine(self.store)
        self.selection = AlertSelection()

    @property
    def selected_alert(self) -> Alert | None:
        """The alert focused in the detail panel, if it still exists."""
        if self.selection.selected_alert_id is None:
            return None
        return self.store.get_alert_by_id(self.selection.selected_alert_id)

    async def start(self) -> None:
        """Start background polling unless real-time updates are disabled."""
        if not self.settings.real_time_updates_enabled:
            logger.info("alert_engine_polling_disabled")
            return
        await self.sync.start()

    async def stop(self) -> None:
        """Stop polling and release the HTTP client."""
        await self.sync.stop()
        await self.gateway.close()
        logger.info("alert_engine_stopped")
