"""Background sync engine that keeps the alert store in step with the backend.

Polling only: every cycle refreshes alerts and ranger positions. The host
starts the engine when it comes up and stops it on teardown:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = AlertSyncEngine(store)
        await engine.start()
        yield
        await engine.stop()

:meth:`AlertSyncEngine.subscribe` is the seam where a push transport
would replace polling.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from rhinoguard.services.alerts.store import AlertStore

logger = structlog.get_logger(__name__)


class AlertSyncEngine:
    """Periodic fetch-and-merge loop for an AlertStore.

    The engine is the only owner of its task handle. A cycle runs as soon
    as the engine starts, then every ``poll_interval`` seconds. An
    unexpected error in one cycle is logged and the loop carries on.
    """

    def __init__(self, store: AlertStore, poll_interval: float | None = None) -> None:
        """Initialize the sync engine.

        Args:
            store: Store to refresh.
            poll_interval: Seconds between cycles (default from settings, 10s).
        """
        self.store = store
        self.poll_interval = poll_interval or store.settings.poll_interval_seconds

        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._cycles = 0
        self._last_cycle_at: datetime | None = None
        self._last_error: str | None = None

    @property
    def is_running(self) -> bool:
        """Check if the engine is polling."""
        return self._running

    async def start(self) -> None:
        """Start polling. A second call while running is a no-op."""
        if self._running:
            logger.info("sync_engine_already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name="alert-sync")
        logger.info("sync_engine_started", poll_interval=self.poll_interval)

    async def stop(self) -> None:
        """Stop polling. Safe to call when not running."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        logger.info("sync_engine_stopped", cycles=self._cycles)

    async def subscribe(self) -> Callable[[], Awaitable[None]]:
        """Start receiving updates and return the matching unsubscribe."""
        await self.start()
        return self.stop

    async def run_cycle(self) -> None:
        """Refresh alerts and ranger positions once."""
        await asyncio.gather(
            self.store.refresh_alerts(),
            self.store.refresh_ranger_positions(),
        )
        self._cycles += 1
        self._last_cycle_at = self.store.clock()

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_cycle()
                self._last_error = None
            except Exception as e:
                self._last_error = str(e)
                logger.error("sync_cycle_failed", error=str(e))

            await asyncio.sleep(self.poll_interval)

    def get_status(self) -> dict[str, Any]:
        """Get engine status for monitoring.

        Returns:
            Status dict with running flag, poll interval, completed cycles,
            last cycle time and last cycle error.
        """
        return {
            "running": self._running,
            "poll_interval_seconds": self.poll_interval,
            "cycles": self._cycles,
            "last_cycle_at": self._last_cycle_at,
            "last_error": self._last_error,
        }
