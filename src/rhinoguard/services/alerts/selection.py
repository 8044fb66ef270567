"""Alert selection / detail panel state."""

import structlog

log = structlog.get_logger(__name__)


class AlertSelection:
    """Tracks which alert is focused in the detail panel."""

    def __init__(self) -> None:
        self.selected_alert_id: str | None = None
        self.is_detail_panel_open = False

    def select_alert(self, alert_id: str) -> None:
        """Focus an alert and open the detail panel."""
        self.selected_alert_id = alert_id
        self.is_detail_panel_open = True
        log.debug("alert_selected", alert_id=alert_id)

    def close_detail_panel(self) -> None:
        """Close the detail panel and drop the selection."""
        self.is_detail_panel_open = False
        self.selected_alert_id = None
        log.debug("alert_detail_panel_closed")
