"""Read-only status view for the health-check endpoint."""

from dataclasses import dataclass, field
from typing import Any

from learnlite_notifications.core.config import NotificationSettings
from learnlite_notifications.core.logging import get_logger
from learnlite_notifications.core.worker import NotificationWorker

logger = get_logger("learnlite_notifications.status")

DISABLED_MESSAGE = "Notifications worker is disabled"
HEALTH_ERROR_MESSAGE = "Failed to get notifications health status"


@dataclass(frozen=True)
class HealthResponse:
    """HTTP-ready health result; the web layer only copies it onto a response."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class StatusReporter:
    """Exposes worker state to the external health-check collaborator.

    Constructed once at startup with the worker instance it reports on.
    """

    def __init__(self, worker: NotificationWorker | None, settings: NotificationSettings) -> None:
        self.worker = worker
        self.settings = settings

    def status(self) -> dict[str, Any]:
        """``{"enabled": False}`` when delivery is off, else the worker status."""
        if not self.settings.enabled or self.worker is None:
            return {"enabled": False}
        return self.worker.get_status().to_dict()

    def health(self, request_id: str | None = None) -> HealthResponse:
        """Build the health endpoint response.

        Internal errors are logged with their traceback and reported with a
        generic message only.
        """
        try:
            status = self.status()
            body: dict[str, Any] = {"ok": True, "version": self.settings.version, **status}
            if not status["enabled"]:
                body["message"] = DISABLED_MESSAGE
            return HealthResponse(status_code=200, body=body)
        except Exception as e:
            logger.error(
                f"Error getting notifications health: {e}",
                extra={"request_id": request_id, "error": str(e)},
                exc_info=True,
            )
            return HealthResponse(
                status_code=500,
                body={"ok": False, "error": HEALTH_ERROR_MESSAGE, "requestId": request_id},
            )
