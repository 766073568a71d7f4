"""Collects user-facing notifications into the ``ui.notifications`` list."""

from datetime import datetime
from typing import Any, Dict

from ...events.topics import SYSTEM_ERROR
from ...exceptions import ValidationError
from ..base import Service

UI_NOTIFICATION = "ui:notification"
LEVELS = ("info", "success", "warning", "error")

NOTIFICATION_RULES = {
    "message": lambda value: isinstance(value, str) and bool(value.strip()),
    "level": lambda value: value in LEVELS,
}


class NotificationService(Service):
    """Turns ``ui:notification`` events and system errors into state.

    The rendering layer only has to watch ``ui.notifications``.
    """

    max_notifications = 20

    def initialize(self) -> None:
        self.subscribe_to_event(UI_NOTIFICATION, self._on_notification)
        self.subscribe_to_event(SYSTEM_ERROR, self._on_system_error)

    def notify(self, message: str, level: str = "info") -> Dict[str, Any]:
        """Append a notification, keeping only the most recent ones.

        Raises:
            ValidationError: If the message is empty or the level unknown
        """
        self.validate({"message": message, "level": level}, NOTIFICATION_RULES)

        record = {"message": message, "level": level, "timestamp": datetime.now()}
        notifications = self.get_state("ui.notifications", None) or []
        notifications.append(record)
        self.set_state("ui.notifications", notifications[-self.max_notifications:])
        return record

    def dismiss_all(self) -> None:
        self.set_state("ui.notifications", [])

    def _on_notification(self, data: Any) -> None:
        if not isinstance(data, dict):
            self.logger.warning(f"Ignoring malformed notification: {data!r}")
            return
        try:
            self.notify(data.get("message"), data.get("level", "info"))
        except ValidationError as e:
            self.logger.warning(f"Ignoring notification: {e}")

    def _on_system_error(self, data: Any) -> None:
        data = data or {}
        source = data.get("original_event", "unknown")
        self.notify(f"{source}: {data.get('error')}", "error")
