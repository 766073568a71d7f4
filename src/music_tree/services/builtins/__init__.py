"""Services shipped with the runtime."""

from .notifications import NotificationService

__all__ = ["NotificationService"]
