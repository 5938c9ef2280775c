# logguard/services/notifications.py
"""
User-visible notifications

Every workflow outcome (success or failure) ends up here. The dashboard
renders notifications as toasts, the CLI prints them, and each one is
also written to the log.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ..core.config import settings
from ..client.errors import LogGuardError, ProcessingLimitError

logger = logging.getLogger(__name__)


class NotificationVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass
class Notification:
    title: str
    description: str = ""
    variant: NotificationVariant = NotificationVariant.DEFAULT
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_error(self) -> bool:
        return self.variant == NotificationVariant.DESTRUCTIVE


def describe_error(error: Exception, fallback: str) -> Tuple[str, str]:
    """
    Turn an exception into a (title, description) pair for the user

    Args:
        error: The failure
        fallback: Description to use when the error carries no message

    Returns:
        Title and description
    """
    if isinstance(error, ProcessingLimitError):
        return (
            "Processing Limit Reached",
            f"You can only process {settings.max_concurrent_processing} files at the same time. "
            "Please wait for current analyses to complete before starting new ones."
        )

    message = error.message if isinstance(error, LogGuardError) else str(error)
    return "Analysis Failed", message or fallback


class Notifier:
    """
    Collects notifications and fans them out to listeners

    Usage:
        notifier = Notifier()
        notifier.add_listener(lambda n: print(n.title))
        notifier.success("Anomaly updated successfully")
    """

    def __init__(self, history_limit: int = 50):
        self.history: List[Notification] = []
        self.history_limit = history_limit
        self._listeners: List[Callable[[Notification], None]] = []

    def add_listener(self, listener: Callable[[Notification], None]):
        self._listeners.append(listener)

    def notify(self, notification: Notification) -> Notification:
        text = notification.title
        if notification.description:
            text += f": {notification.description}"

        if notification.is_error:
            logger.error(text)
        else:
            logger.info(text)

        self.history.append(notification)
        if len(self.history) > self.history_limit:
            self.history = self.history[-self.history_limit:]

        for listener in self._listeners:
            listener(notification)
        return notification

    def success(self, title: str, description: str = "") -> Notification:
        return self.notify(Notification(title, description))

    def error(self, title: str, description: str = "") -> Notification:
        return self.notify(Notification(title, description, NotificationVariant.DESTRUCTIVE))

    def failure(self, error: Exception, fallback: str, title: Optional[str] = None) -> Notification:
        """Notify about an exception, rewriting known cases"""
        default_title, description = describe_error(error, fallback)
        if isinstance(error, ProcessingLimitError):
            title = default_title
        return self.error(title or default_title, description)

    @property
    def latest(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None

    def clear(self):
        self.history = []
