"""Transient user notifications (the toast messages of an interactive client)."""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

NotificationLevel = Literal["success", "error"]


@dataclass(frozen=True)
class Notification:
    """A short message for the user. Never fatal to the running client."""

    level: NotificationLevel
    message: str


Notifier = Callable[[Notification], None]


def log_notification(notification: Notification) -> None:
    """Default notifier: write the message to the log."""
    if notification.level == "error":
        logger.warning("%s", notification.message)
    else:
        logger.info("%s", notification.message)
