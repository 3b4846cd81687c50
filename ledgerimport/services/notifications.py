"""Operator notifications for import outcomes."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from ledgerimport.config import Settings

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    """Severity of an operator notification."""

    SUCCESS = "success"
    WARNING = "warning"
    DANGER = "danger"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    """A short, non-blocking message for the operator."""

    kind: NotificationKind
    title: str
    message: str

    def __str__(self) -> str:
        return f"[{self.title}] {self.message}"


class Notifier(ABC):
    """Abstract base class for notification sinks."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        """Deliver a notification."""

    def success(self, message: str, title: str = "Success") -> None:
        self.notify(Notification(NotificationKind.SUCCESS, title, message))

    def warning(self, message: str, title: str = "Warning") -> None:
        self.notify(Notification(NotificationKind.WARNING, title, message))

    def danger(self, message: str, title: str = "Error") -> None:
        self.notify(Notification(NotificationKind.DANGER, title, message))

    def info(self, message: str, title: str = "Info") -> None:
        self.notify(Notification(NotificationKind.INFO, title, message))


class ConsoleNotifier(Notifier):
    """Prints notifications to a text stream (stdout by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream

    def notify(self, notification: Notification) -> None:
        print(str(notification), file=self.stream, flush=True)


class LogNotifier(Notifier):
    """Writes notifications to the log instead of the console."""

    LEVELS = {
        NotificationKind.SUCCESS: logging.INFO,
        NotificationKind.INFO: logging.INFO,
        NotificationKind.WARNING: logging.WARNING,
        NotificationKind.DANGER: logging.ERROR,
    }

    def notify(self, notification: Notification) -> None:
        logger.log(self.LEVELS[notification.kind], "%s", notification)


def get_notifier(settings: "Settings") -> Notifier:
    """Get the notifier for the configured backend.

    Args:
        settings: Application settings.

    Returns:
        Notifier instance.
    """
    backend = settings.notification_backend.lower()
    if backend == "log":
        return LogNotifier()
    if backend != "console":
        logger.warning("Unknown notification backend '%s', using console", backend)
    return ConsoleNotifier()
