"""User-facing notification sink.

Components report success/warning/error feedback here; whatever front end
is attached (the command line, a tray icon) connects to the signal.
"""

import logging
import sys
from enum import Enum

from PySide6.QtCore import QObject, Signal

logger = logging.getLogger(__name__)


class NotificationLevel(Enum):
    """Severity of a user notification."""

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notifier(QObject):
    """Fire-and-forget notification sink.

    Example:
        notifier = Notifier()
        notifier.notification.connect(lambda level, title, msg: print(title, msg))
        notifier.error("Session Expired", "Please reconnect to your Hub")
    """

    notification = Signal(object, str, str)  # NotificationLevel, title, message

    def success(self, title: str, message: str = "") -> None:
        """Emit a success notification."""
        self._emit(NotificationLevel.SUCCESS, title, message)

    def warning(self, title: str, message: str = "") -> None:
        """Emit a warning notification."""
        self._emit(NotificationLevel.WARNING, title, message)

    def error(self, title: str, message: str = "") -> None:
        """Emit an error notification."""
        self._emit(NotificationLevel.ERROR, title, message)

    def _emit(self, level: NotificationLevel, title: str, message: str) -> None:
        logger.debug("Notification [%s] %s: %s", level.value, title, message)
        self.notification.emit(level, title, message)


def print_notification(level: NotificationLevel, title: str, message: str) -> None:
    """Console sink: errors to stderr, everything else to stdout."""
    stream = sys.stderr if level is NotificationLevel.ERROR else sys.stdout
    print(f"{title}: {message}" if message else title, file=stream)
