from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol, TextIO

logger = logging.getLogger(__name__)


class Tone(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class Notification:
    tone: Tone
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class BaseNotifier:
    def notify(self, notification: Notification) -> None:
        raise NotImplementedError

    def success(self, message: str) -> None:
        self.notify(Notification(Tone.SUCCESS, message))

    def info(self, message: str) -> None:
        self.notify(Notification(Tone.INFO, message))

    def warning(self, message: str) -> None:
        self.notify(Notification(Tone.WARNING, message))

    def error(self, message: str) -> None:
        self.notify(Notification(Tone.ERROR, message))


class NullNotifier(BaseNotifier):
    def notify(self, notification: Notification) -> None:
        logger.debug("Unrouted notification (%s): %s", notification.tone.value, notification.message)


class RecordingNotifier(BaseNotifier):
    """Keep every toast in memory; used by the console history and by tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        with self._lock:
            self._items.append(notification)

    @property
    def notifications(self) -> list[Notification]:
        with self._lock:
            return list(self._items)

    def messages(self, tone: Tone | None = None) -> list[str]:
        return [item.message for item in self.notifications if tone is None or item.tone is tone]


TONE_PREFIX = {
    Tone.SUCCESS: "[ok]",
    Tone.INFO: "[..]",
    Tone.WARNING: "[!!]",
    Tone.ERROR: "[xx]",
}


class ConsoleNotifier(BaseNotifier):
    """Print toasts as single lines."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout
        self._lock = threading.Lock()

    def notify(self, notification: Notification) -> None:
        stamp = notification.created_at.astimezone().strftime("%H:%M:%S")
        with self._lock:
            print(f"{stamp} {TONE_PREFIX[notification.tone]} {notification.message}", file=self._stream, flush=True)
