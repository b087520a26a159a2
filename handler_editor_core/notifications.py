"""
Notification center for transient user-facing messages (toasts).

One instance is created at startup and passed to whatever needs to report
to the user; expiry is computed from timestamps when toasts are listed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional
import threading
import time
import uuid


class ToastLevel(Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


DEFAULT_DURATION = 4.0
ERROR_DURATION = 6.0


@dataclass
class Toast:
    """A single notification."""
    level: ToastLevel
    message: str
    duration: float = DEFAULT_DURATION
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)

    def expired(self, now: float) -> bool:
        return self.duration > 0 and now - self.created_at >= self.duration

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'type': self.level.value,
            'message': self.message,
            'duration': self.duration,
        }


class NotificationCenter:
    """Holds the active toasts; durations of 0 mean sticky."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._toasts: List[Toast] = []

    def add(self, level: ToastLevel, message: str, duration: Optional[float] = None) -> str:
        if duration is None:
            duration = ERROR_DURATION if level is ToastLevel.ERROR else DEFAULT_DURATION
        toast = Toast(level=level, message=message, duration=duration, created_at=self._clock())
        with self._lock:
            self._toasts.append(toast)
        return toast.id

    def remove(self, toast_id: str) -> bool:
        with self._lock:
            for i, toast in enumerate(self._toasts):
                if toast.id == toast_id:
                    del self._toasts[i]
                    return True
        return False

    def active(self) -> List[Toast]:
        """Toasts that have not expired; expired ones are dropped."""
        now = self._clock()
        with self._lock:
            self._toasts = [t for t in self._toasts if not t.expired(now)]
            return list(self._toasts)

    def success(self, message: str) -> str:
        return self.add(ToastLevel.SUCCESS, message)

    def error(self, message: str) -> str:
        return self.add(ToastLevel.ERROR, message)

    def warning(self, message: str) -> str:
        return self.add(ToastLevel.WARNING, message)

    def info(self, message: str) -> str:
        return self.add(ToastLevel.INFO, message)
