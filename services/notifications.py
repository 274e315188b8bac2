from __future__ import annotations
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Optional, List
import uuid
import time


class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


# Errors stay until dismissed or superseded.
SUCCESS_DELAY_MS = 3000
DEFAULT_DELAY_MS = 5000


@dataclass
class Notification:
    id: str
    title: str
    message: str
    severity: str
    sticky: bool = False
    delay_ms: Optional[int] = None
    created_at: float = 0.0


def _now() -> float:
    return time.time()


class ToastFeed:
    """
    In-memory notification surface. Owns display timing: successes expire
    after 3s, warnings/info after 5s, errors never expire on their own.
    """
    def __init__(self, clock=_now):
        self._clock = clock
        self._items: Dict[str, Notification] = {}
        self._unsent: List[str] = []

    def notify(self, title: str, message: str, severity: Severity = Severity.INFO) -> Notification:
        severity = Severity(severity)
        # A new outcome supersedes any error still on screen.
        for k in [k for k, n in self._items.items() if n.sticky]:
            self._items.pop(k, None)
        sticky = severity is Severity.ERROR
        n = Notification(
            id=str(uuid.uuid4()),
            title=title,
            message=message,
            severity=severity.value,
            sticky=sticky,
            delay_ms=None if sticky else (SUCCESS_DELAY_MS if severity is Severity.SUCCESS else DEFAULT_DELAY_MS),
            created_at=self._clock(),
        )
        self._items[n.id] = n
        self._unsent.append(n.id)
        return n

    def dismiss(self, notification_id: str) -> bool:
        return self._items.pop(notification_id, None) is not None

    def expire(self) -> None:
        now = self._clock()
        for k in [k for k, n in self._items.items()
                  if not n.sticky and (now - n.created_at) * 1000 >= (n.delay_ms or 0)]:
            self._items.pop(k, None)

    def visible(self) -> List[Dict]:
        self.expire()
        items = sorted(self._items.values(), key=lambda x: x.created_at)
        return [asdict(n) for n in items]

    def drain(self) -> List[Dict]:
        """Notifications raised since the last drain, oldest first."""
        ids, self._unsent = self._unsent, []
        return [asdict(self._items[i]) for i in ids if i in self._items]
