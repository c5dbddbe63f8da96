"""Recent kiosk events for the dashboard when debug mode is enabled."""

from __future__ import annotations

import threading
import time
from collections import deque

MAX_LINES = 20

_log_buffer: deque[str] = deque(maxlen=MAX_LINES)
_lock = threading.Lock()


def add(msg: str) -> None:
    """Add an event, stamped with the local time."""
    line = f"{time.strftime('%H:%M:%S')} {msg}"
    with _lock:
        _log_buffer.append(line)


def get_lines() -> list[str]:
    """Get the current lines (newest last)."""
    with _lock:
        return list(_log_buffer)


def clear() -> None:
    with _lock:
        _log_buffer.clear()
