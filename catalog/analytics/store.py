"""Operator-facing event log. Events are kept in process, oldest first."""
from __future__ import annotations

import logging
import threading
import time
from typing import Any

logger = logging.getLogger(__name__)

_events: list[dict[str, Any]] = []
_lock = threading.Lock()


def record_event(event_type: str, data: dict[str, Any]) -> None:
    event = {"type": event_type, "timestamp": time.time(), **data}
    with _lock:
        _events.append(event)
    logger.debug("Recorded %s event", event_type)


def get_events(event_type: str | None = None, since: float | None = None) -> list[dict[str, Any]]:
    """Copies of the recorded events, optionally of one type and newer than ``since``."""
    with _lock:
        events = list(_events)
    return [
        dict(e) for e in events
        if (event_type is None or e["type"] == event_type)
        and (since is None or e["timestamp"] >= since)
    ]


def clear_events() -> None:
    with _lock:
        _events.clear()
