"""
Analytics event emission.

Fire-and-forget sinks. A missing or failing sink never affects the caller.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

EVENT_CATEGORY = "File Conversion"


class AnalyticsSink(Protocol):
    def track(self, event_name: str, properties: Mapping[str, Any]) -> None:
        ...


class NullAnalytics:
    """Discards every event."""

    def track(self, event_name: str, properties: Mapping[str, Any]) -> None:
        return None


class LoggingAnalytics:
    """Writes events to a logger at INFO."""

    def __init__(self, logger_name: str = "tabconvert.analytics"):
        self._logger = logging.getLogger(logger_name)

    def track(self, event_name: str, properties: Mapping[str, Any]) -> None:
        self._logger.info("event=%s %s", event_name, dict(properties))


class RecordingAnalytics:
    """Keeps events in memory, in order."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def track(self, event_name: str, properties: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(properties)))


def track_event(sink: Optional[AnalyticsSink], event_name: str, properties: Mapping[str, Any]) -> None:
    """Emit an event, ignoring an absent sink and any sink failure."""
    if sink is None:
        return
    try:
        sink.track(event_name, properties)
    except Exception as e:  # sink failures must not reach the conversion flow
        logger.debug("Analytics sink failed for %s: %s", event_name, e)


def track_limit_event(
    sink: Optional[AnalyticsSink],
    event_type: str,
    remaining: Optional[int],
    is_authenticated: bool,
    **extra: Any
) -> None:
    """Emit a ``conversion_limit`` event labelled with ``event_type``."""
    properties: Dict[str, Any] = {
        "event_category": EVENT_CATEGORY,
        "event_label": event_type,
        "remaining": remaining or 0,
        "user_type": "authenticated" if is_authenticated else "visitor",
    }
    properties.update(extra)
    track_event(sink, "conversion_limit", properties)
