"""Security event sinks.

A sink is any callable taking one SecurityEvent. The default writes
one ``[AUTHWATCH] <json>`` line per event to stdout.
"""

import json
import logging
import sys
from typing import Callable, Iterable

from authwatch.common.logging import get_logger
from authwatch.data.schemas.event import SecurityEvent

EVENT_PREFIX = "[AUTHWATCH]"

EventSink = Callable[[SecurityEvent], None]

logger = logging.getLogger(__name__)


def format_event_line(event: SecurityEvent) -> str:
    """Render an event as a single prefixed JSON line."""
    return f"{EVENT_PREFIX} {json.dumps(event.to_log_dict(), sort_keys=True)}"


class StdoutEventSink:
    """Writes events through the ``authwatch.events`` logger to stdout."""
    
    def __init__(self, logger_name: str = "authwatch.events", level: str = "INFO"):
        self._logger = get_logger(
            logger_name, level=level, fmt="%(message)s", stream=sys.stdout, propagate=False
        )
    
    def __call__(self, event: SecurityEvent) -> None:
        self._logger.info(format_event_line(event))


class FanOutEventSink:
    """Forwards each event to several sinks.
    
    A failing sink is logged and does not stop the others.
    """
    
    def __init__(self, sinks: Iterable[EventSink]):
        self.sinks = list(sinks)
    
    def __call__(self, event: SecurityEvent) -> None:
        for sink in self.sinks:
            try:
                sink(event)
            except Exception:
                logger.exception(
                    "Event sink failed",
                    extra={"sink": type(sink).__name__, "event_type": event.type.value},
                )
