"""Security event sinks."""

from authwatch.events.audit import JsonlAuditSink
from authwatch.events.sink import (
    EVENT_PREFIX,
    EventSink,
    FanOutEventSink,
    StdoutEventSink,
    format_event_line,
)

__all__ = [
    "EVENT_PREFIX",
    "EventSink",
    "FanOutEventSink",
    "StdoutEventSink",
    "JsonlAuditSink",
    "format_event_line",
]
