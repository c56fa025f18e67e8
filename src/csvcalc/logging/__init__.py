"""Structured event logging for csvcalc.

Provides the run event schema, a filesystem NDJSON sink and an ``emit()``
that never raises.
"""

from csvcalc.logging.events import (
    CsvCalcEvent,
    EventLevel,
    EventType,
    emit,
    get_sink,
    make_run_event,
    set_log_dir,
)
from csvcalc.logging.sink import EventSink

__all__ = [
    "CsvCalcEvent",
    "EventLevel",
    "EventSink",
    "EventType",
    "emit",
    "get_sink",
    "make_run_event",
    "set_log_dir",
]
