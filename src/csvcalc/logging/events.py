"""Run event schema and the module-level ``emit`` entry point.

Timestamps are UTC ISO-8601 with a ``Z`` suffix.  ``emit()`` never raises:
a failing sink is reported once through the ``csvcalc.logging`` logger and
the run carries on.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EventLevel(str, Enum):
    info = "info"
    error = "error"


class EventType(str, Enum):
    run_started = "run_started"
    run_completed = "run_completed"
    run_failed = "run_failed"
    run_timing = "run_timing"


# Cell text and error messages can be arbitrarily long.
MAX_CONTEXT_TEXT = 256


def _clip(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_CONTEXT_TEXT:
        return value[:MAX_CONTEXT_TEXT] + "...[truncated]"
    return value


class CsvCalcEvent(BaseModel):
    """One structured event of a csvcalc run."""

    schema_version: int = 1
    ts: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    )
    level: EventLevel
    event_type: EventType
    run_id: str
    source: str | None = None
    message: str = ""
    error_code: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)


def make_run_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    run_id: str,
    source: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> CsvCalcEvent:
    """Build a run event; string values in *extra* are clipped."""
    return CsvCalcEvent(
        level=level,
        event_type=event_type,
        run_id=run_id,
        source=source,
        message=_clip(message),
        error_code=error_code,
        context={key: _clip(value) for key, value in (extra or {}).items()},
    )


_sink: Any = None  # EventSink | None
_sink_failed = False


def set_log_dir(log_dir: Path | None, *, fsync: bool = False) -> None:
    """Point events at *log_dir*, or drop them when it is None."""
    global _sink, _sink_failed
    _sink_failed = False
    if log_dir is None:
        _sink = None
        return

    from csvcalc.logging.sink import EventSink

    _sink = EventSink(Path(log_dir), fsync=fsync)


def get_sink() -> Any:
    return _sink


def emit(event: CsvCalcEvent) -> None:
    """Hand *event* to the configured sink.  **Never raises.**"""
    global _sink_failed
    if _sink is None:
        return
    try:
        _sink.write(event)
    except Exception:
        if not _sink_failed:
            _sink_failed = True
            logger.warning("Cannot write run events to %s", _sink.logs_dir, exc_info=True)
