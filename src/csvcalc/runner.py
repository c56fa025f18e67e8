"""Run the full file -> table -> text pipeline with structured events."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from uuid import uuid4

from csvcalc.config import DEFAULT_CONFIG
from csvcalc.errors import CsvCalcError
from csvcalc.logging.events import EventLevel, EventType, emit, make_run_event
from csvcalc.sources import read_grid
from csvcalc.table import Table


@dataclass
class RunResult:
    """Outputs of one pipeline run.

    Attributes:
        run_id: Identifier used in event logs.
        table: The evaluated table.
        text: Rendered table text (no trailing newline).
        timings_ms: Stage durations in milliseconds.
    """

    run_id: str
    table: Table
    text: str
    timings_ms: dict[str, float] = field(default_factory=dict)


def run_file(path: Path, config: dict[str, Any] | None = None) -> RunResult:
    """Read *path*, resolve all formulas and render the table.

    Args:
        path: Delimited input file.
        config: Merged configuration (see :func:`csvcalc.config.load_config`).

    Returns:
        A :class:`RunResult`.

    Raises:
        CsvCalcError: On any input, validation, parse or evaluation failure.
    """
    cfg = dict(DEFAULT_CONFIG)
    if config:
        cfg.update(config)

    run_id = uuid4().hex
    source = str(path)
    timings_ms: dict[str, float] = {}

    def event(event_type: EventType, level: EventLevel, message: str, **kwargs: Any) -> None:
        emit(make_run_event(event_type, level, message, run_id=run_id, source=source, **kwargs))

    event(EventType.run_started, EventLevel.info, "Run started")

    try:
        t0 = time.monotonic()
        grid = read_grid(
            Path(path),
            delimiter=cfg["delimiter"],
            require_csv_suffix=bool(cfg["require_csv_suffix"]),
        )
        timings_ms["read"] = round((time.monotonic() - t0) * 1000, 2)

        t0 = time.monotonic()
        table = Table.load(grid.rows, delimiter=grid.delimiter)
        timings_ms["evaluate"] = round((time.monotonic() - t0) * 1000, 2)

        t0 = time.monotonic()
        text = table.render()
        timings_ms["render"] = round((time.monotonic() - t0) * 1000, 2)
    except CsvCalcError as exc:
        extra: dict[str, Any] = {"error": str(exc)}
        if exc.cell is not None:
            extra["cell"] = exc.cell
        event(
            EventType.run_failed,
            EventLevel.error,
            f"Run failed: {exc}",
            error_code=exc.error_code,
            extra=extra,
        )
        raise

    event(
        EventType.run_timing,
        EventLevel.info,
        f"Run timings: {timings_ms}",
        extra={"timings_ms": timings_ms},
    )
    event(
        EventType.run_completed,
        EventLevel.info,
        f"Run completed: {table.row_count} rows x {table.column_count} columns",
        extra={
            "row_count": table.row_count,
            "column_count": table.column_count,
            "formula_count": len(table.formulas),
        },
    )
    return RunResult(run_id=run_id, table=table, text=text, timings_ms=timings_ms)
