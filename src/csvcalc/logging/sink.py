"""NDJSON files for run events.

Each event becomes one sorted-key JSON line in two files:

- ``<log_dir>/events.ndjson`` -- every run
- ``<log_dir>/runs/<run_id>.ndjson`` -- one run

Appends hold an exclusive ``fcntl`` lock so concurrent csvcalc processes
sharing a log directory do not interleave lines.
"""

from __future__ import annotations

import fcntl
import json
import os
from pathlib import Path

from csvcalc.logging.events import CsvCalcEvent


class EventSink:
    """Appends run events under *logs_dir*."""

    def __init__(self, logs_dir: Path, *, fsync: bool = False) -> None:
        self.logs_dir = logs_dir
        self.runs_dir = logs_dir / "runs"
        self.fsync = fsync
        self.runs_dir.mkdir(parents=True, exist_ok=True)

    def write(self, event: CsvCalcEvent) -> None:
        """Record *event* in the global log and in its run's log."""
        data = (json.dumps(event.model_dump(mode="json"), sort_keys=True) + "\n").encode("utf-8")
        targets = [self.logs_dir / "events.ndjson"]
        # run ids name files, so only plain alphanumeric ids get one
        if event.run_id.isalnum():
            targets.append(self.runs_dir / f"{event.run_id}.ndjson")
        for target in targets:
            self._append(target, data)

    def _append(self, path: Path, data: bytes) -> None:
        with open(path, "ab") as fh:
            fcntl.flock(fh, fcntl.LOCK_EX)
            try:
                fh.write(data)
                fh.flush()
                if self.fsync:
                    os.fsync(fh.fileno())
            finally:
                fcntl.flock(fh, fcntl.LOCK_UN)
