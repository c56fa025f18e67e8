"""File source and sink for tables.

The table itself performs no I/O; these helpers read a delimited file into
rows of string fields and write rendered text back out.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from pathlib import Path

from csvcalc.errors import UnsupportedInputFormatError

AUTO_DELIMITER = "auto"
SNIFF_DELIMITERS = ",;\t|"
_SNIFF_BYTES = 64 * 1024


@dataclass
class Grid:
    """Rows of raw string fields plus the delimiter they were split on."""

    rows: list[list[str]]
    delimiter: str


def sniff_delimiter(sample: str, default: str = ",") -> str:
    """Guess the delimiter of *sample* among ``, ; TAB |``."""
    try:
        return csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS).delimiter
    except csv.Error:
        return default


def read_grid(
    path: Path,
    delimiter: str = ",",
    *,
    require_csv_suffix: bool = True,
) -> Grid:
    """Read a delimited file into a :class:`Grid`.

    Blank lines are skipped.  Rows must all have the header's field count.

    Args:
        path: File to read.
        delimiter: Field delimiter, or ``"auto"`` to sniff it.
        require_csv_suffix: Reject files whose name does not end in ``.csv``.

    Raises:
        UnsupportedInputFormatError: For a wrong suffix, unreadable or empty
            file, or ragged rows.
    """
    path = Path(path)
    if require_csv_suffix and path.suffix.lower() != ".csv":
        raise UnsupportedInputFormatError(f"Expected a .csv file, got {path.name!r}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise UnsupportedInputFormatError(f"Cannot read {path}: {exc}") from exc

    if delimiter == AUTO_DELIMITER:
        delimiter = sniff_delimiter(text[:_SNIFF_BYTES])

    try:
        rows = [row for row in csv.reader(io.StringIO(text, newline=""), delimiter=delimiter) if row]
    except csv.Error as exc:
        raise UnsupportedInputFormatError(f"Malformed CSV in {path}: {exc}") from exc

    if not rows:
        raise UnsupportedInputFormatError(f"{path} is empty")

    width = len(rows[0])
    for line_no, row in enumerate(rows[1:], start=2):
        if len(row) != width:
            raise UnsupportedInputFormatError(
                f"{path}: record {line_no} has {len(row)} fields, expected {width}"
            )

    return Grid(rows=rows, delimiter=delimiter)


def write_text(path: Path, text: str) -> None:
    """Write rendered table text, terminated by a single newline."""
    Path(path).write_text(text + "\n", encoding="utf-8")
