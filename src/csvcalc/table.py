"""Table: the grid of cells and the load/validate/parse/evaluate pipeline.

A table moves through the states of :class:`TableState` strictly in order::

    grid_loaded -> keys_validated -> cells_parsed -> formulas_evaluated -> rendered

:meth:`Table.load` runs the whole pipeline and only returns a fully
evaluated table; any failure propagates and no partial table escapes.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from csvcalc.errors import CsvCalcError, OutOfBoundsAddressError, PipelineStateError, UnsupportedInputFormatError
from csvcalc.formulas.evaluator import Evaluator
from csvcalc.formulas.parser import FormulaParser, default_parser, parse_integer, split_cell_ref
from csvcalc.model import Address, Formula, FormulaExpr
from csvcalc.names import NameResolver, validate_column_names, validate_row_names

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = ","


class TableState(str, Enum):
    unloaded = "unloaded"
    grid_loaded = "grid_loaded"
    keys_validated = "keys_validated"
    cells_parsed = "cells_parsed"
    formulas_evaluated = "formulas_evaluated"
    rendered = "rendered"


class Table:
    """A named grid of integer/formula cells.

    Build with :meth:`from_grid` (raw rows) or :meth:`load` (raw rows plus
    the full pipeline).

    Attributes:
        column_names: Column names in grid order.
        row_names: Row names in grid order.
        column_index_by_name: Column name -> column index.
        row_index_by_name: Row name -> row index.
        cells: ``row_count`` x ``column_count`` grid of cell text.
        formulas: Formulas keyed by the address of the cell holding them.
        delimiter: Field delimiter used by :meth:`render`.
        state: Current pipeline state.
    """

    def __init__(
        self,
        column_names: Sequence[str],
        row_names: Sequence[str],
        cells: Sequence[Sequence[str]],
        delimiter: str = DEFAULT_DELIMITER,
        parser: FormulaParser | None = None,
    ) -> None:
        if len(cells) != len(row_names):
            raise UnsupportedInputFormatError(
                f"Expected {len(row_names)} rows of cells, got {len(cells)}"
            )
        for row_name, row in zip(row_names, cells):
            if len(row) != len(column_names):
                raise UnsupportedInputFormatError(
                    f"Row {row_name!r} has {len(row)} cells, expected {len(column_names)}"
                )

        self.column_names: list[str] = list(column_names)
        self.row_names: list[str] = list(row_names)
        self.cells: list[list[str]] = [list(row) for row in cells]
        self.delimiter = delimiter
        self.column_index_by_name: dict[str, int] = {
            name: i for i, name in enumerate(self.column_names)
        }
        self.row_index_by_name: dict[str, int] = {
            name: i for i, name in enumerate(self.row_names)
        }
        self.formulas: dict[Address, Formula] = {}
        self.state = TableState.grid_loaded
        self._parser = parser or default_parser()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_grid(
        cls,
        rows: Sequence[Sequence[str]],
        delimiter: str = DEFAULT_DELIMITER,
        parser: FormulaParser | None = None,
    ) -> Table:
        """Split a raw grid into names and cells.

        Row 0 holds the column names after an ignored first field; each later
        row holds its row name followed by its cells.

        Raises:
            UnsupportedInputFormatError: If the grid is empty or ragged.
        """
        if not rows or not rows[0]:
            raise UnsupportedInputFormatError("Input has no header row")
        header = rows[0]
        body = rows[1:]
        for line_no, row in enumerate(body, start=2):
            if len(row) != len(header):
                raise UnsupportedInputFormatError(
                    f"Line {line_no} has {len(row)} fields, expected {len(header)}"
                )
        return cls(
            column_names=header[1:],
            row_names=[row[0] for row in body],
            cells=[row[1:] for row in body],
            delimiter=delimiter,
            parser=parser,
        )

    @classmethod
    def load(
        cls,
        rows: Sequence[Sequence[str]],
        delimiter: str = DEFAULT_DELIMITER,
        parser: FormulaParser | None = None,
    ) -> Table:
        """Build a table from raw rows and run the full pipeline.

        Returns:
            A table in state ``formulas_evaluated``.
        """
        table = cls.from_grid(rows, delimiter=delimiter, parser=parser)
        table.validate_keys()
        table.parse_cells()
        table.evaluate()
        return table

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def validate_keys(self) -> None:
        """Check column names, then row names."""
        self._require(TableState.grid_loaded)
        validate_column_names(self.column_names)
        validate_row_names(self.row_names)
        self.state = TableState.keys_validated

    def parse_cells(self) -> None:
        """Classify every cell and register each formula by its address.

        Cell references are resolved here, so a dangling reference fails
        before any evaluation starts.
        """
        self._require(TableState.keys_validated)
        resolver = NameResolver(self.column_index_by_name, self.row_index_by_name)
        formulas: dict[Address, Formula] = {}
        for row_index, row in enumerate(self.cells):
            for column_index, text in enumerate(row):
                address = Address(column_index=column_index, row_index=row_index)
                try:
                    parsed = self._parser.parse_cell(text)
                    if isinstance(parsed, FormulaExpr):
                        formulas[address] = resolver.bind(parsed, address)
                except CsvCalcError as exc:
                    raise exc.at(address, self.cell_label(address))
        self.formulas = formulas
        self.state = TableState.cells_parsed
        logger.debug("Registered %d formulas", len(formulas))

    def evaluate(self) -> None:
        """Evaluate every formula and replace its cell text with the result."""
        self._require(TableState.cells_parsed)
        evaluator = Evaluator(self)
        for address, formula in self.formulas.items():
            value = evaluator.evaluate(formula)
            self.cells[address.row_index][address.column_index] = str(value)
        self.state = TableState.formulas_evaluated

    def render(self) -> str:
        """Delimited text of the evaluated table, rows joined by ``\\n``."""
        if self.state not in (TableState.formulas_evaluated, TableState.rendered):
            raise PipelineStateError(
                f"Cannot render a table in state {self.state.value!r}"
            )
        d = self.delimiter
        lines = ["".join(d + name for name in self.column_names)]
        for row_name, row in zip(self.row_names, self.cells):
            lines.append(row_name + "".join(d + text for text in row))
        self.state = TableState.rendered
        return "\n".join(lines)

    def _require(self, state: TableState) -> None:
        if self.state is not state:
            raise PipelineStateError(
                f"Expected table state {state.value!r}, found {self.state.value!r}"
            )

    # ------------------------------------------------------------------
    # Cell access (CellSource protocol)
    # ------------------------------------------------------------------

    @property
    def column_count(self) -> int:
        return len(self.column_names)

    @property
    def row_count(self) -> int:
        return len(self.row_names)

    def in_bounds(self, address: Address) -> bool:
        return (
            0 <= address.column_index < self.column_count
            and 0 <= address.row_index < self.row_count
        )

    def cell_text(self, address: Address) -> str:
        """Current text of the cell at *address*.

        Raises:
            OutOfBoundsAddressError: If *address* lies outside the grid.
        """
        if not self.in_bounds(address):
            raise OutOfBoundsAddressError(address.column_index, address.row_index)
        return self.cells[address.row_index][address.column_index]

    def formula_at(self, address: Address) -> Formula | None:
        return self.formulas.get(address)

    def cell_label(self, address: Address) -> str:
        """Symbolic label, e.g. ``"B2"``; falls back to indices when out of bounds."""
        if not self.in_bounds(address):
            return f"[{address.column_index},{address.row_index}]"
        return self.column_names[address.column_index] + self.row_names[address.row_index]

    def address_of(self, label: str) -> Address:
        """Address of a symbolic label such as ``"B2"``."""
        ref = split_cell_ref(label)
        return NameResolver(self.column_index_by_name, self.row_index_by_name).resolve(
            ref.column, ref.row
        )

    def value(self, label: str) -> int:
        """Integer value of an evaluated cell, by label."""
        self._require_evaluated()
        return parse_integer(self.cell_text(self.address_of(label)))

    def rows(self) -> list[list[int]]:
        """The evaluated grid as integers."""
        self._require_evaluated()
        return [[parse_integer(text) for text in row] for row in self.cells]

    def _require_evaluated(self) -> None:
        if self.state not in (TableState.formulas_evaluated, TableState.rendered):
            raise PipelineStateError(
                f"Table values are not available in state {self.state.value!r}"
            )

    def __repr__(self) -> str:
        return (
            f"Table(columns={self.column_names!r}, rows={self.row_names!r}, "
            f"state={self.state.value!r})"
        )
