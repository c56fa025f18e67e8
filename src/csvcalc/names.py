"""Column/row name validation and resolution of symbolic cell references."""

from __future__ import annotations

import re
from typing import Iterable, Mapping

from csvcalc.errors import DuplicateKeyError, InvalidKeyShapeError, UnknownCellReferenceError
from csvcalc.model import Address, CellRef, Constant, Formula, FormulaExpr, Operand, SyntaxOperand

COLUMN_NAME_RE = re.compile(r"[A-Za-z]+")
ROW_NAME_RE = re.compile(r"[0-9]+")


def validate_keys(names: Iterable[str], pattern: re.Pattern[str], kind: str) -> None:
    """Check that *names* all match *pattern* and are pairwise distinct.

    Names are checked in order and the first offending one is reported.

    Args:
        names: Column or row names, in table order.
        pattern: Shape every name must match in full (``fullmatch``).
        kind: ``"column"`` or ``"row"``, used in error messages.

    Raises:
        InvalidKeyShapeError: If a name does not match *pattern*.
        DuplicateKeyError: If a name repeats.
    """
    seen: set[str] = set()
    for name in names:
        if not pattern.fullmatch(name):
            raise InvalidKeyShapeError(kind, name)
        if name in seen:
            raise DuplicateKeyError(kind, name)
        seen.add(name)


def validate_column_names(names: Iterable[str]) -> None:
    validate_keys(names, COLUMN_NAME_RE, "column")


def validate_row_names(names: Iterable[str]) -> None:
    validate_keys(names, ROW_NAME_RE, "row")


class NameResolver:
    """Maps symbolic (column name, row name) pairs to table addresses.

    Parameters
    ----------
    column_index_by_name : Mapping[str, int]
        Column name -> zero-based column index.
    row_index_by_name : Mapping[str, int]
        Row name -> zero-based row index.
    """

    def __init__(
        self,
        column_index_by_name: Mapping[str, int],
        row_index_by_name: Mapping[str, int],
    ) -> None:
        self._columns = column_index_by_name
        self._rows = row_index_by_name

    def resolve(self, column: str, row: str) -> Address:
        """Return the address of ``column``/``row``.

        Raises:
            UnknownCellReferenceError: If either name is absent from the table.
        """
        missing: list[str] = []
        if column not in self._columns:
            missing.append(f"column {column!r}")
        if row not in self._rows:
            missing.append(f"row {row!r}")
        if missing:
            raise UnknownCellReferenceError(f"{column}{row}", missing)
        return Address(column_index=self._columns[column], row_index=self._rows[row])

    def bind(self, expr: FormulaExpr, address: Address) -> Formula:
        """Resolve every symbolic operand of *expr* into a formula at *address*."""
        return Formula(
            address=address,
            operator=expr.operator,
            left=self._operand(expr.left),
            right=self._operand(expr.right),
        )

    def _operand(self, operand: SyntaxOperand) -> Operand:
        if isinstance(operand, CellRef):
            return self.resolve(operand.column, operand.row)
        return Constant(operand.value)
