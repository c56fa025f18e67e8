"""Error types for table loading, formula parsing and evaluation.

Every error carries an ``error_code`` (used in structured events) and may be
tagged with the cell it originated from via :meth:`CsvCalcError.at`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from csvcalc.model import Address


class CsvCalcError(Exception):
    """Base class for all csvcalc errors.

    Attributes:
        message: Human-readable description, without location.
        address: Address of the offending cell, when known.
        cell: Symbolic label of the offending cell (e.g. ``"B2"``), when known.
    """

    error_code = "csvcalc_error"

    def __init__(self, message: str) -> None:
        self.message = message
        self.address: Address | None = None
        self.cell: str | None = None
        super().__init__(message)

    def at(self, address: Address, cell: str) -> CsvCalcError:
        """Attach the originating cell and return ``self`` for re-raising."""
        self.address = address
        self.cell = cell
        return self

    @property
    def located(self) -> bool:
        return self.address is not None

    def __str__(self) -> str:
        if self.address is None:
            return self.message
        return (
            f"{self.cell} (column {self.address.column_index}, "
            f"row {self.address.row_index}): {self.message}"
        )


class PipelineStateError(CsvCalcError):
    """A table operation was called out of pipeline order."""

    error_code = "pipeline_state"


class ConfigError(CsvCalcError):
    """The configuration file is not a YAML mapping."""

    error_code = "config_error"


class UnsupportedInputFormatError(CsvCalcError):
    """The input source is not a recognizable rectangular table."""

    error_code = "unsupported_input_format"


# ---------------------------------------------------------------------------
# Key validation
# ---------------------------------------------------------------------------


class KeyValidationError(CsvCalcError):
    """Base class for column/row name errors.

    Attributes:
        kind: ``"column"`` or ``"row"``.
        name: The offending name.
    """

    def __init__(self, kind: str, name: str, message: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(message)


class InvalidKeyShapeError(KeyValidationError):
    error_code = "invalid_key_shape"

    def __init__(self, kind: str, name: str) -> None:
        shape = "ASCII letters" if kind == "column" else "ASCII digits"
        super().__init__(
            kind, name, f"Invalid {kind} name {name!r}: must consist of {shape} only"
        )


class DuplicateKeyError(KeyValidationError):
    error_code = "duplicate_key"

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(kind, name, f"Duplicate {kind} name {name!r}")


# ---------------------------------------------------------------------------
# Formula parsing and evaluation
# ---------------------------------------------------------------------------


class FormulaError(CsvCalcError):
    """Base class for all cell content and formula errors."""


class MalformedNumberError(FormulaError):
    """A non-formula cell is not an integer literal."""

    error_code = "malformed_number"

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"Not an integer: {text!r}")


class MalformedFormulaError(FormulaError):
    """Syntax error in a formula.

    Attributes:
        text: The formula text.
        position: Character position where the error was detected.
    """

    error_code = "malformed_formula"

    def __init__(self, text: str, position: int | None = None) -> None:
        self.text = text
        self.position = position
        msg = f"Malformed formula {text!r}"
        if position is not None:
            msg += f" (at position {position})"
        super().__init__(msg)


class UnknownCellReferenceError(FormulaError):
    """A formula references a column or row name absent from the table.

    Attributes:
        ref_name: The unresolved reference, e.g. ``"Z99"``.
    """

    error_code = "unknown_cell_reference"

    def __init__(self, ref_name: str, missing: list[str] | None = None) -> None:
        self.ref_name = ref_name
        self.missing = missing or []
        msg = f"Unknown cell reference: {ref_name!r}"
        if self.missing:
            msg += f" (no {' and no '.join(self.missing)})"
        super().__init__(msg)


class UnknownOperatorError(FormulaError):
    error_code = "unknown_operator"

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Unknown operator: {symbol!r}")


class DivisionByZeroError(FormulaError):
    error_code = "division_by_zero"

    def __init__(self) -> None:
        super().__init__("Division by zero in formula")


class OutOfBoundsAddressError(FormulaError):
    error_code = "out_of_bounds_address"

    def __init__(self, column_index: int, row_index: int) -> None:
        self.column_index = column_index
        self.row_index = row_index
        super().__init__(
            f"Address out of bounds: column {column_index}, row {row_index}"
        )


class CircularReferenceError(FormulaError):
    """Raised when a formula re-enters its own evaluation.

    Attributes:
        cycle_path: Cell labels showing the cycle, first and last equal.
    """

    error_code = "circular_reference"

    def __init__(self, cycle_path: list[str]) -> None:
        self.cycle_path = cycle_path
        super().__init__(f"Circular cell reference: {' -> '.join(cycle_path)}")
