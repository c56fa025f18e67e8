"""Value types shared by the parser, the evaluator and the table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from csvcalc.errors import UnknownOperatorError


@dataclass(frozen=True)
class Address:
    """Zero-based (column, row) coordinate of one cell in a table grid."""

    column_index: int
    row_index: int


@dataclass(frozen=True)
class Constant:
    """Literal integer operand."""

    value: int


@dataclass(frozen=True)
class CellRef:
    """Symbolic cell reference as written in a formula, e.g. ``B12``."""

    column: str
    row: str

    def __str__(self) -> str:
        return f"{self.column}{self.row}"


class Operator(str, Enum):
    add = "+"
    subtract = "-"
    multiply = "*"
    divide = "/"

    @classmethod
    def from_symbol(cls, symbol: str) -> Operator:
        """Map an operator character to its enum member.

        Raises:
            UnknownOperatorError: If *symbol* is not one of ``+ - * /``.
        """
        try:
            return cls(symbol)
        except ValueError:
            raise UnknownOperatorError(symbol) from None


class EvalState(str, Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    done = "done"


SyntaxOperand = Union[Constant, CellRef]
Operand = Union[Constant, Address]


@dataclass(frozen=True)
class FormulaExpr:
    """Parsed but unresolved formula: operands may still be symbolic."""

    operator: Operator
    left: SyntaxOperand
    right: SyntaxOperand

    def __str__(self) -> str:
        return f"={_syntax_text(self.left)}{self.operator.value}{_syntax_text(self.right)}"


def _syntax_text(operand: SyntaxOperand) -> str:
    if isinstance(operand, Constant):
        return str(operand.value)
    return str(operand)


@dataclass
class Formula:
    """A resolved formula registered at one cell of a table.

    ``result`` is set exactly once, when ``state`` becomes ``done``.
    """

    address: Address
    operator: Operator
    left: Operand
    right: Operand
    state: EvalState = EvalState.not_started
    result: int | None = None
