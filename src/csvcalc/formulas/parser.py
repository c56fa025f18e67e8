"""Lark-based parser for single-step cell formulas.

A cell holds either an integer literal or a formula of exactly one operator
and two operands::

    =A1+3
    =B12*C2
    =10/4

Operands are bare integers or cell references (column letters followed by
row digits, no separator).  Whitespace, nesting and chaining are rejected.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Union

from lark import Lark, Token, Tree
from lark.exceptions import LarkError

from csvcalc.errors import MalformedFormulaError, MalformedNumberError
from csvcalc.model import CellRef, Constant, FormulaExpr, Operator, SyntaxOperand

FORMULA_MARKER = "="

# LALR(1) grammar.  No %ignore directive: whitespace anywhere is a syntax error.
GRAMMAR = r"""
start: "=" operand OPERATOR operand

?operand: CELL_REF  -> cell_ref
    | INT           -> constant

CELL_REF: /[A-Za-z]+[0-9]+/
INT: /[0-9]+/
OPERATOR: "+" | "-" | "*" | "/"
"""

_CELL_REF_RE = re.compile(r"([A-Za-z]+)([0-9]+)")
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")

ParsedCell = Union[int, FormulaExpr]


def is_formula(text: str) -> bool:
    """True if *text* carries the formula marker."""
    return text.startswith(FORMULA_MARKER)


def parse_integer(text: str) -> int:
    """Parse a plain integer cell (optional sign, ASCII digits only).

    Raises:
        MalformedNumberError: If *text* is not an integer literal.
    """
    if not _INTEGER_RE.fullmatch(text):
        raise MalformedNumberError(text)
    return int(text)


def split_cell_ref(text: str) -> CellRef:
    """Split ``"AB12"`` into column ``"AB"`` and row ``"12"``."""
    m = _CELL_REF_RE.fullmatch(text)
    if m is None:
        raise MalformedFormulaError(text)
    return CellRef(column=m.group(1), row=m.group(2))


class FormulaParser:
    """Compiled formula grammar.

    Construct once and share; the table takes one explicitly, or falls back
    to :func:`default_parser`.
    """

    def __init__(self) -> None:
        self._lark = Lark(GRAMMAR, parser="lalr", start="start")

    def parse_formula(self, text: str) -> FormulaExpr:
        """Parse a formula string (must start with ``=``).

        Args:
            text: The formula text, e.g. ``"=A1+3"``.

        Returns:
            The operator and the two (possibly symbolic) operands.

        Raises:
            MalformedFormulaError: If the text does not match the grammar.
        """
        if not is_formula(text):
            raise MalformedFormulaError(text, position=0)
        try:
            tree = self._lark.parse(text)
        except LarkError as exc:
            # Lark columns are 1-based
            column = getattr(exc, "column", None)
            pos = column - 1 if isinstance(column, int) and column > 0 else None
            raise MalformedFormulaError(text, position=pos) from exc

        left, op, right = tree.children
        return FormulaExpr(
            operator=Operator.from_symbol(str(op)),
            left=_operand(left),
            right=_operand(right),
        )

    def parse_cell(self, text: str) -> ParsedCell:
        """Classify raw cell text as an integer literal or a formula."""
        if is_formula(text):
            return self.parse_formula(text)
        return parse_integer(text)


def _operand(node: Tree | Token) -> SyntaxOperand:
    if not isinstance(node, Tree):
        raise MalformedFormulaError(str(node))
    token = node.children[0]
    if node.data == "cell_ref":
        return split_cell_ref(str(token))
    return Constant(int(str(token)))


@lru_cache(maxsize=1)
def default_parser() -> FormulaParser:
    """Return the process-wide parser, compiled on first use."""
    return FormulaParser()


def parse_formula(text: str) -> FormulaExpr:
    """Parse *text* with the default parser."""
    return default_parser().parse_formula(text)


def parse_cell(text: str) -> ParsedCell:
    """Classify *text* with the default parser."""
    return default_parser().parse_cell(text)
