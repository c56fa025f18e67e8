"""Single-step cell formula parsing and evaluation.

Public API::

    from csvcalc.formulas import FormulaParser, Evaluator, parse_cell
"""

from csvcalc.formulas.evaluator import CellSource, Evaluator, apply_operator
from csvcalc.formulas.parser import (
    FORMULA_MARKER,
    FormulaParser,
    default_parser,
    is_formula,
    parse_cell,
    parse_formula,
    parse_integer,
)

__all__ = [
    "FORMULA_MARKER",
    "CellSource",
    "Evaluator",
    "FormulaParser",
    "apply_operator",
    "default_parser",
    "is_formula",
    "parse_cell",
    "parse_formula",
    "parse_integer",
]
