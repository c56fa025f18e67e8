"""On-demand memoized formula evaluator with cycle detection.

A formula is computed only when first requested (directly or through a
reference from another formula) and its result is stored on the formula
itself, so each formula is computed at most once.  Re-entering a formula
that is still being evaluated raises :class:`CircularReferenceError` with
the cycle path.
"""

from __future__ import annotations

import logging
from typing import Protocol

from csvcalc.errors import CsvCalcError, CircularReferenceError, DivisionByZeroError, UnknownOperatorError
from csvcalc.formulas.parser import is_formula, parse_integer
from csvcalc.model import Address, Constant, EvalState, Formula, Operand, Operator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cell source protocol -- the table, as seen by the evaluator
# ---------------------------------------------------------------------------


class CellSource(Protocol):
    """Read access to a table's cells and registered formulas."""

    def cell_text(self, address: Address) -> str:
        """Current text of a cell (may raise OutOfBoundsAddressError)."""
        ...

    def formula_at(self, address: Address) -> Formula | None:
        """Formula registered at *address*, if any."""
        ...

    def cell_label(self, address: Address) -> str:
        """Symbolic label of *address*, e.g. ``"B2"``."""
        ...


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


def apply_operator(operator: Operator, left: int, right: int) -> int:
    """Apply a binary operator to two integers.

    Division truncates toward zero and refuses a zero divisor.

    Raises:
        DivisionByZeroError: If *operator* is divide and *right* is 0.
        UnknownOperatorError: If *operator* is not a known operator.
    """
    if operator is Operator.add:
        return left + right
    if operator is Operator.subtract:
        return left - right
    if operator is Operator.multiply:
        return left * right
    if operator is Operator.divide:
        if right == 0:
            raise DivisionByZeroError()
        quotient = abs(left) // abs(right)
        return -quotient if (left < 0) != (right < 0) else quotient
    raise UnknownOperatorError(str(operator))


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class Evaluator:
    """Memoized evaluator for the formulas of one table.

    Dependencies are walked with an explicit stack of in-progress formulas
    rather than by recursion, so arbitrarily long reference chains resolve.

    Usage::

        ev = Evaluator(table)
        value = ev.evaluate(table.formula_at(address))

    Parameters
    ----------
    source : CellSource
        The table whose cells operands are read from.
    """

    def __init__(self, source: CellSource) -> None:
        self._source = source
        self._eval_stack: list[Formula] = []

    def evaluate(self, formula: Formula) -> int:
        """Compute *formula*, evaluating referenced formulas first.

        Returns:
            The integer result, cached on the formula.

        Raises:
            CircularReferenceError: If the formula depends on itself.
            DivisionByZeroError: If a divisor resolves to zero.
            FormulaError: For any other failure, tagged with the innermost
                failing formula's cell.
        """
        if formula.state is EvalState.done:
            return formula.result  # type: ignore[return-value]

        try:
            self._push(formula)
            while self._eval_stack:
                current = self._eval_stack[-1]
                values: list[int] = []
                for operand in (current.left, current.right):
                    pending = self._pending_formula(operand)
                    if pending is not None:
                        self._push(pending)
                        break
                    values.append(self._operand_value(operand))
                else:
                    self._finish(current, apply_operator(current.operator, *values))
        except BaseException as exc:
            if self._eval_stack:
                innermost = self._eval_stack[-1].address
                if isinstance(exc, CsvCalcError) and not exc.located:
                    exc.at(innermost, self._source.cell_label(innermost))
            for pending_formula in self._eval_stack:
                pending_formula.state = EvalState.not_started
            self._eval_stack.clear()
            raise

        return formula.result  # type: ignore[return-value]

    def _push(self, formula: Formula) -> None:
        """Mark *formula* in progress, or report the cycle it closes."""
        if formula.state is EvalState.in_progress:
            addresses = [f.address for f in self._eval_stack]
            path = addresses[addresses.index(formula.address):] + [formula.address]
            raise CircularReferenceError([self._source.cell_label(a) for a in path]).at(
                formula.address, self._source.cell_label(formula.address)
            )
        formula.state = EvalState.in_progress
        self._eval_stack.append(formula)

    def _finish(self, formula: Formula, result: int) -> None:
        formula.result = result
        formula.state = EvalState.done
        self._eval_stack.pop()
        logger.debug("%s = %d", self._source.cell_label(formula.address), result)

    def _pending_formula(self, operand: Operand) -> Formula | None:
        """The not yet computed formula *operand* refers to, if any."""
        if isinstance(operand, Constant):
            return None
        if not is_formula(self._source.cell_text(operand)):
            return None
        referenced = self._source.formula_at(operand)
        if referenced is None or referenced.state is EvalState.done:
            return None
        return referenced

    def _operand_value(self, operand: Operand) -> int:
        """Integer value of an operand whose dependencies are all computed."""
        if isinstance(operand, Constant):
            return operand.value
        referenced = self._source.formula_at(operand)
        if referenced is not None and referenced.state is EvalState.done:
            return referenced.result  # type: ignore[return-value]
        return parse_integer(self._source.cell_text(operand))
