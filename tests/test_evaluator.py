"""Tests for the memoized formula evaluator."""

from __future__ import annotations

import sys

import pytest

import csvcalc.formulas.evaluator as evaluator_mod
from csvcalc.errors import CircularReferenceError, DivisionByZeroError, MalformedNumberError, OutOfBoundsAddressError
from csvcalc.formulas.evaluator import Evaluator, apply_operator
from csvcalc.model import Address, Constant, EvalState, Formula, Operator
from csvcalc.table import Table


def _parsed(rows: list[list[str]]) -> Table:
    """Build a table and stop right before evaluation."""
    table = Table.from_grid(rows)
    table.validate_keys()
    table.parse_cells()
    return table


class FakeSource:
    """Minimal CellSource over a dict of cell text."""

    def __init__(self, cells: dict[Address, str], formulas: dict[Address, Formula] | None = None) -> None:
        self.cells = cells
        self.formulas = formulas or {}

    def cell_text(self, address: Address) -> str:
        if address not in self.cells:
            raise OutOfBoundsAddressError(address.column_index, address.row_index)
        return self.cells[address]

    def formula_at(self, address: Address) -> Formula | None:
        return self.formulas.get(address)

    def cell_label(self, address: Address) -> str:
        return f"R{address.row_index}C{address.column_index}"


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


class TestApplyOperator:
    def test_basic_ops(self):
        assert apply_operator(Operator.add, 4, 3) == 7
        assert apply_operator(Operator.subtract, 5, 9) == -4
        assert apply_operator(Operator.multiply, 4, 3) == 12
        assert apply_operator(Operator.divide, 9, 2) == 4

    @pytest.mark.parametrize(
        "left,right,expected",
        [(9, 2, 4), (-9, 2, -4), (9, -2, -4), (-9, -2, 4), (7, 7, 1), (0, 5, 0), (1, 3, 0), (-1, 3, 0)],
    )
    def test_division_truncates_toward_zero(self, left: int, right: int, expected: int):
        assert apply_operator(Operator.divide, left, right) == expected

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZeroError):
            apply_operator(Operator.divide, 5, 0)

    def test_large_values_do_not_overflow(self):
        assert apply_operator(Operator.multiply, 2**62, 4) == 2**64


# ---------------------------------------------------------------------------
# Constant formulas
# ---------------------------------------------------------------------------


class TestConstantFormulas:
    @pytest.mark.parametrize(
        "text,expected",
        [("=4*3", 12), ("=9/2", 4), ("=5-9", -4), ("=10+0", 10), ("=0*7", 0)],
    )
    def test_constant_arithmetic(self, text: str, expected: int):
        table = _parsed([["", "A"], ["1", text]])
        formula = table.formula_at(Address(0, 0))
        assert Evaluator(table).evaluate(formula) == expected

    def test_constant_division_by_zero(self):
        table = _parsed([["", "A"], ["1", "=7/0"]])
        with pytest.raises(DivisionByZeroError) as exc_info:
            Evaluator(table).evaluate(table.formula_at(Address(0, 0)))
        assert exc_info.value.cell == "A1"


# ---------------------------------------------------------------------------
# References and memoization
# ---------------------------------------------------------------------------


class TestReferences:
    def test_reference_to_literal(self):
        table = _parsed([["", "A", "B"], ["1", "5", "=A1+3"]])
        assert Evaluator(table).evaluate(table.formula_at(Address(1, 0))) == 8

    def test_reference_to_formula_is_evaluated_first(self):
        table = _parsed([["", "A", "B"], ["1", "5", "=A1+3"], ["2", "=A1*B1", "2"]])
        ev = Evaluator(table)
        a2 = table.formula_at(Address(0, 1))
        assert ev.evaluate(a2) == 40
        b1 = table.formula_at(Address(1, 0))
        assert b1.state is EvalState.done
        assert b1.result == 8

    def test_negative_cell_division(self):
        table = _parsed([["", "A", "B"], ["1", "-9", "=A1/2"]])
        assert Evaluator(table).evaluate(table.formula_at(Address(1, 0))) == -4

    def test_divisor_from_formula_is_zero(self):
        table = _parsed([["", "A", "B", "C"], ["1", "3", "=A1-A1", "=A1/B1"]])
        with pytest.raises(DivisionByZeroError) as exc_info:
            Evaluator(table).evaluate(table.formula_at(Address(2, 0)))
        assert exc_info.value.cell == "C1"

    def test_divisor_literal_zero(self):
        table = _parsed([["", "A", "B"], ["1", "0", "=10/A1"]])
        with pytest.raises(DivisionByZeroError):
            Evaluator(table).evaluate(table.formula_at(Address(1, 0)))

    def test_out_of_bounds_address(self):
        source = FakeSource({})
        formula = Formula(Address(0, 0), Operator.add, Address(5, 5), Constant(1))
        with pytest.raises(OutOfBoundsAddressError) as exc_info:
            Evaluator(source).evaluate(formula)
        assert exc_info.value.cell == "R0C0"
        assert formula.state is EvalState.not_started

    def test_marker_without_registered_formula(self):
        """A cell starting with '=' but with no registered formula is not a number."""
        source = FakeSource({Address(1, 0): "=oops"})
        formula = Formula(Address(0, 0), Operator.add, Address(1, 0), Constant(1))
        with pytest.raises(MalformedNumberError):
            Evaluator(source).evaluate(formula)


class TestMemoization:
    def test_second_call_returns_cached_result(self, monkeypatch):
        calls: list[Operator] = []
        real = evaluator_mod.apply_operator

        def counting(op, left, right):
            calls.append(op)
            return real(op, left, right)

        monkeypatch.setattr(evaluator_mod, "apply_operator", counting)

        table = _parsed([["", "A"], ["1", "=4*3"]])
        formula = table.formula_at(Address(0, 0))
        ev = Evaluator(table)
        assert ev.evaluate(formula) == 12
        assert ev.evaluate(formula) == 12
        assert len(calls) == 1

    def test_shared_dependency_computed_once(self, monkeypatch):
        calls: list[Operator] = []
        real = evaluator_mod.apply_operator

        def counting(op, left, right):
            calls.append(op)
            return real(op, left, right)

        monkeypatch.setattr(evaluator_mod, "apply_operator", counting)

        table = _parsed([
            ["", "A", "B", "C", "D"],
            ["1", "=2+3", "=A1*2", "=A1*3", "=B1+C1"],
        ])
        table.evaluate()
        assert table.rows() == [[5, 10, 15, 25]]
        # one application per formula, however often it is referenced
        assert len(calls) == 4

    def test_cached_result_survives_new_evaluator(self):
        table = _parsed([["", "A"], ["1", "=1+1"]])
        formula = table.formula_at(Address(0, 0))
        Evaluator(table).evaluate(formula)
        assert formula.state is EvalState.done
        assert Evaluator(table).evaluate(formula) == 2


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------


class TestCircularReference:
    def test_self_reference(self):
        table = _parsed([["", "A"], ["1", "=A1+1"]])
        formula = table.formula_at(Address(0, 0))
        with pytest.raises(CircularReferenceError) as exc_info:
            Evaluator(table).evaluate(formula)
        assert exc_info.value.cycle_path == ["A1", "A1"]
        assert exc_info.value.error_code == "circular_reference"
        assert formula.state is EvalState.not_started

    def test_mutual_reference(self):
        table = _parsed([["", "A", "B"], ["1", "=B1+1", "=A1+1"]])
        with pytest.raises(CircularReferenceError) as exc_info:
            Evaluator(table).evaluate(table.formula_at(Address(0, 0)))
        assert exc_info.value.cycle_path == ["A1", "B1", "A1"]
        assert "A1 -> B1 -> A1" in str(exc_info.value)
        assert all(f.state is EvalState.not_started for f in table.formulas.values())

    def test_cycle_behind_acyclic_prefix(self):
        table = _parsed([["", "A", "B", "C"], ["1", "=B1+1", "=C1+1", "=B1*2"]])
        with pytest.raises(CircularReferenceError) as exc_info:
            Evaluator(table).evaluate(table.formula_at(Address(0, 0)))
        assert exc_info.value.cycle_path == ["B1", "C1", "B1"]

    def test_long_chain_is_not_a_cycle(self):
        n = 50
        header = [""] + [chr(ord("A") + i % 26) * (i // 26 + 1) for i in range(n)]
        row = ["1", "1"] + [f"={header[i]}1+1" for i in range(1, n)]
        table = _parsed([header, row])
        last = table.formula_at(Address(n - 1, 0))
        assert Evaluator(table).evaluate(last) == n


def _column_chain(n: int) -> list[list[str]]:
    """Rows A1 = 1, Ai = A(i-1) + 1, listed last row first."""
    rows = [[str(i), f"=A{i - 1}+1"] for i in range(n, 1, -1)]
    return [["", "A"]] + rows + [["1", "1"]]


class TestDeepChains:
    def test_chain_deeper_than_recursion_limit(self):
        n = sys.getrecursionlimit() + 200
        table = Table.load(_column_chain(n))
        assert table.value(f"A{n}") == n
        assert table.value("A2") == 2

    def test_deep_chain_failure_resets_every_formula(self):
        n = sys.getrecursionlimit() + 200
        rows = _column_chain(n)
        rows[-1] = ["1", "=7/0"]
        table = _parsed(rows)
        top = table.formula_at(Address(0, 0))
        with pytest.raises(DivisionByZeroError) as exc_info:
            Evaluator(table).evaluate(top)
        assert exc_info.value.cell == "A1"
        assert all(f.state is EvalState.not_started for f in table.formulas.values())

    def test_deep_cycle_reports_full_path(self):
        n = sys.getrecursionlimit() + 200
        rows = _column_chain(n)
        rows[-1] = ["1", f"=A{n}+1"]
        table = _parsed(rows)
        with pytest.raises(CircularReferenceError) as exc_info:
            Evaluator(table).evaluate(table.formula_at(Address(0, 0)))
        path = exc_info.value.cycle_path
        assert len(path) == n + 1
        assert path[0] == path[-1] == f"A{n}"
