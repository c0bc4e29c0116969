"""Integration tests for cellcalc.calc: full-grid recalculation."""

from __future__ import annotations

import logging

import pytest

from cellcalc import Grid, recalculate
from cellcalc.calc import CalcEngine, GridEvaluator, RecalcStage

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _evaluate(expression: str, dependencies: dict[str, str] | None = None) -> tuple[str, bool]:
    """Put *expression* in A1 of a 10x10 grid, recalculate, read A1 back."""
    grid = Grid(10, 10)
    for ref, expr in (dependencies or {}).items():
        grid[ref] = expr
    grid["A1"] = expression
    GridEvaluator().recalculate(grid)
    return grid.display("A1"), grid["A1"].has_error


def _state(grid: Grid) -> dict[str, tuple[str, bool]]:
    return {a: (c.display, c.has_error) for a, c in grid.cells.items()}


class TestCellResults:
    @pytest.mark.parametrize(
        ("formula", "expected"),
        [
            ("5 + 3", "8"),
            ("10 * (2 + 1)", "30"),
            ("inc(10)", "11"),
            ("dec(5)", "4"),
            ("10 div 3", "3"),
            ("10 mod 3", "1"),
        ],
    )
    def test_arithmetic(self, formula: str, expected: str) -> None:
        assert _evaluate(formula) == (expected, False)

    def test_dependencies(self) -> None:
        assert _evaluate("B1 + C1", {"B1": "10", "C1": "inc(B1)"}) == ("21", False)

    @pytest.mark.parametrize("formula", ["5 * (10", "inc(1, 2)"])
    def test_syntax_errors(self, formula: str) -> None:
        display, has_error = _evaluate(formula)
        assert has_error
        assert display.startswith("Syntax error")

    def test_syntax_error_position(self) -> None:
        assert _evaluate("5 * (10") == ("Syntax error at 1:7", True)

    def test_reference_to_syntax_error(self) -> None:
        display, has_error = _evaluate("B1 + 5", {"B1": "10 / / 5"})
        assert has_error
        assert display.startswith("Ref error:")
        assert display == "Ref error: Syntax error at 1:5"

    def test_empty_reference_is_zero(self) -> None:
        assert _evaluate("B1 + 5") == ("5", False)

    def test_whitespace_expression_is_empty(self) -> None:
        assert _evaluate("   ") == ("", False)

    def test_reference_outside_grid(self) -> None:
        assert _evaluate("Z99 + 1") == ("Unknown cell Z99", True)

    def test_runtime_error_message(self) -> None:
        assert _evaluate("1 mod 0") == ("Modulo by zero", True)

    def test_negative_values_flow_through_references(self) -> None:
        assert _evaluate("B1 * 2", {"B1": "0 - 21"}) == ("-42", False)

    def test_deep_nesting_degrades_to_cell_error(self) -> None:
        formula = "(" * 5000 + "1" + ")" * 5000
        assert _evaluate(formula) == ("Expression is nested too deeply", True)

    def test_long_literal_round_trips(self) -> None:
        big = "9" * 5000
        assert _evaluate(big) == (big, False)

    def test_long_product_displayed_in_full(self) -> None:
        # (10**4000 - 1) * (10**400 - 1)
        expected = "9" * 399 + "8" + "9" * 3600 + "0" * 399 + "1"
        formula = "9" * 4000 + " * " + "9" * 400
        assert _evaluate(formula) == (expected, False)

    def test_long_values_flow_through_references(self) -> None:
        grid = Grid.from_expressions({"A1": "9" * 4000 + " * " + "9" * 400, "B1": "A1 - A1"})
        GridEvaluator().recalculate(grid)
        assert grid.display("B1") == "0"
        assert not grid["B1"].has_error


class TestCycles:
    def test_two_cell_cycle(self) -> None:
        grid = Grid(10, 10)
        grid["B1"] = "A1 + 1"
        grid["A1"] = "B1 * 2"
        result = GridEvaluator().recalculate(grid)
        assert result.cycle == ("A1", "B1")
        assert result.has_cycle
        for ref in ("A1", "B1"):
            assert grid.display(ref) == "CYCLE"
            assert grid[ref].has_error

    def test_dependent_of_cycle_gets_ref_error(self) -> None:
        grid = Grid.from_expressions({"A1": "B1", "B1": "A1", "C1": "A1 + 1"})
        GridEvaluator().recalculate(grid)
        assert grid.display("C1") == "Ref error: CYCLE"
        assert grid["C1"].has_error

    def test_unrelated_cells_still_computed(self) -> None:
        grid = Grid.from_expressions({"A1": "A1", "D4": "6 * 7"})
        GridEvaluator().recalculate(grid)
        assert grid.display("A1") == "CYCLE"
        assert grid.display("D4") == "42"

    def test_second_cycle_left_for_next_pass(self) -> None:
        grid = Grid.from_expressions({"A1": "B1", "B1": "A1", "C1": "D1", "D1": "C1"}, rows=1, cols=4)
        result = GridEvaluator().recalculate(grid)
        assert result.cycle == ("A1", "B1")
        assert result.unresolved == ("C1", "D1")
        assert not grid["C1"].has_error

    def test_cycle_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        grid = Grid.from_expressions({"A1": "B1", "B1": "A1"})
        with caplog.at_level(logging.WARNING, logger="cellcalc.calc._evaluator"):
            GridEvaluator().recalculate(grid)
        assert "Circular reference: A1 -> B1" in caplog.text

    def test_breaking_cycle_recovers(self) -> None:
        grid = Grid.from_expressions({"A1": "B1 * 2", "B1": "A1 + 1"})
        engine = GridEvaluator()
        engine.recalculate(grid)
        grid["B1"] = "4"
        engine.recalculate(grid)
        assert grid.display("A1") == "8"
        assert not grid["A1"].has_error


class TestRecalcPass:
    def test_idempotent(self) -> None:
        grid = Grid.from_expressions({"A1": "10", "B1": "A1 * 2", "C1": "B1 div 3", "D1": "1 / 0"})
        engine = GridEvaluator()
        first = engine.recalculate(grid)
        state = _state(grid)
        second = engine.recalculate(grid)
        assert _state(grid) == state
        assert second.deltas == ()
        assert first.order == second.order

    def test_deltas_report_changes(self) -> None:
        grid = Grid.from_expressions({"A1": "1", "B1": "A1 + 1"})
        engine = GridEvaluator()
        engine.recalculate(grid)
        grid["A1"] = "5"
        result = engine.recalculate(grid)
        assert result.changed == frozenset({"A1", "B1"})
        delta = {d.address: d for d in result.deltas}["B1"]
        assert (delta.old_display, delta.new_display) == ("2", "6")

    def test_error_cells_counted(self) -> None:
        grid = Grid.from_expressions({"A1": "1 / 0", "B1": "A1", "C1": "7"})
        result = GridEvaluator().recalculate(grid)
        assert result.error_cells == 2

    def test_stage_done_after_pass(self) -> None:
        engine = GridEvaluator()
        assert engine.stage is RecalcStage.IDLE
        engine.recalculate(Grid(2, 2))
        assert engine.stage is RecalcStage.DONE

    def test_custom_function(self) -> None:
        engine = GridEvaluator()
        engine.functions.register("square", lambda x: x * x)
        grid = Grid.from_expressions({"A1": "square(B1)", "B1": "-9"})
        engine.recalculate(grid)
        assert grid.display("A1") == "81"

    def test_failing_custom_function_is_cell_local(self) -> None:
        engine = GridEvaluator()
        engine.functions.register("half", lambda x: 10 // x)
        grid = Grid.from_expressions({"A1": "half(0)", "B1": "5 + 3", "C1": "A1 + 1"})
        result = engine.recalculate(grid)
        assert grid["A1"].has_error
        assert grid.display("A1").startswith("Function 'half' failed:")
        assert grid.display("B1") == "8"
        assert grid.display("C1").startswith("Ref error: Function 'half' failed:")
        assert engine.stage is RecalcStage.DONE
        assert result.error_cells == 2

    def test_non_numeric_display_rejected(self) -> None:
        grid = Grid.from_expressions({"B1": "5"})
        grid["B1"].display = "five"
        resolve = GridEvaluator._resolver(grid)
        assert resolve("B1").error == "Referenced value is not a number: five"

    def test_syntax_check_does_not_touch_cells(self) -> None:
        grid = Grid.from_expressions({"A1": "1 +"})
        errors = GridEvaluator().syntax_check(grid["A1"].expression)
        assert errors
        assert grid.display("A1") == ""
        assert not grid["A1"].has_error

    def test_module_level_recalculate(self) -> None:
        grid = Grid.from_expressions({"A1": "inc(inc(1))"})
        recalculate(grid)
        assert grid.display("A1") == "3"

    def test_implements_protocol(self) -> None:
        assert isinstance(GridEvaluator(), CalcEngine)

    def test_resized_grid_recalculates(self) -> None:
        grid = Grid.from_expressions({"A1": "B1 + 1", "B1": "2", "C3": "9"}, rows=3, cols=3)
        small = grid.resized(2, 2)
        recalculate(small)
        assert small.display("A1") == "3"
        assert "C3" not in small
