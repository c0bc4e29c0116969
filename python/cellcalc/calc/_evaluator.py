"""Expression evaluator and the full-grid recalculation engine.

``evaluate`` walks a parsed tree with arbitrary-precision integers. Cell
references are answered by a ``resolve_cell`` callback supplied by the
caller, so the evaluator never looks at the grid itself.

``GridEvaluator`` drives a whole pass: build the dependency graph, mark
the first cycle, order the remaining cells and evaluate them one by one,
writing each cell's display text and error flag.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Callable

from cellcalc.calc import _functions as fn
from cellcalc.calc._functions import EvalResult, FunctionRegistry
from cellcalc.calc._graph import DependencyGraph
from cellcalc.calc._parser import (
    Additive,
    CellRef,
    FormulaSyntaxError,
    FunctionCall,
    InvalidRef,
    Multiplicative,
    Node,
    NumberLiteral,
    Parenthesized,
    UnarySign,
    parse,
    syntax_check,
)
from cellcalc.calc._protocol import CellDelta, RecalcResult, RecalcStage

if TYPE_CHECKING:
    from cellcalc._cell import Cell
    from cellcalc._grid import Grid

logger = logging.getLogger(__name__)

CellResolver = Callable[[str], EvalResult]

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


# Conversions go through Decimal, which is exact and not subject to the
# interpreter's int/str digit limit.


def _to_int(digits: str) -> int:
    return int(Decimal(digits))


def _to_text(value: int) -> str:
    return str(Decimal(value))


# ---------------------------------------------------------------------------
# Integer arithmetic
# ---------------------------------------------------------------------------


def _trunc_div(a: int, b: int) -> int:
    """Quotient rounded toward zero (Python's ``//`` floors)."""
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _trunc_mod(a: int, b: int) -> int:
    """Remainder with the sign of the dividend."""
    return a - b * _trunc_div(a, b)


def _binary_op(left: int, op: str, right: int) -> EvalResult:
    if op == "+":
        return EvalResult.of(left + right)
    if op == "-":
        return EvalResult.of(left - right)
    if op == "*":
        return EvalResult.of(left * right)
    if op == "/":
        if right == 0:
            return EvalResult.fail(fn.DIVISION_BY_ZERO)
        return EvalResult.of(_trunc_div(left, right))
    if op == "div":
        if right == 0:
            return EvalResult.fail(fn.INT_DIV_BY_ZERO)
        return EvalResult.of(_trunc_div(left, right))
    if op == "mod":
        if right == 0:
            return EvalResult.fail(fn.MODULO_BY_ZERO)
        return EvalResult.of(_trunc_mod(left, right))
    return EvalResult.fail(fn.unknown_operator(op))


# ---------------------------------------------------------------------------
# Tree evaluation
# ---------------------------------------------------------------------------

_DEFAULT_FUNCTIONS = FunctionRegistry()


def evaluate(
    node: Node,
    resolve_cell: CellResolver,
    functions: FunctionRegistry | None = None,
) -> EvalResult:
    """Evaluate *node*; the first error met is returned unchanged."""
    registry = functions if functions is not None else _DEFAULT_FUNCTIONS

    def visit(n: Node) -> EvalResult:
        if isinstance(n, NumberLiteral):
            try:
                return EvalResult.of(_to_int(n.digits))
            except (InvalidOperation, ValueError):
                return EvalResult.fail(fn.invalid_number(n.digits))

        if isinstance(n, CellRef):
            return resolve_cell(n.ref.upper())

        if isinstance(n, Parenthesized):
            return visit(n.child)

        if isinstance(n, UnarySign):
            operand = visit(n.child)
            if operand.is_error:
                return operand
            if n.op == "+":
                return operand
            if n.op == "-":
                return EvalResult.of(-operand.value)
            return EvalResult.fail(fn.unknown_unary_operator(n.op))

        if isinstance(n, (Multiplicative, Additive)):
            left = visit(n.left)
            if left.is_error:
                return left
            right = visit(n.right)
            if right.is_error:
                return right
            return _binary_op(left.value, n.op, right.value)

        if isinstance(n, FunctionCall):
            arg = visit(n.arg)
            if arg.is_error:
                return arg
            func = registry.get(n.name)
            if func is None:
                return EvalResult.fail(fn.unknown_function(n.name.lower()))
            try:
                return EvalResult.of(func(arg.value))
            except Exception as e:
                logger.debug("Error evaluating %s: %s", n.name, e)
                return EvalResult.fail(fn.function_failed(n.name.lower(), e))

        if isinstance(n, InvalidRef):
            return EvalResult.fail(fn.INVALID_REFERENCE)

        raise TypeError(f"Unknown node type: {type(n).__name__}")

    return visit(node)


def evaluate_text(
    expression: str,
    resolve_cell: CellResolver,
    functions: FunctionRegistry | None = None,
) -> EvalResult:
    """Parse and evaluate *expression*; syntax errors become error results."""
    parsed = parse(expression.strip())
    if parsed.tree is None:
        return EvalResult.fail(parsed.error_display())
    return evaluate(parsed.tree, resolve_cell, functions)


# ---------------------------------------------------------------------------
# Recalculation engine
# ---------------------------------------------------------------------------


class GridEvaluator:
    """Recomputes every cell of a grid from scratch.

    Usage::

        engine = GridEvaluator()
        result = engine.recalculate(grid)
        grid.display("A1"), grid["A1"].has_error
        result.cycle  # ("A1", "B1") when A1 and B1 read each other

    A pass is synchronous and not reentrant; do not edit expressions while
    one is running.
    """

    def __init__(self, functions: FunctionRegistry | None = None) -> None:
        self._functions = functions if functions is not None else FunctionRegistry()
        self._stage = RecalcStage.IDLE

    @property
    def stage(self) -> RecalcStage:
        return self._stage

    @property
    def functions(self) -> FunctionRegistry:
        return self._functions

    def syntax_check(self, expression: str) -> list[FormulaSyntaxError]:
        return syntax_check(expression)

    def recalculate(self, grid: Grid) -> RecalcResult:
        """Run one full pass over *grid* and report what happened."""
        if self._stage not in (RecalcStage.IDLE, RecalcStage.DONE):
            raise RuntimeError(f"recalculate() called during a pass ({self._stage.value})")
        self._set_stage(RecalcStage.IDLE)

        try:
            return self._run(grid)
        except Exception:
            self._stage = RecalcStage.IDLE
            raise

    def _run(self, grid: Grid) -> RecalcResult:
        before = {a: (c.display, c.has_error) for a, c in grid.cells.items()}

        graph = DependencyGraph.from_grid(grid)
        self._set_stage(RecalcStage.GRAPH_BUILT)

        cycle = graph.find_cycle() or []
        cycle_members = set(cycle)
        for cell_ref in cycle:
            cell = grid.cells[cell_ref]
            cell.display = fn.CYCLE
            cell.has_error = True
        if cycle:
            logger.warning("Circular reference: %s", " -> ".join(cycle))
        self._set_stage(RecalcStage.CYCLES_MARKED)

        order = graph.topological_order(exclude=cycle_members)
        unresolved = graph.unresolved(order, exclude=cycle_members)
        if unresolved:
            logger.warning(
                "%d cell(s) wait on another cycle and were not evaluated: %s",
                len(unresolved), ", ".join(unresolved),
            )
        self._set_stage(RecalcStage.ORDERED)

        self._set_stage(RecalcStage.EVALUATING)
        for cell_ref in order:
            if cell_ref in cycle_members:
                continue
            self._evaluate_cell(grid, grid.cells[cell_ref])

        deltas: list[CellDelta] = []
        error_cells = 0
        for cell_ref, cell in grid.cells.items():
            if cell.has_error:
                error_cells += 1
            if before[cell_ref] != (cell.display, cell.has_error):
                deltas.append(CellDelta(
                    address=cell_ref,
                    old_display=before[cell_ref][0],
                    new_display=cell.display,
                    has_error=cell.has_error,
                ))

        self._set_stage(RecalcStage.DONE)
        return RecalcResult(
            cycle=tuple(cycle),
            order=tuple(order),
            unresolved=tuple(unresolved),
            deltas=tuple(deltas),
            error_cells=error_cells,
        )

    def _set_stage(self, stage: RecalcStage) -> None:
        logger.debug("recalc stage: %s -> %s", self._stage.value, stage.value)
        self._stage = stage

    # ------------------------------------------------------------------
    # Per-cell evaluation
    # ------------------------------------------------------------------

    def _evaluate_cell(self, grid: Grid, cell: Cell) -> None:
        expr = cell.expression.strip()
        if not expr:
            cell.display = ""
            cell.has_error = False
            return

        try:
            parsed = parse(expr)
            if parsed.tree is None:
                logger.debug("Syntax errors in %s: %s", cell.address, parsed.errors)
                _set_error(cell, parsed.error_display())
                return
            result = evaluate(parsed.tree, self._resolver(grid), self._functions)
        except RecursionError:
            logger.debug("Expression in %s exceeds the recursion limit", cell.address)
            _set_error(cell, fn.NESTED_TOO_DEEPLY)
            return

        if result.is_error:
            logger.debug("Cannot evaluate %r in %s: %s", expr, cell.address, result.error)
            _set_error(cell, result.error)
            return
        cell.display = _to_text(result.value)
        cell.has_error = False

    @staticmethod
    def _resolver(grid: Grid) -> CellResolver:
        cells = grid.cells

        def resolve(cell_ref: str) -> EvalResult:
            dep = cells.get(cell_ref)
            if dep is None:
                return EvalResult.fail(fn.unknown_cell(cell_ref))
            if dep.has_error:
                return EvalResult.fail(fn.ref_error(dep.display or "ERR"))
            if dep.is_empty:
                return EvalResult.of(0)
            if _INTEGER_RE.fullmatch(dep.display):
                return EvalResult.of(_to_int(dep.display))
            return EvalResult.fail(fn.not_a_number(dep.display))

        return resolve


def _set_error(cell: Cell, message: str) -> None:
    cell.display = message
    cell.has_error = True
