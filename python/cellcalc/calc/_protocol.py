"""CalcEngine protocol, recalculation stages and result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cellcalc._grid import Grid
    from cellcalc.calc._parser import FormulaSyntaxError


class RecalcStage(Enum):
    """Where a recalculation pass is. A pass always ends at DONE."""

    IDLE = "idle"
    GRAPH_BUILT = "graph_built"
    CYCLES_MARKED = "cycles_marked"
    ORDERED = "ordered"
    EVALUATING = "evaluating"
    DONE = "done"


@dataclass(frozen=True)
class CellDelta:
    """A single cell's display change from recalculation."""

    address: str
    old_display: str
    new_display: str
    has_error: bool = False


@dataclass(frozen=True)
class RecalcResult:
    """Summary of one full-grid recalculation pass."""

    cycle: tuple[str, ...]  # first cycle found, discovery order
    order: tuple[str, ...]  # cells evaluated, in order
    unresolved: tuple[str, ...] = ()  # cells left untouched (unreported cycles)
    deltas: tuple[CellDelta, ...] = ()  # cells whose display or error flag changed
    error_cells: int = 0

    @property
    def has_cycle(self) -> bool:
        return bool(self.cycle)

    @property
    def changed(self) -> frozenset[str]:
        return frozenset(d.address for d in self.deltas)


@runtime_checkable
class CalcEngine(Protocol):
    """Protocol for grid recalculation engines."""

    def recalculate(self, grid: Grid) -> RecalcResult:
        """Recompute every cell of *grid* from scratch.

        Writes each cell's display text and error flag.
        """
        ...

    def syntax_check(self, expression: str) -> list[FormulaSyntaxError]:
        """Return the syntax errors in *expression* without touching any cell."""
        ...
