"""cellcalc - integer spreadsheet formula engine.

Usage::

    from cellcalc import Grid, GridEvaluator

    grid = Grid(rows=10, cols=10)
    grid["B1"] = "10"
    grid["C1"] = "inc(B1)"
    grid["A1"] = "B1 + C1"
    GridEvaluator().recalculate(grid)
    print(grid.display("A1"))  # 21

    # Resize, keeping expressions that still fit
    grid = grid.resized(20, 5)
"""

from cellcalc._cell import Cell
from cellcalc._grid import DEFAULT_COLS, DEFAULT_ROWS, MAX_COLS, MAX_ROWS, Grid
from cellcalc._utils import address, column_index, column_letter, split_address
from cellcalc.calc import GridEvaluator, syntax_check

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Cell",
    "DEFAULT_COLS",
    "DEFAULT_ROWS",
    "Grid",
    "GridEvaluator",
    "MAX_COLS",
    "MAX_ROWS",
    "address",
    "column_index",
    "column_letter",
    "recalculate",
    "split_address",
    "syntax_check",
]


def recalculate(grid: Grid) -> None:
    """Recompute every cell of *grid* with the builtin functions."""
    GridEvaluator().recalculate(grid)
