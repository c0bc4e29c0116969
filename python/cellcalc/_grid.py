"""Grid: the address-keyed cell store the calc engine recomputes."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from cellcalc._cell import Cell
from cellcalc._utils import address, canonical

DEFAULT_ROWS = 10
DEFAULT_COLS = 10
MAX_ROWS = 500
MAX_COLS = 100


class Grid:
    """A ``rows x cols`` rectangle of cells keyed by canonical address.

    Usage::

        grid = Grid(3, 3)
        grid["A1"] = "10"
        grid["B1"] = "inc(A1)"
        GridEvaluator().recalculate(grid)
        grid.display("B1")  # "11"
    """

    __slots__ = ("_rows", "_cols", "_cells")

    def __init__(self, rows: int = DEFAULT_ROWS, cols: int = DEFAULT_COLS) -> None:
        if not 1 <= rows <= MAX_ROWS:
            raise ValueError(f"rows must be between 1 and {MAX_ROWS}, got {rows}")
        if not 1 <= cols <= MAX_COLS:
            raise ValueError(f"cols must be between 1 and {MAX_COLS}, got {cols}")
        self._rows = rows
        self._cols = cols
        self._cells: dict[str, Cell] = {}
        for r in range(1, rows + 1):
            for c in range(1, cols + 1):
                addr = address(c, r)
                self._cells[addr] = Cell(addr)

    @classmethod
    def from_expressions(
        cls,
        expressions: Mapping[str, str],
        rows: int = DEFAULT_ROWS,
        cols: int = DEFAULT_COLS,
    ) -> Grid:
        """Build a grid and fill it from an address -> expression mapping.

        Addresses outside the rectangle raise ``KeyError``.
        """
        grid = cls(rows, cols)
        for ref, expr in expressions.items():
            grid.set_expression(ref, expr)
        return grid

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def cells(self) -> Mapping[str, Cell]:
        return self._cells

    def resized(self, rows: int, cols: int) -> Grid:
        """Return a new grid of the given size, carrying expressions forward.

        Cells outside the new rectangle are dropped. Display state is not
        copied; recalculate the new grid before reading it.
        """
        new = Grid(rows, cols)
        for addr, cell in self._cells.items():
            target = new._cells.get(addr)
            if target is not None:
                target.expression = cell.expression
        return new

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def __getitem__(self, key: str) -> Cell:
        """``grid['a1']`` -> Cell. Unknown addresses raise ``KeyError``."""
        cell = self.get(key)
        if cell is None:
            raise KeyError(f"Cell '{key}' is outside the {self._rows}x{self._cols} grid")
        return cell

    def __setitem__(self, key: str, expression: str) -> None:
        """``grid['A1'] = '5 + 3'``, shorthand for :meth:`set_expression`."""
        self.set_expression(key, expression)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.strip().upper() in self._cells

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def get(self, key: str) -> Cell | None:
        return self._cells.get(key.strip().upper())

    def set_expression(self, key: str, expression: str) -> None:
        self[canonical(key)].expression = expression

    def display(self, key: str) -> str:
        """Display text for *key*, or ``""`` when the address is unknown."""
        cell = self.get(key)
        return cell.display if cell is not None else ""

    def expressions(self) -> dict[str, str]:
        """Non-empty expressions keyed by address."""
        return {a: c.expression for a, c in self._cells.items() if c.expression}

    def __repr__(self) -> str:
        return f"<Grid {self._rows}x{self._cols}>"
