"""Dependency graph for grid cells: cycle detection and topological ordering."""

from __future__ import annotations

from collections import deque
from collections.abc import Collection, Iterable
from typing import TYPE_CHECKING

from cellcalc.calc._parser import all_references

if TYPE_CHECKING:
    from cellcalc._grid import Grid

_UNVISITED = 0
_ON_STACK = 1
_DONE = 2


class DependencyGraph:
    """Tracks which cells each cell reads, for cycle checks and ordering.

    Every registered cell is a node, including empty ones. Edges come from
    a textual scan of the raw expression, so references inside malformed
    expressions still count. Iteration follows registration order, which
    makes cycle reports and evaluation order deterministic.
    """

    __slots__ = ("dependencies", "dependents", "expressions", "_rank")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self.dependencies: dict[str, set[str]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.dependents: dict[str, set[str]] = {}
        # cell -> raw expression (non-empty ones only)
        self.expressions: dict[str, str] = {}
        self._rank: dict[str, int] = {}

    def add_cell(self, cell_ref: str, expression: str, known_cells: Collection[str]) -> None:
        """Register a cell and the known cells its expression mentions."""
        if cell_ref not in self._rank:
            self._rank[cell_ref] = len(self._rank)
        self.dependents.setdefault(cell_ref, set())

        refs: set[str] = set()
        if expression.strip():
            self.expressions[cell_ref] = expression
            refs = {r for r in all_references(expression) if r in known_cells}
        self.dependencies[cell_ref] = refs

        for ref in refs:
            self.dependents.setdefault(ref, set()).add(cell_ref)

    @property
    def nodes(self) -> list[str]:
        return list(self.dependencies)

    def _ordered(self, cells: Iterable[str]) -> list[str]:
        return sorted(cells, key=lambda c: self._rank.get(c, len(self._rank)))

    def find_cycle(self) -> list[str] | None:
        """Return the first cycle found by depth-first search, or None.

        The cycle lists its cells in discovery order, starting with the
        cell that closes the loop. A self-reference is a one-cell cycle.
        Only one cycle is reported even when several exist.
        """
        state: dict[str, int] = {}

        for start in self.dependencies:
            if state.get(start, _UNVISITED) != _UNVISITED:
                continue
            path = [start]
            state[start] = _ON_STACK
            pending = [iter(self._ordered(self.dependencies[start]))]

            while pending:
                for neighbor in pending[-1]:
                    if neighbor not in self.dependencies:
                        continue
                    mark = state.get(neighbor, _UNVISITED)
                    if mark == _UNVISITED:
                        state[neighbor] = _ON_STACK
                        path.append(neighbor)
                        pending.append(iter(self._ordered(self.dependencies[neighbor])))
                        break
                    if mark == _ON_STACK:
                        return path[path.index(neighbor):]
                else:
                    state[path.pop()] = _DONE
                    pending.pop()

        return None

    def topological_order(self, exclude: Collection[str] = ()) -> list[str]:
        """Return cells in evaluation order (Kahn's algorithm).

        Cells in *exclude* are dropped from the graph first, so cells that
        read them become schedulable. Cells on or downstream of a cycle that
        is not excluded never reach in-degree zero and are left out; see
        :meth:`unresolved`.
        """
        cells = [c for c in self.dependencies if c not in exclude]
        if not cells:
            return []
        live = set(cells)

        in_degree: dict[str, int] = {}
        for cell in cells:
            in_degree[cell] = len(self.dependencies[cell] & live)

        queue: deque[str] = deque(c for c in cells if in_degree[c] == 0)

        order: list[str] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dep in self._ordered(self.dependents.get(cell, ())):
                if dep in live:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        return order

    def unresolved(self, order: Collection[str], exclude: Collection[str] = ()) -> list[str]:
        """Cells that are neither in *order* nor in *exclude*."""
        done = set(order)
        return [c for c in self.dependencies if c not in done and c not in exclude]

    @classmethod
    def from_grid(cls, grid: Grid) -> DependencyGraph:
        """Build a graph over every cell of *grid*, in row-major order."""
        graph = cls()
        known = grid.cells
        for cell_ref, cell in known.items():
            graph.add_cell(cell_ref, cell.expression, known)
        return graph
