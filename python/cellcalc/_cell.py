"""Cell: one grid position with its raw expression and computed display."""

from __future__ import annotations


class Cell:
    """A single cell.

    ``expression`` belongs to the editing side; ``display`` and
    ``has_error`` are written only by the recalculation engine.
    """

    __slots__ = ("_address", "_expression", "display", "has_error")

    def __init__(self, address: str, expression: str = "") -> None:
        self._address = address
        self._expression = ""
        self.expression = expression
        self.display = ""
        self.has_error = False

    @property
    def address(self) -> str:
        return self._address

    @property
    def expression(self) -> str:
        return self._expression

    @expression.setter
    def expression(self, value: str | None) -> None:
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise TypeError(
                f"Cell expression must be a string, got {type(value).__name__}"
            )
        self._expression = value

    @property
    def is_empty(self) -> bool:
        return not self._expression.strip()

    def __repr__(self) -> str:
        flag = " error" if self.has_error else ""
        return f"<Cell {self._address} expr={self._expression!r} display={self.display!r}{flag}>"
