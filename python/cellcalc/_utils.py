"""A1-style address helpers shared by the grid and the calc engine."""

from __future__ import annotations

import re

_ADDRESS_RE = re.compile(r"^([A-Za-z]+)([1-9][0-9]*)$")


def column_letter(col: int) -> str:
    """1-based column index -> letters. 1->A, 26->Z, 27->AA, 703->AAA."""
    if col < 1:
        raise ValueError(f"Column index must be >= 1, got {col}")
    letters = ""
    while col > 0:
        col, rem = divmod(col - 1, 26)
        letters = chr(rem + ord("A")) + letters
    return letters


def column_index(letters: str) -> int:
    """Letters -> 1-based column index. A->1, Z->26, AA->27."""
    if not letters or not letters.isascii() or not letters.isalpha():
        raise ValueError(f"Invalid column letters: {letters!r}")
    n = 0
    for ch in letters.upper():
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n


def address(col: int, row: int) -> str:
    """Build a canonical address from 1-based (col, row)."""
    if row < 1:
        raise ValueError(f"Row index must be >= 1, got {row}")
    return f"{column_letter(col)}{row}"


def split_address(ref: str) -> tuple[int, int]:
    """Canonical or lowercase address -> 1-based (col, row)."""
    m = _ADDRESS_RE.match(ref.strip())
    if not m:
        raise ValueError(f"Invalid cell address: {ref!r}")
    return column_index(m.group(1)), int(m.group(2))


def canonical(ref: str) -> str:
    """Normalize an address to its uppercase form, validating it."""
    col, row = split_address(ref)
    return address(col, row)
