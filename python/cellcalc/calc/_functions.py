"""Evaluation results, stable error messages and the function registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

# ---------------------------------------------------------------------------
# EvalResult: a value or an error message, never both
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EvalResult:
    """Outcome of evaluating an expression or resolving a reference.

    Build with ``EvalResult.of(value)`` or ``EvalResult.fail(message)``.
    """

    value: int = 0
    error: str | None = None

    @classmethod
    def of(cls, value: int) -> EvalResult:
        return cls(value=value)

    @classmethod
    def fail(cls, message: str) -> EvalResult:
        return cls(error=message)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def __str__(self) -> str:
        return self.error if self.error is not None else str(self.value)


# ---------------------------------------------------------------------------
# Error messages shown in cells. Callers match on these, keep them stable.
# ---------------------------------------------------------------------------

CYCLE = "CYCLE"
DIVISION_BY_ZERO = "Division by zero"
MODULO_BY_ZERO = "Modulo by zero"
INT_DIV_BY_ZERO = "Integer div by zero"
INVALID_REFERENCE = "Invalid cell reference"
NESTED_TOO_DEEPLY = "Expression is nested too deeply"


def invalid_number(digits: str) -> str:
    return f"Invalid number literal: {digits}"


def unknown_unary_operator(op: str) -> str:
    return f"Unknown unary operator: {op}"


def unknown_operator(op: str) -> str:
    return f"Unknown operator: {op}"


def unknown_function(name: str) -> str:
    return f"Unknown function '{name}'"


def function_failed(name: str, exc: Exception) -> str:
    return f"Function '{name}' failed: {exc}"


def unknown_cell(ref: str) -> str:
    return f"Unknown cell {ref}"


def ref_error(display: str) -> str:
    return f"Ref error: {display}"


def not_a_number(display: str) -> str:
    return f"Referenced value is not a number: {display}"


# ---------------------------------------------------------------------------
# Builtin functions. Each takes one resolved integer argument.
# ---------------------------------------------------------------------------


def fn_inc(x: int) -> int:
    return x + 1


def fn_dec(x: int) -> int:
    return x - 1


_BUILTINS: dict[str, Callable[[int], int]] = {
    "INC": fn_inc,
    "DEC": fn_dec,
}


class FunctionRegistry:
    """Registry of one-argument integer functions, keyed case-insensitively.

    Starts with ``inc`` and ``dec`` and can be extended with custom functions.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[[int], int]] = dict(_BUILTINS)

    def register(self, name: str, func: Callable[[int], int]) -> None:
        self._functions[name.upper()] = func

    def get(self, name: str) -> Callable[[int], int] | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
