"""cellcalc.calc - Formula parsing, evaluation and grid recalculation."""

from cellcalc.calc._evaluator import GridEvaluator, evaluate, evaluate_text
from cellcalc.calc._functions import EvalResult, FunctionRegistry
from cellcalc.calc._graph import DependencyGraph
from cellcalc.calc._parser import (
    FormulaParser,
    FormulaSyntaxError,
    ParseResult,
    all_references,
    parse,
    syntax_check,
)
from cellcalc.calc._protocol import CalcEngine, CellDelta, RecalcResult, RecalcStage

__all__ = [
    "CalcEngine",
    "CellDelta",
    "DependencyGraph",
    "EvalResult",
    "FormulaParser",
    "FormulaSyntaxError",
    "FunctionRegistry",
    "GridEvaluator",
    "ParseResult",
    "RecalcResult",
    "RecalcStage",
    "all_references",
    "evaluate",
    "evaluate_text",
    "parse",
    "syntax_check",
]
