"""Formula parser: tokenizer, recursive descent parser and reference scan."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

# ---------------------------------------------------------------------------
# AST nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NumberLiteral:
    digits: str


@dataclass(frozen=True)
class CellRef:
    ref: str  # as written; the evaluator uppercases it


@dataclass(frozen=True)
class Parenthesized:
    child: Node


@dataclass(frozen=True)
class UnarySign:
    op: str
    child: Node


@dataclass(frozen=True)
class Multiplicative:
    op: str  # "*", "/", "mod" or "div"
    left: Node
    right: Node


@dataclass(frozen=True)
class Additive:
    op: str  # "+" or "-"
    left: Node
    right: Node


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arg: Node


@dataclass(frozen=True)
class InvalidRef:
    text: str


Node = Union[
    NumberLiteral,
    CellRef,
    Parenthesized,
    UnarySign,
    Multiplicative,
    Additive,
    FunctionCall,
    InvalidRef,
]


@dataclass(frozen=True)
class FormulaSyntaxError:
    """One syntax problem. ``line`` is 1-based, ``column`` 0-based."""

    line: int
    column: int
    message: str

    def __str__(self) -> str:
        return f"{self.line}:{self.column} {self.message}"


@dataclass(frozen=True)
class ParseResult:
    tree: Node | None
    errors: tuple[FormulaSyntaxError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def error_display(self) -> str:
        """The cell text for a failed parse: ``Syntax error at <line>:<col>``."""
        if not self.errors:
            return ""
        first = self.errors[0]
        return f"Syntax error at {first.line}:{first.column}"


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

NUMBER = "NUMBER"
CELL_REF = "CELL_REF"
INVALID_REF = "INVALID_REF"
IDENT = "IDENT"
KEYWORD = "KEYWORD"  # mod, div
OP = "OP"  # + - * /
LPAREN = "("
RPAREN = ")"
EOF = "EOF"

_TOKEN_RE = re.compile(
    r"(?P<newline>\n)"
    r"|(?P<space>[ \t\r\f\v]+)"
    r"|(?P<number>[0-9]+)"
    r"|(?P<word>[A-Za-z][A-Za-z0-9_]*)"
    r"|(?P<op>[-+*/])"
    r"|(?P<paren>[()])"
)

_REF_SHAPE_RE = re.compile(r"^([A-Za-z]+)([0-9]+)$")
_REF_PREFIX_RE = re.compile(r"^[A-Za-z]+[0-9]")
_KEYWORDS = frozenset({"mod", "div"})

# Tokens that can begin an operand.
_OPERAND_START = frozenset({NUMBER, CELL_REF, INVALID_REF, IDENT, LPAREN})

_BINARY_PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2, "mod": 2, "div": 2}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    line: int
    column: int

    @property
    def op(self) -> str | None:
        """Operator spelling for OP and KEYWORD tokens (keywords lowercased)."""
        if self.kind == OP:
            return self.text
        if self.kind == KEYWORD:
            return self.text.lower()
        return None

    def describe(self) -> str:
        return "<EOF>" if self.kind == EOF else self.text


def _classify_word(word: str) -> str:
    if word.lower() in _KEYWORDS:
        return KEYWORD
    m = _REF_SHAPE_RE.match(word)
    if m:
        # Row 0 and zero-padded rows name no cell.
        return INVALID_REF if m.group(2).startswith("0") else CELL_REF
    if _REF_PREFIX_RE.match(word):
        # Letters, digits, then more: A1B, A1_x
        return INVALID_REF
    return IDENT


def tokenize(text: str) -> tuple[list[Token], list[FormulaSyntaxError]]:
    """Split *text* into tokens, ending with an EOF token.

    Characters outside the language are reported and skipped.
    """
    tokens: list[Token] = []
    errors: list[FormulaSyntaxError] = []
    line = 1
    line_start = 0
    pos = 0
    length = len(text)

    while pos < length:
        m = _TOKEN_RE.match(text, pos)
        column = pos - line_start
        if m is None:
            errors.append(FormulaSyntaxError(
                line, column, f"token recognition error at: '{text[pos]}'",
            ))
            pos += 1
            continue

        kind = m.lastgroup
        value = m.group()
        if kind == "newline":
            line += 1
            line_start = m.end()
        elif kind == "number":
            tokens.append(Token(NUMBER, value, line, column))
        elif kind == "word":
            tokens.append(Token(_classify_word(value), value, line, column))
        elif kind == "op":
            tokens.append(Token(OP, value, line, column))
        elif kind == "paren":
            tokens.append(Token(value, value, line, column))
        pos = m.end()

    tokens.append(Token(EOF, "", line, pos - line_start))
    return tokens, errors


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

# Stands in for an operand that failed to parse. Trees with errors are
# never returned, so this never reaches the evaluator.
_ERROR_NODE = InvalidRef("")


class FormulaParser:
    """Recursive descent parser for one cell expression.

    Precedence, lowest to highest::

        1. additive        (+, -)          left-assoc
        2. multiplicative  (*, /, mod, div) left-assoc
        3. unary sign      (+, -)

    Errors do not stop the parse: each one is recorded and the parser
    skips or assumes a token and carries on, so a single pass reports
    every problem it can find.
    """

    def __init__(self, text: str) -> None:
        self._tokens, lex_errors = tokenize(text)
        self._errors: list[FormulaSyntaxError] = list(lex_errors)
        self._pos = 0

    def parse(self) -> ParseResult:
        tree = self._parse_expression(1)
        while self._peek().kind != EOF:
            tok = self._advance()
            self._error(tok, f"extraneous input '{tok.describe()}' expecting <EOF>")
            if self._starts_operand(self._peek()):
                self._parse_expression(1)

        if self._errors:
            errors = sorted(self._errors, key=lambda e: (e.line, e.column))
            return ParseResult(tree=None, errors=tuple(errors))
        return ParseResult(tree=tree)

    # ------------------------------------------------------------------
    # Token stream
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        idx = min(self._pos + offset, len(self._tokens) - 1)
        return self._tokens[idx]

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.kind != EOF:
            self._pos += 1
        return tok

    def _error(self, tok: Token, message: str) -> None:
        self._errors.append(FormulaSyntaxError(tok.line, tok.column, message))

    @staticmethod
    def _starts_operand(tok: Token) -> bool:
        return tok.kind in _OPERAND_START or (tok.kind == OP and tok.text in "+-")

    def _expect(self, kind: str) -> None:
        """Consume a *kind* token, recovering by deletion or insertion."""
        tok = self._peek()
        if tok.kind == kind:
            self._advance()
            return
        if tok.kind != EOF and self._peek(1).kind == kind:
            self._error(tok, f"extraneous input '{tok.describe()}' expecting '{kind}'")
            self._advance()
            self._advance()
            return
        self._error(tok, f"missing '{kind}' at '{tok.describe()}'")

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------

    def _parse_expression(self, min_prec: int) -> Node:
        left = self._parse_unary()
        while True:
            op = self._peek().op
            prec = _BINARY_PRECEDENCE.get(op) if op is not None else None
            if prec is None or prec < min_prec:
                return left
            self._advance()
            right = self._parse_expression(prec + 1)
            if prec == 1:
                left = Additive(op, left, right)
            else:
                left = Multiplicative(op, left, right)

    def _parse_unary(self) -> Node:
        tok = self._peek()
        if tok.kind == OP and tok.text in "+-":
            self._advance()
            return UnarySign(tok.text, self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> Node:
        tok = self._peek()
        if tok.kind == NUMBER:
            self._advance()
            return NumberLiteral(tok.text)
        if tok.kind == CELL_REF:
            self._advance()
            return CellRef(tok.text)
        if tok.kind == INVALID_REF:
            self._advance()
            return InvalidRef(tok.text)
        if tok.kind == IDENT:
            self._advance()
            self._expect(LPAREN)
            arg = self._parse_expression(1)
            self._expect(RPAREN)
            return FunctionCall(tok.text, arg)
        if tok.kind == LPAREN:
            self._advance()
            child = self._parse_expression(1)
            self._expect(RPAREN)
            return Parenthesized(child)

        self._error(tok, f"mismatched input '{tok.describe()}' expecting expression")
        if tok.kind == EOF:
            return _ERROR_NODE
        self._advance()
        if self._starts_operand(self._peek()):
            return self._parse_unary()
        return _ERROR_NODE


def parse(text: str) -> ParseResult:
    """Parse one expression. Never raises for malformed input."""
    return FormulaParser(text).parse()


def syntax_check(text: str) -> list[FormulaSyntaxError]:
    """All syntax errors in *text*; empty when it parses."""
    return list(parse(text).errors)


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------

# Any letters+digits run, including inside malformed text.
_REF_SCAN_RE = re.compile(r"[A-Za-z]+[0-9]+")


def all_references(text: str) -> list[str]:
    """Every reference-like token in *text*, uppercased, first occurrence order."""
    refs: list[str] = []
    seen: set[str] = set()
    for m in _REF_SCAN_RE.finditer(text):
        ref = m.group().upper()
        if ref not in seen:
            refs.append(ref)
            seen.add(ref)
    return refs
