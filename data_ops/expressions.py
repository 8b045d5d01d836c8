"""
Restricted arithmetic expression evaluator for overlay equations.

Expressions such as ``2*x + 1``, ``sin(x) * cos(y)`` or ``sqrt(x^2 + y^2)``
are tokenized, parsed by a recursive-descent parser into a small AST
(Number, Name, UnaryOp, BinaryOp, Call) and evaluated by a tree-walking
interpreter. Only the allow-listed constants and functions below can be
reached; nothing is ever handed to ``eval``/``exec``.

Failures never raise out of ``ExpressionEvaluator.evaluate``: the result is
NaN and a diagnostic is kept until the caller consumes it.
"""

from __future__ import annotations

import functools
import math
import re
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Union

# Constants resolvable by (case-insensitive) name
_CONSTANTS = {
    "pi": math.pi,
    "e": math.e,
}

# Single-argument functions resolvable by (case-insensitive) name
_FUNCTIONS: dict[str, Callable[[float], float]] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "sqrt": math.sqrt,
    "abs": abs,
    "log": math.log,
    "exp": math.exp,
}

_HINT = 'Use * for multiplication (e.g., "x*y" not "xy").'

# Parenthesis, sign, call and exponent levels allowed before parsing gives up
MAX_NESTING = 64

# Distinct expression texts kept parsed at once
PARSE_CACHE_SIZE = 512

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_][A-Za-z_0-9]*)
  | (?P<op>\*\*|[-+*/^(),])
    """,
    re.VERBOSE,
)


class ExpressionError(ValueError):
    """Raised when an expression cannot be parsed or evaluated.

    The message is user-facing and names the offending token when possible.
    """


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Name:
    id: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Call:
    func: str
    arg: "Node"


Node = Union[Number, Name, UnaryOp, BinaryOp, Call]


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    pos: int


def tokenize(expression: str) -> list[_Token]:
    """Split *expression* into number, name and operator tokens."""
    tokens: list[_Token] = []
    pos = 0
    while pos < len(expression):
        m = _TOKEN_RE.match(expression, pos)
        if m is None:
            raise ExpressionError(f"unexpected character '{expression[pos]}' at position {pos + 1}")
        kind = m.lastgroup
        if kind != "ws":
            text = m.group(kind)
            # "**" is accepted as an alias of "^"
            tokens.append(_Token(kind, "^" if text == "**" else text, pos))
        pos = m.end()
    return tokens


class _Parser:
    """Recursive-descent parser.

    Grammar::

        expr    := term (("+" | "-") term)*
        term    := unary (("*" | "/") unary)*
        unary   := ("+" | "-") unary | power
        power   := primary ("^" unary)?
        primary := NUMBER | NAME "(" expr ")" | NAME | "(" expr ")"
    """

    def __init__(self, tokens: list[_Token]):
        self._tokens = tokens
        self._i = 0
        self._depth = 0

    def _enter(self) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise ExpressionError("expression is nested too deeply")

    def _leave(self, node: Node) -> Node:
        self._depth -= 1
        return node

    def _peek(self) -> Optional[_Token]:
        return self._tokens[self._i] if self._i < len(self._tokens) else None

    def _next(self) -> _Token:
        tok = self._peek()
        if tok is None:
            raise ExpressionError("unexpected end of expression")
        self._i += 1
        return tok

    def _accept(self, text: str) -> bool:
        tok = self._peek()
        if tok is not None and tok.kind == "op" and tok.text == text:
            self._i += 1
            return True
        return False

    def _expect(self, text: str) -> None:
        tok = self._peek()
        if tok is None:
            raise ExpressionError(f"expected '{text}' but the expression ended")
        if not self._accept(text):
            raise ExpressionError(f"expected '{text}' at position {tok.pos + 1}, found '{tok.text}'")

    def parse(self) -> Node:
        if not self._tokens:
            raise ExpressionError("expression is empty")
        node = self._expr()
        tok = self._peek()
        if tok is not None:
            raise ExpressionError(f"unexpected '{tok.text}' at position {tok.pos + 1}")
        return node

    def _expr(self) -> Node:
        node = self._term()
        while True:
            if self._accept("+"):
                node = BinaryOp("+", node, self._term())
            elif self._accept("-"):
                node = BinaryOp("-", node, self._term())
            else:
                return node

    def _term(self) -> Node:
        node = self._unary()
        while True:
            if self._accept("*"):
                node = BinaryOp("*", node, self._unary())
            elif self._accept("/"):
                node = BinaryOp("/", node, self._unary())
            else:
                return node

    def _unary(self) -> Node:
        for sign in ("-", "+"):
            if self._accept(sign):
                self._enter()
                return self._leave(UnaryOp(sign, self._unary()))
        return self._power()

    def _power(self) -> Node:
        base = self._primary()
        if self._accept("^"):
            self._enter()
            return self._leave(BinaryOp("^", base, self._unary()))
        return base

    def _primary(self) -> Node:
        tok = self._next()
        if tok.kind == "number":
            return Number(float(tok.text))
        if tok.kind == "name":
            if self._accept("("):
                func = tok.text.lower()
                if func not in _FUNCTIONS:
                    raise ExpressionError(f"unknown function '{tok.text}'")
                self._enter()
                arg = self._expr()
                self._expect(")")
                return self._leave(Call(func, arg))
            return Name(tok.text)
        if tok.text == "(":
            self._enter()
            node = self._expr()
            self._expect(")")
            return self._leave(node)
        raise ExpressionError(f"unexpected '{tok.text}' at position {tok.pos + 1}")


def parse(expression: str) -> Node:
    """Parse *expression* into an AST.

    Raises:
        ExpressionError: If the text is not a valid expression.
    """
    return _Parser(tokenize(expression)).parse()


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------

def _eval_node(node: Node, bindings: Mapping[str, float]) -> float:
    if isinstance(node, Number):
        return node.value
    if isinstance(node, Name):
        key = node.id.lower()
        if key in _CONSTANTS:
            return _CONSTANTS[key]
        if node.id in bindings:
            return float(bindings[node.id])
        raise ExpressionError(f"undefined variable '{node.id}'")
    if isinstance(node, UnaryOp):
        value = _eval_node(node.operand, bindings)
        return -value if node.op == "-" else value
    if isinstance(node, BinaryOp):
        left = _eval_node(node.left, bindings)
        right = _eval_node(node.right, bindings)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        if node.op == "/":
            return left / right
        return math.pow(left, right)
    if isinstance(node, Call):
        return float(_FUNCTIONS[node.func](_eval_node(node.arg, bindings)))
    raise ExpressionError(f"unsupported node {type(node).__name__}")


@functools.lru_cache(maxsize=PARSE_CACHE_SIZE)
def _parse_cached(expression: str) -> Union[Node, ExpressionError]:
    try:
        return parse(expression)
    except ExpressionError as e:
        return e
    except RecursionError:
        return ExpressionError("expression is nested too deeply")


class ExpressionEvaluator:
    """Evaluates expressions against variable bindings.

    Parsed ASTs are kept in a bounded LRU cache keyed by expression text, so
    sampling a 30x30 grid parses each expression once. The most recent
    failure diagnostic is kept in ``last_error`` until ``consume_error()`` reads and clears it.
    """

    def __init__(self):
        self.last_error: Optional[str] = None

    def compile(self, expression: str) -> Node:
        """Return the cached AST for *expression*, parsing it on first use."""
        cached = _parse_cached(expression)
        if isinstance(cached, ExpressionError):
            raise cached
        return cached

    def evaluate(self, expression: str, bindings: Mapping[str, float]) -> float:
        """Evaluate *expression* with *bindings*; NaN on any failure."""
        try:
            result = _eval_node(self.compile(expression), bindings)
        except ExpressionError as e:
            return self._fail(expression, str(e))
        except ZeroDivisionError:
            return self._fail(expression, "division by zero")
        except OverflowError:
            return self._fail(expression, "numeric overflow")
        except RecursionError:
            return self._fail(expression, "expression is nested too deeply")
        except (ValueError, TypeError) as e:
            return self._fail(expression, str(e))
        if not math.isfinite(result):
            return self._fail(expression, "result is not a finite number")
        return result

    def _fail(self, expression: str, reason: str) -> float:
        self.last_error = f'Invalid expression "{expression}": {reason}. {_HINT}'
        return math.nan

    def consume_error(self) -> Optional[str]:
        """Return the pending diagnostic (if any) and clear it."""
        error, self.last_error = self.last_error, None
        return error

