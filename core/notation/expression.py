"""
core/notation/expression.py — Parse and evaluate transform expressions.

An expression computes one number per note from literal values, context
variables and shape functions:

    velocity ramp over the selection    ramp(60, 120)
    gentle LFO on velocity              100 + 20 * sine(4)
    humanized timing                    rand(-0.02, 0.02)
    octave jumps every other note       note.pitch + 12 * (note.index % 2)

Operators (loosest to tightest): ``+ -``, ``* / %``, unary ``-``, ``^``
(right-associative), with parentheses for grouping.

Variables:
    note.index  note.count  note.pitch  note.start  note.duration
    note.velocity  note.probability  note.deviation
    clip.duration  clip.index  clip.count  clip.position  bar.duration

Functions:
    sine(period, phase?)  cosine(period, phase?)  tri(period, phase?)
    saw(period, phase?)   square(period, phase?, pulseWidth?)
    ramp(from, to, speed?)  expRamp(from, to, curve)
    rand()  rand(max)  rand(min, max)  choose(v1, v2, ...)
    round(x)  floor(x)  ceil(x)  abs(x)  clamp(x, lo, hi)
    min(a, b, ...)  max(a, b, ...)  pow(base, exponent)

Periodic shapes take their phase from the note position in beats divided by
the period. Ramps take theirs from the note position within the active time
span (the selector's time range, else the span of the clip's notes).

Malformed text and every evaluation failure (unknown identifier, bad arity,
division by zero, non-finite result) raise EvaluationError.
"""

from __future__ import annotations

import math
import random
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Union

from core.notation import waveforms
from core.notation.errors import EvaluationError

# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Variable:
    name: str  # dotted, e.g. "note.index"


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Expression


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple[Expression, ...]


Expression = Union[Number, Variable, UnaryOp, BinaryOp, Call]

# ---------------------------------------------------------------------------
# Bindings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Bindings:
    """Per-note evaluation context.

    Attributes:
        variables: Dotted name → value, e.g. {"note.index": 3, "bar.duration": 4}.
        position:  Note position in beats from the clip start (phase source
                   for periodic shapes).
        span:      (start, end) in beats of the active time range, used by
                   ``ramp`` and ``expRamp``. None = phase 0.
    """

    variables: Mapping[str, float] = field(default_factory=dict)
    position: float = 0.0
    span: tuple[float, float] | None = None

    def lookup(self, name: str) -> float:
        value = self.variables.get(name)
        if value is None:
            raise EvaluationError(f'Variable "{name}" is not available in this context')
        return float(value)

    def span_phase(self) -> float:
        if self.span is None:
            return 0.0
        start, end = self.span
        if end <= start:
            return 0.0
        return (self.position - start) / (end - start)


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d+)?|\.\d+)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
  | (?P<op>[-+*/%^(),])
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class _Token:
    kind: str  # "number" | "name" | "op" | "end"
    text: str
    position: int


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise EvaluationError(f"Unexpected '{text[pos]}' at position {pos} in expression")
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(_Token(kind=kind, text=match.group(), position=pos))
        pos = match.end()
    tokens.append(_Token(kind="end", text="", position=len(text)))
    return tokens


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _ExpressionParser:
    def __init__(self, text: str) -> None:
        self.tokens = _tokenize(text)
        self.index = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def _advance(self) -> _Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _accept(self, *ops: str) -> str | None:
        if self.current.kind == "op" and self.current.text in ops:
            return self._advance().text
        return None

    def _fail(self, expected: str) -> EvaluationError:
        token = self.current
        found = "end of expression" if token.kind == "end" else f"'{token.text}'"
        return EvaluationError(f"Expected {expected} at position {token.position}, found {found}")

    def parse(self) -> Expression:
        if self.current.kind == "end":
            raise EvaluationError("Expression is empty")
        node = self._additive()
        if self.current.kind != "end":
            raise self._fail("an operator or end of expression")
        return node

    def _additive(self) -> Expression:
        node = self._multiplicative()
        while (op := self._accept("+", "-")) is not None:
            node = BinaryOp(op, node, self._multiplicative())
        return node

    def _multiplicative(self) -> Expression:
        node = self._unary()
        while (op := self._accept("*", "/", "%")) is not None:
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self) -> Expression:
        op = self._accept("-", "+")
        if op is not None:
            operand = self._unary()
            return operand if op == "+" else UnaryOp("-", operand)
        return self._power()

    def _power(self) -> Expression:
        base = self._primary()
        if self._accept("^") is not None:
            return BinaryOp("^", base, self._unary())
        return base

    def _primary(self) -> Expression:
        token = self.current
        if token.kind == "number":
            self._advance()
            return Number(float(token.text))
        if token.kind == "name":
            self._advance()
            if self._accept("(") is not None:
                return Call(token.text, self._arguments())
            return Variable(token.text)
        if self._accept("(") is not None:
            node = self._additive()
            if self._accept(")") is None:
                raise self._fail("')'")
            return node
        raise self._fail("a number, variable, function call or '('")

    def _arguments(self) -> tuple[Expression, ...]:
        args: list[Expression] = []
        if self._accept(")") is not None:
            return ()
        while True:
            args.append(self._additive())
            if self._accept(")") is not None:
                return tuple(args)
            if self._accept(",") is None:
                raise self._fail("',' or ')'")


@lru_cache(maxsize=256)
def compile_expression(text: str) -> Expression:
    """
    Parse expression text into an immutable AST (cached per text).

    Raises:
        EvaluationError: if the text is malformed.
    """
    return _ExpressionParser(text).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def evaluate(
    expression: str | Expression,
    bindings: Bindings | None = None,
    *,
    rng: random.Random | None = None,
) -> float:
    """
    Evaluate an expression for one note.

    Args:
        expression: Expression text or an AST from ``compile_expression``.
        bindings:   Variables, note position and ramp span for this note.
        rng:        Random source for ``rand``/``choose``. None = a fresh,
                    unseeded ``random.Random`` owned by this call.

    Returns:
        Finite float result.

    Raises:
        EvaluationError: on any parse or evaluation failure.

    Examples:
        >>> evaluate("note.index * 10", Bindings({"note.index": 3}))
        30.0
        >>> evaluate("rand(0, 1)", rng=random.Random(7)) == evaluate("rand(0, 1)", rng=random.Random(7))
        True
    """
    node = compile_expression(expression) if isinstance(expression, str) else expression
    evaluator = _Evaluator(bindings or Bindings(), rng if rng is not None else random.Random())
    result = evaluator.eval(node)
    if not math.isfinite(result):
        raise EvaluationError(f"Expression produced a non-finite result: {result}")
    return result


class _Evaluator:
    def __init__(self, bindings: Bindings, rng: random.Random) -> None:
        self.bindings = bindings
        self.rng = rng

    def eval(self, node: Expression) -> float:
        if isinstance(node, Number):
            return node.value
        if isinstance(node, Variable):
            return self.bindings.lookup(node.name)
        if isinstance(node, UnaryOp):
            return -self.eval(node.operand)
        if isinstance(node, BinaryOp):
            return _apply_operator(node.op, self.eval(node.left), self.eval(node.right))
        if isinstance(node, Call):
            return self.call(node.name, node.args)
        raise EvaluationError(f"Unknown expression node: {type(node).__name__}")

    def call(self, name: str, args: Sequence[Expression]) -> float:
        handler = _FUNCTIONS.get(name)
        if handler is None:
            raise EvaluationError(f"Unknown function: {name}()")
        values = [self.eval(arg) for arg in args]
        for value in values:
            if not math.isfinite(value):
                raise EvaluationError(f"Function {name}() got a non-finite argument: {value}")
        return handler(self, name, values)


def _apply_operator(op: str, left: float, right: float) -> float:
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        if right == 0:
            raise EvaluationError(f"Division by zero: {left} / 0")
        return left / right
    if op == "%":
        if right == 0:
            raise EvaluationError(f"Modulo by zero: {left} % 0")
        return left % right
    if op == "^":
        return _power(left, right)
    raise EvaluationError(f"Unknown operator: {op}")


def _power(base: float, exponent: float) -> float:
    try:
        result = math.pow(base, exponent)
    except (OverflowError, ValueError) as exc:
        raise EvaluationError(f"{base} ^ {exponent} is undefined") from exc
    return result


# ---------------------------------------------------------------------------
# Function table
# ---------------------------------------------------------------------------

_Handler = Callable[[_Evaluator, str, list[float]], float]


def _check_arity(name: str, args: Sequence[float], low: int, high: int | None, usage: str) -> None:
    if len(args) < low or (high is not None and len(args) > high):
        raise EvaluationError(f"Function {name}() takes {usage}, got {len(args)} argument(s)")


def _periodic(shape: Callable[[float], float]) -> _Handler:
    def handler(ev: _Evaluator, name: str, args: list[float]) -> float:
        _check_arity(name, args, 1, 2, "(period, phase?)")
        period = args[0]
        if period <= 0:
            raise EvaluationError(f"Function {name}() period must be > 0, got {period}")
        offset = args[1] if len(args) > 1 else 0.0
        return shape(ev.bindings.position / period + offset)

    return handler


def _square(ev: _Evaluator, name: str, args: list[float]) -> float:
    _check_arity(name, args, 1, 3, "(period, phase?, pulseWidth?)")
    period = args[0]
    if period <= 0:
        raise EvaluationError(f"Function {name}() period must be > 0, got {period}")
    offset = args[1] if len(args) > 1 else 0.0
    pulse_width = args[2] if len(args) > 2 else 0.5
    return waveforms.square(ev.bindings.position / period + offset, pulse_width)


def _ramp(ev: _Evaluator, name: str, args: list[float]) -> float:
    _check_arity(name, args, 2, 3, "(from, to, speed?)")
    speed = args[2] if len(args) > 2 else 1.0
    if speed <= 0:
        raise EvaluationError(f"Function {name}() speed must be > 0, got {speed}")
    return waveforms.ramp(ev.bindings.span_phase(), args[0], args[1], speed)


def _exp_ramp(ev: _Evaluator, name: str, args: list[float]) -> float:
    _check_arity(name, args, 3, 3, "(from, to, curve)")
    curve = args[2]
    if curve <= 0:
        raise EvaluationError(f"Function {name}() curve must be > 0, got {curve}")
    return waveforms.exp_ramp(ev.bindings.span_phase(), args[0], args[1], curve)


def _rand(ev: _Evaluator, name: str, args: list[float]) -> float:
    _check_arity(name, args, 0, 2, "(), (max) or (min, max)")
    if not args:
        return waveforms.rand(ev.rng, -1.0, 1.0)
    if len(args) == 1:
        return waveforms.rand(ev.rng, 0.0, args[0])
    return waveforms.rand(ev.rng, args[0], args[1])


def _choose(ev: _Evaluator, name: str, args: list[float]) -> float:
    _check_arity(name, args, 1, None, "at least one value")
    return waveforms.choose(ev.rng, args)


def _unary_math(fn: Callable[[float], float]) -> _Handler:
    def handler(ev: _Evaluator, name: str, args: list[float]) -> float:
        _check_arity(name, args, 1, 1, "(value)")
        return float(fn(args[0]))

    return handler


def _clamp(ev: _Evaluator, name: str, args: list[float]) -> float:
    _check_arity(name, args, 3, 3, "(value, min, max)")
    value, bound_a, bound_b = args
    return min(max(value, min(bound_a, bound_b)), max(bound_a, bound_b))


def _extremum(ev: _Evaluator, name: str, args: list[float]) -> float:
    _check_arity(name, args, 2, None, "at least 2 arguments")
    return min(args) if name == "min" else max(args)


def _pow(ev: _Evaluator, name: str, args: list[float]) -> float:
    _check_arity(name, args, 2, 2, "(base, exponent)")
    return _power(args[0], args[1])


def _round_half_up(value: float) -> float:
    return math.floor(value + 0.5)


_FUNCTIONS: dict[str, _Handler] = {
    "sine": _periodic(waveforms.sine),
    "sin": _periodic(waveforms.sine),
    "cosine": _periodic(waveforms.cosine),
    "cos": _periodic(waveforms.cosine),
    "tri": _periodic(waveforms.tri),
    "saw": _periodic(waveforms.saw),
    "square": _square,
    "ramp": _ramp,
    "expRamp": _exp_ramp,
    "curve": _exp_ramp,
    "rand": _rand,
    "choose": _choose,
    "round": _unary_math(_round_half_up),
    "floor": _unary_math(math.floor),
    "ceil": _unary_math(math.ceil),
    "abs": _unary_math(abs),
    "clamp": _clamp,
    "min": _extremum,
    "max": _extremum,
    "pow": _pow,
}

FUNCTION_NAMES: frozenset[str] = frozenset(_FUNCTIONS)
