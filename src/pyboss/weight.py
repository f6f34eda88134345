"""Symbolic weight expressions.

A transition weight is a small immutable expression tree over named
parameters and numeric constants. It is turned into a number only when a
machine is evaluated against a parameter assignment:

>>> w = param('p') * (1 - param('q'))
>>> evaluate(w, {'p': 0.5, 'q': 0.2})
0.4

Constructors fold constants and drop identities, so building up weights by
composing machines with unit-weight transitions does not grow the trees."""

import math
import numbers
from typing import Any, Mapping, Set, Union

from pyboss._private.exceptions import MissingParameterError, SchemaViolation, WeightEvaluationError

BINARY = ('+', '-', '*', '/', 'pow')
UNARY = ('log', 'exp', 'not')


class WeightExpr:
    __slots__ = ('op', 'args', '_hash')

    def __init__(self, op: str, args: tuple):
        object.__setattr__(self, 'op', op)
        object.__setattr__(self, 'args', args)
        object.__setattr__(self, '_hash', hash((op, args)))

    def __setattr__(self, key, value):
        raise AttributeError("WeightExpr is immutable")

    def __eq__(self, other):
        if not isinstance(other, WeightExpr):
            return NotImplemented
        return self.op == other.op and self.args == other.args

    def __hash__(self):
        return self._hash

    def __repr__(self):
        return f"WeightExpr({to_string(self)})"

    def __str__(self):
        return to_string(self)

    def is_constant(self) -> bool:
        return self.op == 'const'

    def is_param(self) -> bool:
        return self.op == 'param'

    @property
    def value(self) -> float:
        """The number held by a constant node."""
        if self.op != 'const':
            raise AttributeError(f"{self!r} is not a constant")
        return self.args[0]

    @property
    def name(self) -> str:
        """The parameter name held by a parameter node."""
        if self.op != 'param':
            raise AttributeError(f"{self!r} is not a parameter")
        return self.args[0]

    # ==================
    # Arithmetic
    # ==================

    def __add__(self, other):
        return add(self, other)

    def __radd__(self, other):
        return add(other, self)

    def __sub__(self, other):
        return subtract(self, other)

    def __rsub__(self, other):
        return subtract(other, self)

    def __mul__(self, other):
        return multiply(self, other)

    def __rmul__(self, other):
        return multiply(other, self)

    def __truediv__(self, other):
        return divide(self, other)

    def __rtruediv__(self, other):
        return divide(other, self)

    def __pow__(self, other):
        return power(self, other)

    def __rpow__(self, other):
        return power(other, self)


WeightLike = Union[WeightExpr, float, int, str]


def coerce(w: WeightLike) -> WeightExpr:
    """Numbers become constants and strings become parameters."""
    if isinstance(w, WeightExpr):
        return w
    if isinstance(w, bool):
        return constant(1.0 if w else 0.0)
    if isinstance(w, numbers.Real):
        return constant(w)
    if isinstance(w, str):
        return param(w)
    raise TypeError(f"Cannot make a weight expression from {w!r}")


def constant(x) -> WeightExpr:
    return WeightExpr('const', (float(x),))


def param(name: str) -> WeightExpr:
    return WeightExpr('param', (name,))


def zero() -> WeightExpr:
    return constant(0.0)


def one() -> WeightExpr:
    return constant(1.0)


def _is(w: WeightExpr, x: float) -> bool:
    return w.op == 'const' and w.args[0] == x


def add(a: WeightLike, b: WeightLike) -> WeightExpr:
    a, b = coerce(a), coerce(b)
    if a.is_constant() and b.is_constant():
        return constant(a.value + b.value)
    if _is(a, 0.0):
        return b
    if _is(b, 0.0):
        return a
    return WeightExpr('+', (a, b))


def subtract(a: WeightLike, b: WeightLike) -> WeightExpr:
    a, b = coerce(a), coerce(b)
    if a.is_constant() and b.is_constant():
        return constant(a.value - b.value)
    if _is(b, 0.0):
        return a
    if _is(a, 1.0):
        return WeightExpr('not', (b,))
    return WeightExpr('-', (a, b))


def negate(p: WeightLike) -> WeightExpr:
    """The complement 1 - p."""
    return subtract(one(), p)


def multiply(a: WeightLike, b: WeightLike) -> WeightExpr:
    a, b = coerce(a), coerce(b)
    if a.is_constant() and b.is_constant():
        return constant(a.value * b.value)
    if _is(a, 0.0) or _is(b, 0.0):
        return zero()
    if _is(a, 1.0):
        return b
    if _is(b, 1.0):
        return a
    return WeightExpr('*', (a, b))


def divide(a: WeightLike, b: WeightLike) -> WeightExpr:
    a, b = coerce(a), coerce(b)
    if b.is_constant() and b.value != 0.0:
        if a.is_constant():
            return constant(a.value / b.value)
        if b.value == 1.0:
            return a
    if _is(a, 0.0):
        return zero()
    return WeightExpr('/', (a, b))


def power(a: WeightLike, b: WeightLike) -> WeightExpr:
    a, b = coerce(a), coerce(b)
    if a.is_constant() and b.is_constant():
        return constant(a.value ** b.value)
    if _is(b, 1.0):
        return a
    if _is(b, 0.0):
        return one()
    return WeightExpr('pow', (a, b))


def log(a: WeightLike) -> WeightExpr:
    a = coerce(a)
    if a.is_constant() and a.value > 0:
        return constant(math.log(a.value))
    if a.op == 'exp':
        return a.args[0]
    return WeightExpr('log', (a,))


def exp(a: WeightLike) -> WeightExpr:
    a = coerce(a)
    if a.is_constant():
        return constant(math.exp(a.value))
    if a.op == 'log':
        return a.args[0]
    return WeightExpr('exp', (a,))


# ==================
# Evaluation
# ==================

_BINARY_FUNCS = {
    '+': lambda x, y: x + y,
    '-': lambda x, y: x - y,
    '*': lambda x, y: x * y,
    '/': lambda x, y: x / y,
    'pow': lambda x, y: x ** y,
}

_UNARY_FUNCS = {
    'log': math.log,
    'exp': math.exp,
    'not': lambda x: 1.0 - x,
}


def evaluate(expr: WeightLike, assignment: Mapping[str, float]) -> float:
    """Value of expr with parameters looked up in assignment.

    Raises MissingParameterError for a parameter not in assignment, and
    WeightEvaluationError when an operation has no value for its operands,
    e.g. log(0) or division by zero."""
    expr = coerce(expr)
    op, args = expr.op, expr.args
    if op == 'const':
        return args[0]
    if op == 'param':
        if args[0] not in assignment:
            raise MissingParameterError(args[0])
        return float(assignment[args[0]])
    if op in _BINARY_FUNCS:
        func, operands = _BINARY_FUNCS[op], (evaluate(args[0], assignment), evaluate(args[1], assignment))
    else:
        func, operands = _UNARY_FUNCS[op], (evaluate(args[0], assignment),)
    try:
        return func(*operands)
    except (ValueError, ZeroDivisionError, OverflowError) as e:
        raise WeightEvaluationError(to_string(expr), operands, e) from e


def params(expr: WeightLike) -> Set[str]:
    """Names of all parameters referenced in expr."""
    expr = coerce(expr)
    if expr.op == 'param':
        return {expr.args[0]}
    if expr.op == 'const':
        return set()
    return set().union(*(params(a) for a in expr.args))


# ==================
# Serialization
# ==================

def to_json(expr: WeightLike) -> Any:
    """Persisted form: numbers, parameter names, and single-key operator dicts."""
    expr = coerce(expr)
    if expr.op == 'const':
        v = expr.args[0]
        return int(v) if v.is_integer() and abs(v) < 2 ** 53 else v
    if expr.op == 'param':
        return expr.args[0]
    if expr.op in UNARY:
        return {expr.op: to_json(expr.args[0])}
    return {expr.op: [to_json(a) for a in expr.args]}


def from_json(doc: Any) -> WeightExpr:
    """Inverse of to_json. Raises SchemaViolation on anything malformed."""
    if isinstance(doc, bool):
        return one() if doc else zero()
    if isinstance(doc, numbers.Real):
        return constant(doc)
    if isinstance(doc, str):
        if doc == '':
            raise SchemaViolation("expr", "empty parameter name")
        return param(doc)
    if not isinstance(doc, dict) or len(doc) != 1:
        raise SchemaViolation("expr", f"expected a number, a parameter name or a single-operator object, got {doc!r}")
    (op, operand), = doc.items()
    if op in UNARY:
        arg = from_json(operand)
        return {'log': log, 'exp': exp, 'not': negate}[op](arg)
    if op not in BINARY:
        raise SchemaViolation("expr", f"unknown operator {op!r}")
    if not isinstance(operand, list):
        raise SchemaViolation("expr", f"operator {op!r} needs a list of operands")
    operands = [from_json(x) for x in operand]
    nary = op in ('+', '*')
    if len(operands) < 2 or (not nary and len(operands) != 2):
        raise SchemaViolation("expr", f"wrong number of operands for {op!r}: {len(operands)}")
    combine = {'+': add, '-': subtract, '*': multiply, '/': divide, 'pow': power}[op]
    result = operands[0]
    for x in operands[1:]:
        result = combine(result, x)
    return result


def to_string(expr: WeightLike) -> str:
    expr = coerce(expr)
    op, args = expr.op, expr.args
    if op == 'const':
        v = args[0]
        return str(int(v)) if v.is_integer() else repr(v)
    if op == 'param':
        return args[0]
    if op == 'not':
        return f"(1 - {to_string(args[0])})"
    if op in UNARY:
        return f"{op}({to_string(args[0])})"
    if op == 'pow':
        return f"({to_string(args[0])} ^ {to_string(args[1])})"
    return f"({to_string(args[0])} {op} {to_string(args[1])})"

