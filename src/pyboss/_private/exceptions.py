"""Exceptions raised by pyboss.

Structural problems (a machine in the wrong shape, an index out of range)
are PreconditionErrors; a parameter or symbol that cannot be looked up is a
KeyError subclass; a malformed document is a SchemaViolation; arithmetic
that fails while evaluating a weight is a WeightEvaluationError."""


class PreconditionError(ValueError):
    """An operation was handed a machine or index that breaks its contract."""


class SilentCycleError(PreconditionError):
    def __init__(self, states):
        self.states = sorted(states)
        super().__init__(f"Machine has a cycle of silent transitions through states {self.states}")


class MissingParameterError(KeyError):
    def __init__(self, name):
        self.name = name
        super().__init__(name)

    def __str__(self):
        return f"Parameter not defined: {self.name}"


class UnknownSymbolError(KeyError):
    def __init__(self, symbol):
        self.symbol = symbol
        super().__init__(symbol)

    def __str__(self):
        return f"Symbol not in alphabet: {self.symbol!r}"


class SchemaViolation(ValueError):
    def __init__(self, kind, message):
        self.kind = kind
        super().__init__(f"Invalid {kind} document: {message}")


class SingularMatrixError(ArithmeticError):
    """The matrix passed to linalg.invert has no inverse."""


class WeightEvaluationError(ArithmeticError):
    def __init__(self, expr, operands, cause):
        self.expr = expr
        self.operands = operands
        super().__init__(f"Cannot evaluate {expr} with operands {list(operands)}: {cause}")
