from pyboss.machine import Machine, MachinePath, TransAccumulator, compose, concatenate, union_of, kleene_closure, reverse, flip_in_out
from pyboss.eval import EvaluatedMachine
from pyboss.params import Params
from pyboss.tokenizer import Tokenizer
from pyboss.atomic import State, Transition
from pyboss.weight import WeightExpr
from pyboss._private.exceptions import (PreconditionError, SilentCycleError, MissingParameterError,
                                        UnknownSymbolError, SchemaViolation, SingularMatrixError,
                                        WeightEvaluationError)

__author__     = "pyboss developers"
__copyright__  = "Copyright 2026"
__credits__    = ["pyboss developers"]
__license__    = "Apache"
__version__    = "0.1"
__maintainer__ = "pyboss developers"
__status__     = "Alpha"

null = Machine.null
generator = Machine.generator
acceptor = Machine.acceptor
