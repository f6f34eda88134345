"""Machines with their weights resolved to numbers.

An EvaluatedMachine indexes the transitions of an advancing machine by
state, input token, output token and neighbouring state, with each weight
evaluated under one parameter assignment and stored as a natural log."""
import json
import logging
import math
from typing import Any, Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, TextIO, Union

import numpy as np
from tqdm import tqdm

from pyboss import weight as wt
from pyboss.atomic import State, Transition
from pyboss.machine import Machine
from pyboss.tokenizer import Tokenizer
from pyboss._private import linalg
from pyboss._private.exceptions import PreconditionError

logger = logging.getLogger(__file__)

# Silent exit probabilities summing to more than this are probably a mistake
SUSPICIOUSLY_LARGE_PROBABILITY = 1.01


class Trans(NamedTuple):
    log_weight: float
    trans_index: int    # position among the source state's transitions


TransTable = Dict[int, Dict[int, Dict[int, Trans]]]    # in_tok:{out_tok:{neighbour:Trans}}


class EvaluatedState:
    __slots__ = 'name', 'outgoing', 'incoming', 'n_transitions', 'trans_offset'

    def __init__(self, name: Any = None):
        self.name = name
        self.outgoing: TransTable = {}
        self.incoming: TransTable = {}
        self.n_transitions = 0
        self.trans_offset = 0

    def __repr__(self):
        return f"EvaluatedState({self.name!r}, n_transitions={self.n_transitions})"


def _add_trans(table: TransTable, in_tok: int, out_tok: int, neighbour: int, trans: Trans) -> bool:
    """Insert trans, merging with an existing entry by log-sum-exp. True if merged."""
    by_neighbour = table.setdefault(in_tok, {}).setdefault(out_tok, {})
    if neighbour in by_neighbour:
        old = by_neighbour[neighbour]
        by_neighbour[neighbour] = Trans(float(np.logaddexp(old.log_weight, trans.log_weight)), old.trans_index)
        return True
    by_neighbour[neighbour] = trans
    return False


def _progress_wrapper(progress: Union[bool, Callable], total: int) -> Callable[[Iterable], Iterable]:
    if progress is True:
        return lambda it: tqdm(it, total=total, desc="Evaluating transition weights")
    if callable(progress):
        return progress
    return lambda it: it


class EvaluatedMachine:

    def __init__(self, machine: Machine, params: Optional[Mapping[str, float]] = None,
                 progress: Union[bool, Callable[[Iterable], Iterable]] = False):
        """Evaluates every weight of an advancing machine.

        :param machine: the machine; must be advancing
        :param params: parameter assignment; if None every log weight is 0
        :param progress: True for a tqdm progress bar, or a callable that wraps an iterable
        """
        if not machine.is_advancing_machine():
            raise PreconditionError("Machine is not topologically sorted")
        self.input_tokenizer = Tokenizer(machine.input_alphabet())
        self.output_tokenizer = Tokenizer(machine.output_alphabet())
        self.state: List[EvaluatedState] = [EvaluatedState(ms.name) for ms in machine.state]
        offset = 0
        for s in _progress_wrapper(progress, machine.n_states())(range(machine.n_states())):
            es = self.state[s]
            for ti, t in enumerate(machine.state[s].trans):
                in_tok = self.input_tokenizer.token(t.input)
                out_tok = self.output_tokenizer.token(t.output)
                trans = Trans(self._log_weight(t.weight, params), ti)
                if _add_trans(es.outgoing, in_tok, out_tok, t.dest, trans):
                    logger.debug(f"Merged duplicate transition {s} -> {t.dest} ({t.input!r}:{t.output!r})")
                _add_trans(self.state[t.dest].incoming, in_tok, out_tok, s, trans)
            es.n_transitions = len(machine.state[s].trans)
            es.trans_offset = offset
            offset += es.n_transitions
        self.n_transitions = offset

    @staticmethod
    def _log_weight(w: wt.WeightExpr, params: Optional[Mapping[str, float]]) -> float:
        if params is None:
            return 0.0
        p = wt.evaluate(w, params)
        if p < 0:
            logger.warning(f"Negative transition weight {p} for {wt.to_string(w)}")
        return math.log(p) if p > 0 else -math.inf

    # ==================
    # Queries
    # ==================

    def n_states(self) -> int:
        return len(self.state)

    def start_state(self) -> int:
        if not self.state:
            raise PreconditionError("EvaluatedMachine has no states")
        return 0

    def end_state(self) -> int:
        if not self.state:
            raise PreconditionError("EvaluatedMachine has no states")
        return len(self.state) - 1

    def state_name_json(self, s: int) -> str:
        """The state's name as JSON text, or its index if it has no name."""
        name = self.state[s].name
        return str(s) if name is None else json.dumps(name)

    def transitions(self, s: int, outgoing: bool = True):
        """Yields (in_tok, out_tok, neighbour, Trans) for state s, in token order."""
        table = self.state[s].outgoing if outgoing else self.state[s].incoming
        for in_tok in sorted(table):
            for out_tok in sorted(table[in_tok]):
                for neighbour, trans in sorted(table[in_tok][out_tok].items()):
                    yield in_tok, out_tok, neighbour, trans

    # ==================
    # Silent transitions
    # ==================

    def sum_in_trans(self) -> np.ndarray:
        """Log of the geometric sum (I - P)^-1 over silent transition probabilities P.

        Entry [i, j] is the log of the total weight of all paths from i to j
        that use only silent transitions; entries with no such path are -inf.
        Raises SingularMatrixError if I - P cannot be inverted."""
        n = self.n_states()
        one_minus_silent = np.eye(n)
        p_exit = np.zeros(n)
        empty_in, empty_out = self.input_tokenizer.empty_token(), self.output_tokenizer.empty_token()
        for src, es in enumerate(self.state):
            for dest, trans in es.outgoing.get(empty_in, {}).get(empty_out, {}).items():
                p = math.exp(trans.log_weight)
                one_minus_silent[src, dest] -= p
                p_exit[src] += p
            if p_exit[src] > SUSPICIOUSLY_LARGE_PROBABILITY:
                logger.warning(f"When eliminating silent transitions, exit probability of state {src} is {p_exit[src]}")
        return linalg.log_matrix(linalg.invert(one_minus_silent))

    # ==================
    # Conversion
    # ==================

    def explicit_machine(self) -> Machine:
        """A Machine with the evaluated weights as constants."""
        states = []
        for s, es in enumerate(self.state):
            states.append(State(es.name, [Transition(self.input_tokenizer.symbol(i), self.output_tokenizer.symbol(o),
                                                     d, wt.constant(math.exp(t.log_weight)))
                                          for i, o, d, t in self.transitions(s)]))
        return Machine(states)

    def to_json(self) -> Dict[str, Any]:
        """Debugging dump: {"state": [{"n", "id", "incoming": [{"from", ...}], "outgoing": [{"to", ...}]}]}"""
        states = []
        for s, es in enumerate(self.state):
            sj: Dict[str, Any] = {"n": s}
            if es.name is not None:
                sj["id"] = es.name
            for key, neighbour_key, outgoing in ("incoming", "from", False), ("outgoing", "to", True):
                entries = []
                for i, o, d, t in self.transitions(s, outgoing):
                    tj: Dict[str, Any] = {neighbour_key: d}
                    if i != self.input_tokenizer.empty_token():
                        tj["in"] = self.input_tokenizer.symbol(i)
                    if o != self.output_tokenizer.empty_token():
                        tj["out"] = self.output_tokenizer.symbol(o)
                    tj["logWeight"] = t.log_weight
                    entries.append(tj)
                if entries:
                    sj[key] = entries
            states.append(sj)
        return {"state": states}

    def to_json_string(self) -> str:
        return json.dumps(self.to_json())

    def write_json(self, out: TextIO):
        json.dump(self.to_json(), out)
        out.write("\n")

    def __len__(self):
        return len(self.state)

    def __repr__(self):
        return f"EvaluatedMachine(n_states={self.n_states()}, n_transitions={self.n_transitions})"
