import json
import logging
from collections import defaultdict
from os import PathLike
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, TextIO, Union, cast

from pyboss import algorithms, jsonio, schema
from pyboss import weight as wt
from pyboss.atomic import State, Transition, all_transitions
from pyboss._private import util
from pyboss._private.exceptions import PreconditionError

logger = logging.getLogger(__file__)

MACHINE_WAIT_TAG = "wait"


def _trans_json(t: Transition) -> Dict[str, Any]:
    tj: Dict[str, Any] = {"to": t.dest}
    if not t.input_empty():
        tj["in"] = t.input
    if not t.output_empty():
        tj["out"] = t.output
    if t.weight != wt.one():
        tj["weight"] = wt.to_json(t.weight)
    return tj


def _trans_from_doc(td: schema.TransitionDoc) -> Transition:
    return Transition(td.input, td.out, td.to, td.weight if td.weight is not None else wt.one())


class TransAccumulator:
    """Collects transitions out of one state, summing the weights of
       transitions that share a destination and input/output labels."""

    def __init__(self):
        self.t: Dict[tuple, wt.WeightExpr] = {}    # (dest, input, output):weight

    def accumulate(self, input: str, output: str, dest: int, weight):
        key = (dest, input, output)
        if key in self.t:
            self.t[key] = wt.add(self.t[key], weight)
        else:
            self.t[key] = wt.coerce(weight)

    def transitions(self) -> List[Transition]:
        return [Transition(i, o, d, w) for (d, i, o), w in sorted(self.t.items(), key=lambda kv: kv[0])]


class Machine:
    # ==================
    # Initializers
    # ==================

    def __init__(self, state: Optional[Sequence[State]] = None):
        """Creates a machine from a list of states.

        :param state: the states; state 0 is the start state and the last
                      state is the end state

        Every transition destination must index one of the states. Machines
        are treated as values: none of the operations below modify the
        machines they are given.
        """
        self.state: List[State] = list(state) if state is not None else []
        """The states of the machine"""
        n = len(self.state)
        for s, t in all_transitions(self.state):
            if not 0 <= t.dest < n:
                raise PreconditionError(f"State {s} has a transition to state {t.dest}, but there are {n} states")

    @classmethod
    def null(cls) -> 'Machine':
        """The single-state machine with no transitions."""
        return cls([State()])

    @classmethod
    def generator(cls, name: str, seq: Sequence[str]) -> 'Machine':
        """A chain of states that outputs seq and takes no input."""
        states = [State([name, pos], [Transition('', sym, pos + 1)]) for pos, sym in enumerate(seq)]
        states.append(State([name, len(seq)]))
        return cls(states)

    @classmethod
    def acceptor(cls, name: str, seq: Sequence[str]) -> 'Machine':
        """A chain of states that inputs seq and produces no output."""
        states = [State([name, pos], [Transition(sym, '', pos + 1)]) for pos, sym in enumerate(seq)]
        states.append(State([name, len(seq)]))
        return cls(states)

    # ==================
    # Queries
    # ==================

    def n_states(self) -> int:
        return len(self.state)

    def n_transitions(self) -> int:
        return sum(len(ms.trans) for ms in self.state)

    def start_state(self) -> int:
        if not self.state:
            raise PreconditionError("Machine has no states")
        return 0

    def end_state(self) -> int:
        if not self.state:
            raise PreconditionError("Machine has no states")
        return len(self.state) - 1

    def input_alphabet(self) -> List[str]:
        return sorted({t.input for _, t in all_transitions(self.state) if not t.input_empty()})

    def output_alphabet(self) -> List[str]:
        return sorted({t.output for _, t in all_transitions(self.state) if not t.output_empty()})

    def params(self) -> Set[str]:
        """Names of the parameters used in any transition weight."""
        return set().union(*(wt.params(t.weight) for _, t in all_transitions(self.state)))

    def accessible_states(self) -> Set[int]:
        """Indices of the states that can be reached from the start state."""
        return algorithms.accessible(self)

    def is_ergodic_machine(self) -> bool:
        """All states accessible."""
        return len(self.accessible_states()) == self.n_states()

    def is_waiting_machine(self) -> bool:
        """All states wait or continue."""
        return all(ms.waits() or ms.continues() for ms in self.state)

    def is_advancing_machine(self) -> bool:
        """No silent i->j transitions where j <= i."""
        return all(t.dest > s for s, t in all_transitions(self.state) if t.is_silent())

    def is_aligning_machine(self) -> bool:
        """At most one i->j transition with given input & output labels."""
        for ms in self.state:
            seen = set()
            for t in ms.trans:
                key = (t.dest, t.input, t.output)
                if key in seen:
                    return False
                seen.add(key)
        return True

    # ==================
    # Operations
    # ==================

    @staticmethod
    def concatenate(left: 'Machine', right: 'Machine') -> 'Machine':
        """Left followed by right. Left's end state becomes right's start state."""
        left_end, right_start = left.state[-1], right.state[0]
        if left_end.trans and any(t.dest == 0 for _, t in all_transitions(right.state)):
            # Merging would let right loop back into left; join with a silent transition instead
            logger.debug("concatenate: joining machines with a silent transition")
            offset = left.n_states()
            bridge = State(left_end.name, left_end.__copy__().trans + [Transition('', '', offset)])
            return Machine([ms.__copy__() for ms in left.state[:-1]] + [bridge]
                           + [ms.moved(offset) for ms in right.state])
        offset = left.n_states() - 1
        merged = State(left_end.name if left_end.name is not None else right_start.name,
                       left_end.__copy__().trans + [t.moved(offset) for t in right_start.trans])
        return Machine([ms.__copy__() for ms in left.state[:-1]] + [merged]
                       + [ms.moved(offset) for ms in right.state[1:]])

    @staticmethod
    def union_of(first: 'Machine', second: 'Machine', p_first=None, p_second=None) -> 'Machine':
        """A choice between first (weight p_first) and second (weight p_second).

        With no weights both branches have weight 1; given only one of the
        weights, the other branch has weight 1 minus it."""
        if p_first is None and p_second is None:
            p_first = p_second = wt.one()
        elif p_first is None:
            p_first = wt.negate(p_second)
        elif p_second is None:
            p_second = wt.negate(p_first)
        n1, n2 = first.n_states(), second.n_states()
        end = 1 + n1 + n2
        start = State(None, [Transition('', '', 1, p_first), Transition('', '', 1 + n1, p_second)])
        first_states = [ms.moved(1) for ms in first.state]
        second_states = [ms.moved(1 + n1) for ms in second.state]
        for branch in first_states, second_states:
            branch[-1].trans.append(Transition('', '', end))
        return Machine([start] + first_states + second_states + [State()])

    def kleene_closure(self, extend=None, end=None) -> 'Machine':
        """Zero or more repetitions of self.

        State 0 either enters self (weight extend) or exits to a new end
        state (weight end); self's end state returns to state 0. With only
        one of extend and end given, the other is 1 minus it; with neither,
        both are 1."""
        if extend is None and end is None:
            extend = end = wt.one()
        elif extend is None:
            extend = wt.negate(end)
        elif end is None:
            end = wt.negate(extend)
        n = self.n_states()
        loop = State(None, [Transition('', '', 1, extend), Transition('', '', n + 1, end)])
        body = [ms.moved(1) for ms in self.state]
        body[-1].trans.append(Transition('', '', 0))
        return Machine([loop] + body + [State()])

    @staticmethod
    def compose(first: 'Machine', second: 'Machine') -> 'Machine':
        """Composition: first's output is fed to second's input.

        second is made a waiting machine first, so at every pair of states
        either second waits for input (first moves, alone if it outputs
        nothing) or second continues without input (second moves alone).
        Only pairs reachable from the start pair are built."""
        second = second.waiting_machine()
        start, end = (first.start_state(), second.start_state()), (first.end_state(), second.end_state())
        transitions = {}
        Q = [start]
        seen = {start}
        while Q:
            i, j = Q.pop()
            msi, msj = first.state[i], second.state[j]
            ta = TransAccumulator()
            if msj.waits():
                for ti in msi.trans:
                    if ti.output_empty():
                        ta.accumulate(ti.input, '', (ti.dest, j), ti.weight)
                    else:
                        for tj in msj.trans:
                            if tj.input == ti.output:
                                ta.accumulate(ti.input, tj.output, (ti.dest, tj.dest), wt.multiply(ti.weight, tj.weight))
            else:
                for tj in msj.trans:
                    ta.accumulate('', tj.output, (i, tj.dest), tj.weight)
            transitions[(i, j)] = ta.transitions()
            for t in transitions[(i, j)]:
                if t.dest not in seen:
                    seen.add(t.dest)
                    Q.append(t.dest)
        if end not in seen:
            logger.debug("compose: end state is not reachable")
            transitions[end] = []
        pairs = sorted(transitions.keys())  # the end pair sorts last
        index = {pair: n for n, pair in enumerate(pairs)}
        states = [State([first.state[i].name, second.state[j].name],
                        (Transition(t.input, t.output, index[t.dest], t.weight) for t in transitions[(i, j)]))
                  for i, j in pairs]
        return Machine(states)

    def reverse(self) -> 'Machine':
        """Reverse every transition; state s becomes state n-1-s, so start and end swap."""
        n = self.n_states()
        states = [State(ms.name) for ms in reversed(self.state)]
        for s, t in all_transitions(self.state):
            states[n - 1 - t.dest].trans.append(Transition(t.input, t.output, n - 1 - s, t.weight))
        return Machine(states)

    def flip_in_out(self) -> 'Machine':
        """Swap input and output labels."""
        return Machine([State(ms.name, (Transition(t.output, t.input, t.dest, t.weight) for t in ms.trans))
                        for ms in self.state])

    def ergodic_machine(self) -> 'Machine':
        """Remove states that can't be reached from the start. The end state is always kept."""
        keep = sorted(self.accessible_states() | {self.end_state()})
        if len(keep) == self.n_states():
            return self.__copy__()
        logger.debug(f"ergodic_machine: removing {self.n_states() - len(keep)} inaccessible states")
        old2new = {old: new for new, old in enumerate(keep)}
        return Machine([State(self.state[old].name,
                              (Transition(t.input, t.output, old2new[t.dest], t.weight)
                               for t in self.state[old].trans if t.dest in old2new))
                        for old in keep])

    def waiting_machine(self) -> 'Machine':
        """Split every state that exits both with and without input.

        The original state keeps its input-free transitions and gains a
        silent transition to a new state, placed right after it, which
        holds the transitions that need input."""
        split = [not (ms.waits() or ms.continues()) for ms in self.state]
        if not any(split):
            return self.__copy__()
        old2new, n = [], 0
        for s in range(self.n_states()):
            old2new.append(n)
            n += 2 if split[s] else 1

        def renumbered(t):
            return Transition(t.input, t.output, old2new[t.dest], t.weight)

        states = []
        for s, ms in enumerate(self.state):
            if split[s]:
                states.append(State(ms.name, [renumbered(t) for t in ms.trans if t.input_empty()]
                                    + [Transition('', '', old2new[s] + 1)]))
                states.append(State([MACHINE_WAIT_TAG, ms.name], [renumbered(t) for t in ms.trans if not t.input_empty()]))
            else:
                states.append(State(ms.name, [renumbered(t) for t in ms.trans]))
        logger.debug(f"waiting_machine: split {sum(split)} states")
        return Machine(states)

    def advancing_machine(self) -> 'Machine':
        """Reorder states so that every silent transition goes to a higher-numbered state.

        A start state with incoming silent transitions is duplicated, and an
        end state with outgoing silent transitions is given a new terminal
        end state. Raises SilentCycleError if the silent transitions form a
        cycle."""
        if self.is_advancing_machine():
            return self.__copy__()
        states = list(self.state)
        if any(t.dest == 0 and t.is_silent() for _, t in all_transitions(states)):
            logger.debug("advancing_machine: duplicating start state")
            states = [ms.moved(1) for ms in states]
            states.insert(0, states[0].__copy__())
        if any(t.is_silent() for t in states[-1].trans):
            logger.debug("advancing_machine: adding new end state")
            states[-1] = State(states[-1].name, states[-1].trans + [Transition('', '', len(states))])
            states.append(State())
        unsorted = Machine(states)
        order = algorithms.silent_toposort(unsorted, first=unsorted.start_state(), last=unsorted.end_state())
        old2new = {old: new for new, old in enumerate(order)}
        return Machine([State(states[old].name,
                              (Transition(t.input, t.output, old2new[t.dest], t.weight) for t in states[old].trans))
                        for old in order])

    # ==================
    # Saving and Loading
    # ==================

    def to_json(self) -> Dict[str, Any]:
        """The persisted form: {"state": [{"n", "id", "trans": [{"to", "in", "out", "weight"}]}]}.
           Empty symbols and unit weights are omitted."""
        states = []
        for s, ms in enumerate(self.state):
            sj: Dict[str, Any] = {"n": s}
            if ms.name is not None:
                sj["id"] = ms.name
            if ms.trans:
                sj["trans"] = [_trans_json(t) for t in ms.trans]
            states.append(sj)
        return {"state": states}

    @classmethod
    def from_json(cls, doc: Any) -> 'Machine':
        """Recreate a machine from its persisted form. The whole document is
           validated first; a bad document raises SchemaViolation."""
        validated = cast(schema.MachineDoc, schema.validate("machine", doc))
        return cls([State(sd.id, (_trans_from_doc(td) for td in sd.trans)) for sd in validated.state])

    def to_json_string(self) -> str:
        return json.dumps(self.to_json())

    def write_json(self, out: TextIO):
        json.dump(self.to_json(), out)
        out.write("\n")

    def save(self, path: Union[str, PathLike]):
        """Saves the machine to a JSON file (gzip-compressed if the name ends in .gz)."""
        jsonio.save_json(self.to_json(), path)

    @classmethod
    def load(cls, path: Union[str, PathLike]) -> 'Machine':
        """Loads a machine from a JSON file, plain or gzip-compressed."""
        return cls.from_json(jsonio.load_json(path))

    # ==================
    # Rendering
    # ==================

    def view(self, show_weights=True, show_names=False) -> 'graphviz.Digraph':
        """Creates a 'graphviz.Digraph' object to view the machine. Will automatically display in Jupyter.

            :param show_weights: label transitions with their weights
            :param show_names: label states with their names as well as their indices
            :return: A Digraph object which will automatically display in Jupyter.

           If you would like to display the machine from a non-Jupyter environment, please use :code:`Machine.render`
        """
        import graphviz
        if not util.check_graphviz_installed():
            raise EnvironmentError("Graphviz executable not found. Please install [Graphviz](https://www.graphviz.org/download/). On macOS, use `brew install graphviz`.")

        def _weight_format(w):
            if not show_weights:
                return ""
            return "/" + (util.float_format(w.value) if w.is_constant() else wt.to_string(w))

        g = graphviz.Digraph('Machine', graph_attr={"rankdir": "LR"})
        g.attr(rankdir='LR', size='8,5')
        for s, ms in enumerate(self.state):
            label = str(s) if not show_names or ms.name is None else f"{s}: {json.dumps(ms.name)}"
            shape = 'doublecircle' if s == self.end_state() else 'circle'
            style = 'filled, bold' if s == self.start_state() else 'filled'
            g.node(str(s), label=label, shape=shape, style=style)
        for s, ms in enumerate(self.state):
            grouped_targets = defaultdict(list)
            for t in ms.trans:
                grouped_targets[t.dest].append(util.symbol_format(t.input) + ':' + util.symbol_format(t.output)
                                               + _weight_format(t.weight))
            for target, labellist in grouped_targets.items():
                g.edge(str(s), str(target), label=graphviz.nohtml(', '.join(sorted(labellist))))
        return g

    def render(self, view=True, filename: str = 'Machine', format='pdf', tight=True):
        """
        Renders the machine to a file and optionally opens the file.
        :param view: If True, the rendered file will be opened.
        :param format: The file format for the Digraph. Typically 'pdf', 'png', or 'svg'. View all formats: https://graphviz.org/docs/outputs/
        :param tight: If False, the rendered file will have whitespace margins around the graph.
        """
        digraph = self.view()
        digraph.format = format
        if tight:
            digraph.graph_attr['margin'] = '0'  # Remove padding
        digraph.render(view=view, filename=filename, cleanup=True)

    # ==================
    # Magic Methods
    # ==================

    def __copy__(self):
        return Machine([ms.__copy__() for ms in self.state])

    def __len__(self):
        """Return the number of states."""
        return len(self.state)

    def __eq__(self, other):
        if not isinstance(other, Machine):
            return NotImplemented
        return self.state == other.state

    __hash__ = None

    def __str__(self):
        """Tab-separated listing: one 'src dest in out weight' line per transition, then the end state."""
        st = ""
        for s, t in all_transitions(self.state):
            syms = ["@0@" if sym == "" else sym for sym in (t.input, t.output)]
            st += '{}\t{}\t{}\t{}\n'.format(s, t.dest, '\t'.join(syms), wt.to_string(t.weight))
        if self.state:
            st += '{}\n'.format(self.end_state())
        return st

    def __repr__(self):
        return f"Machine({self.state!r})"

    def __mul__(self, other):
        """Concatenation."""
        return Machine.concatenate(self, other)

    def __or__(self, other):
        """Union."""
        return Machine.union_of(self, other)

    def __matmul__(self, other):
        """Composition."""
        return Machine.compose(self, other)


class MachinePath:
    """A sequence of transitions through a machine, starting at its start state."""

    def __init__(self, trans: Optional[Iterable[Transition]] = None):
        self.trans: List[Transition] = list(trans) if trans is not None else []

    def input_sequence(self) -> List[str]:
        return [t.input for t in self.trans if not t.input_empty()]

    def output_sequence(self) -> List[str]:
        return [t.output for t in self.trans if not t.output_empty()]

    def weight(self) -> wt.WeightExpr:
        """Product of the transition weights."""
        w = wt.one()
        for t in self.trans:
            w = wt.multiply(w, t.weight)
        return w

    def is_path_of(self, machine: Machine) -> bool:
        """True if the transitions lead from machine's start state to its end state."""
        s = machine.start_state()
        for t in self.trans:
            if t not in machine.state[s].trans:
                return False
            s = t.dest
        return s == machine.end_state()

    def to_json(self) -> Dict[str, Any]:
        """{"path": [{"to", "in", "out", "weight"}]}, transitions as in Machine.to_json."""
        return {"path": [_trans_json(t) for t in self.trans]}

    @classmethod
    def from_json(cls, doc: Any) -> 'MachinePath':
        validated = cast(schema.PathDoc, schema.validate("path", doc))
        return cls(_trans_from_doc(td) for td in validated.path)

    def to_json_string(self) -> str:
        return json.dumps(self.to_json())

    def write_json(self, out: TextIO):
        json.dump(self.to_json(), out)
        out.write("\n")

    def __len__(self):
        return len(self.trans)

    def __iter__(self):
        return iter(self.trans)

    def __eq__(self, other):
        if not isinstance(other, MachinePath):
            return NotImplemented
        return self.trans == other.trans

    __hash__ = None

    def __repr__(self):
        return f"MachinePath({self.trans!r})"


# ==================
# Global Functions
# ==================
def compose(first: Machine, second: Machine) -> Machine:
    return Machine.compose(first, second)

def concatenate(left: Machine, right: Machine) -> Machine:
    return Machine.concatenate(left, right)

def union_of(first: Machine, second: Machine, p_first=None, p_second=None) -> Machine:
    return Machine.union_of(first, second, p_first, p_second)

def kleene_closure(machine: Machine, extend=None, end=None) -> Machine:
    return machine.kleene_closure(extend, end)

def reverse(machine: Machine) -> Machine:
    return machine.reverse()

def flip_in_out(machine: Machine) -> Machine:
    return machine.flip_in_out()
