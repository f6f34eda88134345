from typing import Any, Iterable, List, Optional

from pyboss import weight as wt


class Transition:
    __slots__ = ['input', 'output', 'dest', 'weight']

    def __init__(self, input: str, output: str, dest: int, weight=1.0):
        """A transition to state index `dest`. The empty string is the empty symbol.
           `weight` may be a WeightExpr, a number or a parameter name."""
        self.input = input if input is not None else ''
        self.output = output if output is not None else ''
        self.dest = dest
        self.weight = wt.coerce(weight)

    def input_empty(self) -> bool:
        return self.input == ''

    def output_empty(self) -> bool:
        return self.output == ''

    def is_silent(self) -> bool:
        return self.input == '' and self.output == ''

    def is_loud(self) -> bool:
        return not self.is_silent()

    def moved(self, offset: int) -> 'Transition':
        """Copy with the destination shifted by offset."""
        return Transition(self.input, self.output, self.dest + offset, self.weight)

    def __eq__(self, other):
        if not isinstance(other, Transition):
            return NotImplemented
        return (self.input, self.output, self.dest, self.weight) == \
               (other.input, other.output, other.dest, other.weight)

    def __hash__(self):
        return hash((self.input, self.output, self.dest, self.weight))

    def __repr__(self):
        return f"Transition({self.input!r}, {self.output!r}, {self.dest}, {wt.to_string(self.weight)})"


class State:
    __slots__ = 'name', 'trans'

    def __init__(self, name: Any = None, trans: Optional[Iterable[Transition]] = None):
        # name is any JSON-compatible value; None means unnamed
        self.name = name
        self.trans: List[Transition] = list(trans) if trans is not None else []

    def get_transition(self, n: int) -> Transition:
        return self.trans[n]

    def exits_with_input(self) -> bool:
        """True if this has an input transition."""
        return any(not t.input_empty() for t in self.trans)

    def exits_without_input(self) -> bool:
        """True if this has a transition that consumes no input."""
        return any(t.input_empty() for t in self.trans)

    def exits_with_io(self) -> bool:
        """True if this has any transition with input and/or output."""
        return any(t.is_loud() for t in self.trans)

    def exits_without_io(self) -> bool:
        """True if this has any silent transition."""
        return any(t.is_silent() for t in self.trans)

    def terminates(self) -> bool:
        """True if this has no outgoing transitions. The end state need not terminate."""
        return len(self.trans) == 0

    def waits(self) -> bool:
        return not self.exits_without_input()

    def continues(self) -> bool:
        return not self.exits_with_input() and not self.terminates()

    def is_silent(self) -> bool:
        return not self.exits_with_io()

    def is_loud(self) -> bool:
        return self.exits_with_io() and not self.exits_without_io()

    def moved(self, offset: int) -> 'State':
        """Copy with every transition destination shifted by offset."""
        return State(self.name, (t.moved(offset) for t in self.trans))

    def __copy__(self):
        return State(self.name, (Transition(t.input, t.output, t.dest, t.weight) for t in self.trans))

    def __eq__(self, other):
        if not isinstance(other, State):
            return NotImplemented
        return self.name == other.name and self.trans == other.trans

    __hash__ = None

    def __repr__(self):
        return f"State({self.name!r}, {self.trans!r})"


def all_transitions(states: Iterable[State]):
    """Enumerate all transitions (source index, Transition) for a sequence of states."""
    for s, state in enumerate(states):
        for t in state.trans:
            yield s, t
