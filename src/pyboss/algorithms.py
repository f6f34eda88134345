#!/usr/bin/env python

"""Defines common graph algorithms over machines"""
import heapq
from collections import deque
from typing import TYPE_CHECKING, List, Set

from pyboss._private.exceptions import PreconditionError, SilentCycleError

if TYPE_CHECKING:
    from .machine import Machine


def _targets(machine: 'Machine', s: int, silent_only: bool) -> Set[int]:
    return {t.dest for t in machine.state[s].trans if not silent_only or t.is_silent()}


def accessible(machine: 'Machine') -> Set[int]:
    """Indices of states reachable from the start state."""
    if machine.n_states() == 0:
        return set()
    start = machine.start_state()
    explored = {start}
    stack = deque([start])
    while stack:
        source = stack.pop()
        for target in _targets(machine, source, False):
            if target not in explored:
                explored.add(target)
                stack.append(target)
    return explored


def coaccessible(machine: 'Machine') -> Set[int]:
    """Indices of states from which the end state can be reached."""
    if machine.n_states() == 0:
        return set()
    inverse = {s: set() for s in range(machine.n_states())}  # store all preceding states here
    for s in range(machine.n_states()):
        for target in _targets(machine, s, False):
            inverse[target].add(s)
    end = machine.end_state()
    explored = {end}
    stack = deque([end])
    while stack:
        source = stack.pop()
        for previous in inverse[source]:
            if previous not in explored:
                explored.add(previous)
                stack.append(previous)
    return explored


def scc(machine: 'Machine', silent_only: bool = False) -> set:
    """Calculate the strongly connected components of a machine.

       This is a basic implementation of Tarjan's (1972) algorithm.
       Tarjan, R. E. (1972), "Depth-first search and linear graph algorithms",
       SIAM Journal on Computing, 1 (2): 146–160.

       If silent_only is True, only silent transitions are followed.
       Returns a set of frozensets of state indices, one frozenset for each SCC."""

    index = 0
    S = deque([])
    sccs, indices, lowlink, onstack = set(), {}, {}, set()

    # Iterative, since machines from composition can be deeper than the recursion limit
    for root in range(machine.n_states()):
        if root in indices:
            continue
        work = [(root, None)]
        while work:
            state, targets = work.pop()
            if targets is None:
                indices[state] = index
                lowlink[state] = index
                index += 1
                S.append(state)
                onstack.add(state)
                targets = iter(sorted(_targets(machine, state, silent_only)))
            recursed = False
            for target in targets:
                if target not in indices:
                    work.append((state, targets))
                    work.append((target, None))
                    recursed = True
                    break
                elif target in onstack:
                    lowlink[state] = min(lowlink[state], indices[target])
            if recursed:
                continue
            if lowlink[state] == indices[state]:
                currscc = set()
                while True:
                    target = S.pop()
                    onstack.remove(target)
                    currscc.add(target)
                    if state == target:
                        break
                sccs.add(frozenset(currscc))
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[state])

    return sccs


def silent_cycles(machine: 'Machine') -> List[frozenset]:
    """The groups of states that lie on cycles of silent transitions."""
    cycles = []
    for component in scc(machine, silent_only=True):
        if len(component) > 1:
            cycles.append(component)
        else:
            s = next(iter(component))
            if s in _targets(machine, s, True):
                cycles.append(component)
    return sorted(cycles, key=min)


def silent_toposort(machine: 'Machine', first: int = None, last: int = None) -> List[int]:
    """Order the states so that every silent transition goes forward.

       Kahn's algorithm, always taking the lowest-numbered available state,
       so an order that already works is returned unchanged. If given,
       `first` is placed first and `last` is placed last; this requires that
       `first` has no incoming and `last` no outgoing silent transitions.
       Raises SilentCycleError if there is no such order."""
    n = machine.n_states()
    indegree = [0] * n
    succ = [sorted(_targets(machine, s, True)) for s in range(n)]
    for s in range(n):
        for d in succ[s]:
            indegree[d] += 1
    if first is not None and indegree[first] > 0:
        raise PreconditionError(f"State {first} cannot go first: it has incoming silent transitions")
    if last is not None and last != first and succ[last]:
        raise PreconditionError(f"State {last} cannot go last: it has outgoing silent transitions")

    reserved = {first, last} - {None}
    order = []
    Q = [s for s in range(n) if indegree[s] == 0 and s not in reserved]
    heapq.heapify(Q)

    def place(s):
        order.append(s)
        for d in succ[s]:
            indegree[d] -= 1
            if indegree[d] == 0 and d not in reserved:
                heapq.heappush(Q, d)

    if first is not None:
        place(first)
    while Q:
        place(heapq.heappop(Q))
    if last is not None and last != first and indegree[last] == 0:
        place(last)

    if len(order) != n:
        cycles = silent_cycles(machine)
        raise SilentCycleError(set().union(*cycles) if cycles else set(range(n)) - set(order))
    return order
