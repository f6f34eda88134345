import json
import math
import unittest

import numpy as np

from pyboss import EvaluatedMachine, Machine, Params
from pyboss import weight as wt
from pyboss.atomic import State, Transition
from pyboss._private import linalg
from pyboss._private.exceptions import MissingParameterError, PreconditionError, SingularMatrixError


def chain(*weights):
    """Machine with a single chain of silent transitions."""
    return Machine([State(None, [Transition('', '', s + 1, w)]) for s, w in enumerate(weights)] + [State()])


class TestEvaluatedMachine(unittest.TestCase):
    """Test evaluation of machine weights"""
    def setUp(self):
        self.machine = Machine([
            State("start", [Transition("a", "x", 1, "p"), Transition("", "", 2, wt.negate("p"))]),
            State("mid", [Transition("b", "", 2, wt.param("q") * 2)]),
            State("end"),
        ])
        self.params = Params({"p": 0.25, "q": 0.1})

    def test_structure(self):
        em = EvaluatedMachine(self.machine, self.params)
        self.assertEqual(em.n_states(), 3)
        self.assertEqual(em.start_state(), 0)
        self.assertEqual(em.end_state(), 2)
        self.assertEqual(em.n_transitions, 3)
        self.assertEqual([es.n_transitions for es in em.state], [2, 1, 0])
        self.assertEqual([es.trans_offset for es in em.state], [0, 2, 3])
        a, x = em.input_tokenizer.token("a"), em.output_tokenizer.token("x")
        t = em.state[0].outgoing[a][x][1]
        self.assertAlmostEqual(t.log_weight, math.log(0.25))
        self.assertEqual(t.trans_index, 0)
        self.assertEqual(em.state[1].incoming[a][x][0], t)
        silent = em.state[0].outgoing[0][0][2]
        self.assertAlmostEqual(silent.log_weight, math.log(0.75))
        self.assertEqual(silent.trans_index, 1)
        self.assertAlmostEqual(em.state[2].incoming[em.input_tokenizer.token("b")][0][1].log_weight, math.log(0.2))

    def test_no_params(self):
        em = EvaluatedMachine(self.machine)
        self.assertTrue(all(t.log_weight == 0.0 for s in range(em.n_states()) for *_, t in em.transitions(s)))

    def test_missing_parameter(self):
        with self.assertRaises(MissingParameterError) as cm:
            EvaluatedMachine(self.machine, {"p": 0.5})
        self.assertEqual(cm.exception.name, "q")

    def test_requires_advancing_machine(self):
        m = Machine.acceptor("a", ["a"]).kleene_closure()
        with self.assertRaises(PreconditionError):
            EvaluatedMachine(m)
        EvaluatedMachine(m.advancing_machine())

    def test_empty_machine(self):
        em = EvaluatedMachine(Machine())
        self.assertEqual(em.n_states(), 0)
        with self.assertRaises(PreconditionError):
            em.start_state()
        with self.assertRaises(PreconditionError):
            em.end_state()

    def test_duplicate_transitions_are_summed(self):
        m = Machine([State(None, [Transition("a", "b", 1, 0.2), Transition("a", "b", 1, 0.3)]), State()])
        em = EvaluatedMachine(m, {})
        t = em.state[0].outgoing[1][1][1]
        self.assertAlmostEqual(t.log_weight, math.log(0.5))
        self.assertEqual(t.trans_index, 0)
        self.assertAlmostEqual(em.state[1].incoming[1][1][0].log_weight, math.log(0.5))
        self.assertEqual(em.n_transitions, 2)
        explicit = em.explicit_machine()
        self.assertEqual(explicit.n_transitions(), 1)
        self.assertAlmostEqual(explicit.state[0].trans[0].weight.value, 0.5)

    def test_zero_weight(self):
        m = Machine([State(None, [Transition("a", "", 1, 0)]), State()])
        em = EvaluatedMachine(m, {})
        self.assertEqual(em.state[0].outgoing[1][0][1].log_weight, -math.inf)

    def test_state_name_json(self):
        m = Machine.generator("g", ["A"])
        m.state[1].name = None
        em = EvaluatedMachine(m)
        self.assertEqual(json.loads(em.state_name_json(0)), ["g", 0])
        self.assertEqual(em.state_name_json(1), "1")

    def test_progress(self):
        seen = []

        def progress(it):
            for s in it:
                seen.append(s)
                yield s

        EvaluatedMachine(self.machine, self.params, progress=progress)
        self.assertEqual(seen, [0, 1, 2])
        EvaluatedMachine(self.machine, self.params, progress=True)


class TestSumInTrans(unittest.TestCase):
    """Test summation over paths of silent transitions"""
    def test_chain(self):
        em = EvaluatedMachine(chain("p1", "p2"), {"p1": 0.5, "p2": 0.4})
        s = em.sum_in_trans()
        self.assertEqual(s.shape, (3, 3))
        self.assertAlmostEqual(math.exp(s[0, 2]), 0.5 * 0.4)
        self.assertAlmostEqual(math.exp(s[0, 1]), 0.5)
        self.assertAlmostEqual(s[1, 1], 0.0)
        self.assertAlmostEqual(math.exp(s[2, 0]), 0.0)

    def test_against_reference_inverse(self):
        m = Machine([
            State(None, [Transition('', '', 1, 0.3), Transition('', '', 2, 0.5), Transition('a', '', 3, 0.2)]),
            State(None, [Transition('', '', 2, 0.6), Transition('', '', 3, 0.4)]),
            State(None, [Transition('', '', 3, 0.9), Transition('', 'b', 3, 0.1)]),
            State(),
        ])
        em = EvaluatedMachine(m, {})
        P = np.zeros((4, 4))
        for s, ms in enumerate(m.state):
            for t in ms.trans:
                if t.is_silent():
                    P[s, t.dest] += t.weight.value
        expected = np.linalg.inv(np.eye(4) - P)
        np.testing.assert_allclose(np.exp(em.sum_in_trans()), expected, atol=1e-12)

    def test_large_exit_warning(self):
        m = Machine([State(None, [Transition('', '', 1, 0.75), Transition('', '', 2, 0.75)]),
                     State(None, [Transition('', '', 2)]), State()])
        em = EvaluatedMachine(m, {})
        with self.assertLogs(level="WARNING") as cm:
            em.sum_in_trans()
        self.assertTrue(any("exit probability of state 0" in line for line in cm.output))

    def test_singular(self):
        with self.assertRaises(SingularMatrixError):
            linalg.invert([[1.0, 1.0], [1.0, 1.0]])
        with self.assertRaises(ValueError):
            linalg.invert([[1.0, 2.0]])
        np.testing.assert_allclose(linalg.invert([[2.0, 0.0], [0.0, 4.0]]), [[0.5, 0.0], [0.0, 0.25]])

    def test_log_matrix(self):
        result = linalg.log_matrix([[1.0, 0.0], [-1.0, math.e]])
        self.assertEqual(result[0, 0], 0.0)
        self.assertEqual(result[0, 1], -np.inf)
        self.assertEqual(result[1, 0], -np.inf)
        self.assertAlmostEqual(result[1, 1], 1.0)


class TestExplicitMachine(unittest.TestCase):
    """Test conversion back to a machine with constant weights"""
    def test_round_trip(self):
        m = Machine.union_of(Machine.generator("g", ["A", "B"]), Machine.acceptor("a", ["x"]), "p")
        m = Machine.concatenate(m, Machine.generator("h", ["C"]).kleene_closure("e")).advancing_machine()
        params = {"p": 0.3, "e": 0.4}
        em = EvaluatedMachine(m, params)
        explicit = em.explicit_machine()
        self.assertEqual(explicit.n_states(), m.n_states())
        self.assertEqual([ms.name for ms in explicit.state], [ms.name for ms in m.state])
        for ms, xs in zip(m.state, explicit.state):
            expected = sorted((t.input, t.output, t.dest, wt.evaluate(t.weight, params)) for t in ms.trans)
            actual = sorted((t.input, t.output, t.dest, t.weight.value) for t in xs.trans)
            self.assertEqual([e[:3] for e in expected], [a[:3] for a in actual])
            for e, a in zip(expected, actual):
                self.assertAlmostEqual(e[3], a[3])
            self.assertTrue(all(t.weight.is_constant() for t in xs.trans))


class TestEvaluatedJson(unittest.TestCase):
    """Test the JSON dump of evaluated machines"""
    def test_to_json(self):
        em = EvaluatedMachine(Machine.generator("g", ["A"]))
        doc = em.to_json()
        self.assertEqual(doc, {"state": [
            {"n": 0, "id": ["g", 0], "outgoing": [{"to": 1, "out": "A", "logWeight": 0.0}]},
            {"n": 1, "id": ["g", 1], "incoming": [{"from": 0, "out": "A", "logWeight": 0.0}]},
        ]})
        self.assertEqual(json.loads(em.to_json_string()), doc)


if __name__ == "__main__":
    unittest.main()
