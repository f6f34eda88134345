import math
import unittest

from pyboss import weight as wt
from pyboss.tokenizer import Tokenizer
from pyboss._private.exceptions import MissingParameterError, SchemaViolation, UnknownSymbolError, WeightEvaluationError


class TestWeightExpr(unittest.TestCase):
    """Test construction, folding and evaluation of weight expressions"""
    def test_coerce(self):
        self.assertEqual(wt.coerce(2), wt.constant(2.0))
        self.assertEqual(wt.coerce("p"), wt.param("p"))
        self.assertEqual(wt.coerce(True), wt.one())
        with self.assertRaises(TypeError):
            wt.coerce([1])

    def test_constant_folding(self):
        self.assertEqual(wt.add(1, 2), wt.constant(3))
        self.assertEqual(wt.multiply(0.5, 0.5), wt.constant(0.25))
        self.assertEqual(wt.divide(3, 2), wt.constant(1.5))
        self.assertEqual(wt.power(2, 3), wt.constant(8))
        self.assertEqual(wt.log(1), wt.zero())
        self.assertEqual(wt.exp(0), wt.one())

    def test_identities(self):
        p = wt.param("p")
        self.assertEqual(wt.multiply(1, p), p)
        self.assertEqual(wt.multiply(p, 1), p)
        self.assertEqual(wt.multiply(0, p), wt.zero())
        self.assertEqual(wt.add(0, p), p)
        self.assertEqual(wt.divide(p, 1), p)
        self.assertEqual(wt.power(p, 1), p)
        self.assertEqual(wt.exp(wt.log(p)), p)

    def test_negate(self):
        p = wt.param("p")
        self.assertEqual(wt.negate(p).op, 'not')
        self.assertEqual(wt.negate(0.25), wt.constant(0.75))
        self.assertAlmostEqual(wt.evaluate(wt.negate(p), {"p": 0.3}), 0.7)

    def test_operators(self):
        p, q = wt.param("p"), wt.param("q")
        w = p * (1 - q)
        self.assertAlmostEqual(wt.evaluate(w, {"p": 0.5, "q": 0.2}), 0.4)
        w = (p + q) / 2 ** q
        self.assertAlmostEqual(wt.evaluate(w, {"p": 1, "q": 1}), 1.0)
        self.assertEqual(wt.params(w), {"p", "q"})

    def test_structural_equality(self):
        a = wt.param("p") * wt.param("q")
        b = wt.param("p") * wt.param("q")
        self.assertEqual(a, b)
        self.assertEqual(hash(a), hash(b))
        self.assertEqual(len({a, b}), 1)
        with self.assertRaises(AttributeError):
            a.op = '+'

    def test_missing_parameter(self):
        with self.assertRaises(MissingParameterError) as cm:
            wt.evaluate(wt.param("p") + wt.param("q"), {"p": 1})
        self.assertEqual(cm.exception.name, "q")
        self.assertIn("q", str(cm.exception))

    def test_log_exp(self):
        w = wt.exp(wt.log(wt.param("p")) * 2)
        self.assertAlmostEqual(wt.evaluate(w, {"p": 3}), 9.0)
        self.assertAlmostEqual(wt.evaluate(wt.log("p"), {"p": math.e}), 1.0)

    def test_evaluation_error_names_expression(self):
        with self.assertRaises(WeightEvaluationError) as cm:
            wt.evaluate(wt.param("q") * wt.log("p"), {"p": 0, "q": 1})
        self.assertEqual(cm.exception.expr, "log(p)")
        self.assertIn("log(p)", str(cm.exception))
        with self.assertRaises(WeightEvaluationError) as cm:
            wt.evaluate(wt.divide("p", "q"), {"p": 1, "q": 0})
        self.assertIn("(p / q)", str(cm.exception))
        self.assertIsInstance(cm.exception, ArithmeticError)


class TestWeightJson(unittest.TestCase):
    """Test the persisted form of weight expressions"""
    def test_to_json(self):
        self.assertEqual(wt.to_json(wt.one()), 1)
        self.assertEqual(wt.to_json(wt.constant(0.5)), 0.5)
        self.assertEqual(wt.to_json("p"), "p")
        self.assertEqual(wt.to_json(wt.param("p") * wt.param("q")), {"*": ["p", "q"]})
        self.assertEqual(wt.to_json(wt.negate("p")), {"not": "p"})
        self.assertEqual(wt.to_json(wt.log("p")), {"log": "p"})

    def test_from_json(self):
        p, q = wt.param("p"), wt.param("q")
        self.assertEqual(wt.from_json({"/": ["p", "q"]}), wt.divide(p, q))
        self.assertEqual(wt.from_json({"pow": ["p", 2]}), wt.power(p, 2))
        self.assertEqual(wt.from_json({"exp": "q"}), wt.exp(q))
        w = wt.from_json({"+": [1, "p", 2]})
        self.assertAlmostEqual(wt.evaluate(w, {"p": 1}), 4.0)
        w = wt.from_json({"*": ["p", {"-": [1, "q"]}]})
        self.assertAlmostEqual(wt.evaluate(w, {"p": 0.5, "q": 0.2}), 0.4)

    def test_json_round_trip(self):
        w = wt.param("a") * wt.exp(wt.param("b")) / (wt.param("c") + 3)
        self.assertEqual(wt.from_json(wt.to_json(w)), w)

    def test_malformed(self):
        for doc in [None, [], {}, {"+": [1]}, {"-": [1, 2, 3]}, {"foo": [1, 2]}, {"+": 1}, "",
                    {"*": ["p"], "+": ["q"]}]:
            with self.subTest(doc=doc):
                with self.assertRaises(SchemaViolation) as cm:
                    wt.from_json(doc)
                self.assertEqual(cm.exception.kind, "expr")

    def test_to_string(self):
        self.assertEqual(wt.to_string(wt.param("p") * wt.negate("q")), "(p * (1 - q))")
        self.assertEqual(wt.to_string(wt.constant(0.5)), "0.5")
        self.assertEqual(wt.to_string(wt.one()), "1")


class TestTokenizer(unittest.TestCase):
    """Test the symbol/token bijection"""
    def test_tokens(self):
        tok = Tokenizer(["b", "a", "b", ""])
        self.assertEqual(tok.tok2sym, ["", "a", "b"])
        self.assertEqual(tok.sym2tok, {"": 0, "a": 1, "b": 2})
        self.assertEqual(tok.empty_token(), 0)
        self.assertEqual(len(tok), 3)
        self.assertEqual(tok.alphabet(), ["a", "b"])
        self.assertIn("a", tok)

    def test_tokenize(self):
        tok = Tokenizer("cab")
        self.assertEqual(tok.tokenize("abc"), [1, 2, 3])
        self.assertEqual(tok.detokenize([3, 0, 1]), ["c", "", "a"])

    def test_unknown_symbol(self):
        tok = Tokenizer(["a"])
        with self.assertRaises(UnknownSymbolError) as cm:
            tok.tokenize(["a", "z"])
        self.assertEqual(cm.exception.symbol, "z")
        with self.assertRaises(UnknownSymbolError):
            tok.symbol(5)


if __name__ == "__main__":
    unittest.main()
