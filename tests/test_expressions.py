import unittest

from ccbot.environment import Scope
from ccbot.expressions import (
    MAX_NESTING,
    EvalError,
    IndexStep,
    JoinFromStep,
    Literal,
    evaluate_condition,
    loose_equals,
    parse_expression,
    parse_path,
    strict_equals,
    tokenize,
)


class ConditionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.scope = Scope({"items": ["a", "b", "c"]}, {"x": 5, "name": "bob", "flag": "true"})

    def check(self, expression: str, expected: bool) -> None:
        with self.subTest(expression=expression):
            self.assertIs(evaluate_condition(expression, self.scope), expected)

    def test_comparisons(self) -> None:
        self.check("x == 5", True)
        self.check("x == '5'", True)
        self.check("x === '5'", False)
        self.check("x === 5", True)
        self.check("x != 4", True)
        self.check("x >= 5", True)
        self.check("x < 3", False)
        self.check("'abc' < 'abd'", True)
        self.check("flag == true", True)

    def test_boolean_connectives(self) -> None:
        self.check("x > 3 && name == 'bob'", True)
        self.check("x > 3 and name == 'eve'", False)
        self.check("x > 9 || name == 'bob'", True)
        self.check("!(x < 3)", True)
        self.check("not name", False)

    def test_paths_and_whitelisted_methods(self) -> None:
        self.check("items.length == 3", True)
        self.check("items.includes('b')", True)
        self.check("items[1] == 'b'", True)
        self.check("items.0 == 'a'", True)
        self.check("name.toUpperCase() == 'BOB'", True)
        self.check("name.startsWith('b')", True)

    def test_errors_evaluate_to_false(self) -> None:
        self.check("", False)
        self.check("missing == 1", False)
        self.check("x ==", False)
        self.check("x < 'abc'", False)
        self.check("name.__class__", False)
        self.check("items.pop()", False)

    def test_deep_nesting_evaluates_to_false(self) -> None:
        self.check("!" * 1200 + "true", False)
        self.check("(" * 300 + "true" + ")" * 300, False)
        self.check("items[" * 200 + "0" + "]" * 200, False)

    def test_moderate_nesting_still_evaluates(self) -> None:
        self.check("!" * 10 + "true", True)
        self.check("(" * 20 + "x == 5" + ")" * 20, True)


class ParserTests(unittest.TestCase):
    def test_dotted_numeric_segments_become_index_steps(self) -> None:
        path = parse_path("args.0.1")
        self.assertEqual(path.root, "args")
        self.assertEqual(path.steps, (IndexStep(Literal(0)), IndexStep(Literal(1))))

    def test_join_from_suffix(self) -> None:
        self.assertEqual(parse_path("args.1+").steps, (JoinFromStep(1),))

    def test_trailing_tokens_are_rejected(self) -> None:
        with self.assertRaises(EvalError):
            parse_path("hello world")

    def test_nesting_limit(self) -> None:
        parse_expression("(" * (MAX_NESTING - 1) + "1" + ")" * (MAX_NESTING - 1))
        with self.assertRaises(EvalError):
            parse_expression("(" * MAX_NESTING + "1" + ")" * MAX_NESTING)
        with self.assertRaises(EvalError):
            parse_expression("not " * MAX_NESTING + "true")

    def test_unknown_characters_are_rejected(self) -> None:
        with self.assertRaises(EvalError):
            tokenize("x # y")


class EqualityTests(unittest.TestCase):
    def test_loose_equality_coerces_numeric_strings(self) -> None:
        self.assertTrue(loose_equals("10", 10))
        self.assertTrue(loose_equals(True, "true"))
        self.assertFalse(loose_equals("ten", 10))

    def test_strict_equality_keeps_types(self) -> None:
        self.assertTrue(strict_equals(1, 1.0))
        self.assertFalse(strict_equals(1, True))
        self.assertFalse(strict_equals("1", 1))


if __name__ == "__main__":
    unittest.main()
