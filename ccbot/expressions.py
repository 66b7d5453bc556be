"""Restricted condition language used by ``{if;...}`` and variable paths.

Only literals, dotted paths into the whitelisted environment, comparisons
and boolean connectives are understood. Nothing here reaches Python's own
``eval`` or attribute machinery: paths are walked by the lookup object the
caller supplies (see ``ccbot.environment.Scope``).

Grammar::

    or_expr    := and_expr (("||" | "or") and_expr)*
    and_expr   := unary (("&&" | "and") unary)*
    unary      := ("!" | "not") unary | comparison
    comparison := primary (("==" | "!=" | "===" | "!==" | "<" | "<=" | ">" | ">=") primary)?
    primary    := NUMBER | "-" NUMBER | STRING | "true" | "false" | "null" | "(" or_expr ")" | path
    path       := NAME ("." NAME ["(" args ")"] | "." NUMBER ["+"] | "[" or_expr "]")*
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Tuple, Union

logger = logging.getLogger("ccbot.expressions")


class EvalError(Exception):
    """Raised when a condition cannot be parsed or evaluated."""


class _Missing:
    """Sentinel returned for path segments that do not exist."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


_TOKEN_PATTERN = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<string>'(?:\\.|[^'\\])*'|"(?:\\.|[^"\\])*")
  | (?P<name>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!()\[\].,+-])
    """,
    re.VERBOSE,
)

_COMPARISONS = frozenset({"==", "!=", "===", "!==", "<", "<=", ">", ">="})
_LITERAL_NAMES = {"true": True, "false": False, "null": None, "undefined": None}
MAX_NESTING = 64


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    position: int


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if match is None:
            raise EvalError(f"Unexpected character {text[position]!r} at position {position}")
        kind = match.lastgroup or ""
        if kind != "space":
            tokens.append(Token(kind, match.group(), position))
        position = match.end()
    return tokens


#
# Syntax tree
#
@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class FieldStep:
    name: str


@dataclass(frozen=True)
class IndexStep:
    key: "Node"


@dataclass(frozen=True)
class JoinFromStep:
    start: int


@dataclass(frozen=True)
class CallStep:
    name: str
    args: Tuple["Node", ...]


Step = Union[FieldStep, IndexStep, JoinFromStep, CallStep]


@dataclass(frozen=True)
class Path:
    root: str
    steps: Tuple[Step, ...]
    source: str


@dataclass(frozen=True)
class Not:
    operand: "Node"


@dataclass(frozen=True)
class BoolOp:
    op: str
    operands: Tuple["Node", ...]


@dataclass(frozen=True)
class Compare:
    op: str
    left: "Node"
    right: "Node"


Node = Union[Literal, Path, Not, BoolOp, Compare]


class PathResolver(Protocol):
    def lookup(self, path: Path, evaluate: Callable[[Node], Any]) -> Any:
        ...


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.position = 0
        self.depth = 0

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise EvalError("Expression nested too deeply")

    def _peek(self, offset: int = 0) -> Optional[Token]:
        index = self.position + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _accept(self, *values: str) -> Optional[Token]:
        token = self._peek()
        if token is not None and token.value in values and token.kind in ("op", "name"):
            self.position += 1
            return token
        return None

    def _expect(self, value: str) -> Token:
        token = self._accept(value)
        if token is None:
            found = self._peek()
            where = f"at position {found.position}" if found else "at end of expression"
            raise EvalError(f"Expected {value!r} {where}")
        return token

    def finish(self, node: Node) -> Node:
        leftover = self._peek()
        if leftover is not None:
            raise EvalError(f"Unexpected {leftover.value!r} at position {leftover.position}")
        return node

    def or_expr(self) -> Node:
        self._enter()
        operands = [self.and_expr()]
        while self._accept("||", "or"):
            operands.append(self.and_expr())
        self.depth -= 1
        return operands[0] if len(operands) == 1 else BoolOp("or", tuple(operands))

    def and_expr(self) -> Node:
        operands = [self.unary()]
        while self._accept("&&", "and"):
            operands.append(self.unary())
        return operands[0] if len(operands) == 1 else BoolOp("and", tuple(operands))

    def unary(self) -> Node:
        if self._accept("!", "not"):
            self._enter()
            node = Not(self.unary())
            self.depth -= 1
            return node
        return self.comparison()

    def comparison(self) -> Node:
        left = self.primary()
        token = self._peek()
        if token is not None and token.kind == "op" and token.value in _COMPARISONS:
            self.position += 1
            return Compare(token.value, left, self.primary())
        return left

    def primary(self) -> Node:
        token = self._peek()
        if token is None:
            raise EvalError("Unexpected end of expression")
        if token.kind == "number":
            self.position += 1
            return Literal(_number(token.value))
        if token.kind == "string":
            self.position += 1
            return Literal(_string(token.value))
        if token.value == "-" and token.kind == "op":
            following = self._peek(1)
            if following is None or following.kind != "number":
                raise EvalError(f"Expected a number after '-' at position {token.position}")
            self.position += 2
            return Literal(-_number(following.value))
        if token.value == "(":
            self.position += 1
            node = self.or_expr()
            self._expect(")")
            return node
        if token.kind == "name":
            if token.value in _LITERAL_NAMES:
                self.position += 1
                return Literal(_LITERAL_NAMES[token.value])
            return self.path()
        raise EvalError(f"Unexpected {token.value!r} at position {token.position}")

    def path(self) -> Path:
        root = self._peek()
        if root is None or root.kind != "name":
            raise EvalError("Expected a variable name")
        self.position += 1
        steps: List[Step] = []
        while True:
            if self._accept("."):
                token = self._peek()
                if token is None:
                    raise EvalError("Expected a name after '.'")
                self.position += 1
                if token.kind == "name":
                    if self._accept("("):
                        steps.append(CallStep(token.value, self._call_args()))
                    else:
                        steps.append(FieldStep(token.value))
                elif token.kind == "number":
                    # "items.0.1" lexes the trailing digits as one float token.
                    pieces = token.value.split(".")
                    if len(pieces) == 1 and self._accept("+"):
                        steps.append(JoinFromStep(int(pieces[0])))
                    else:
                        steps.extend(IndexStep(Literal(int(piece))) for piece in pieces)
                else:
                    raise EvalError(f"Unexpected {token.value!r} at position {token.position}")
            elif self._accept("["):
                key = self.or_expr()
                self._expect("]")
                steps.append(IndexStep(key))
            else:
                break
        end_token = self.tokens[self.position - 1]
        source = self.text[root.position : end_token.position + len(end_token.value)]
        return Path(root.value, tuple(steps), source)

    def _call_args(self) -> Tuple[Node, ...]:
        args: List[Node] = []
        if self._accept(")"):
            return ()
        while True:
            args.append(self.or_expr())
            if self._accept(")"):
                return tuple(args)
            self._expect(",")


def _number(raw: str) -> Union[int, float]:
    return float(raw) if "." in raw else int(raw)


def _string(raw: str) -> str:
    return re.sub(r"\\(.)", r"\1", raw[1:-1])


def parse_expression(text: str) -> Node:
    parser = _Parser(text)
    return parser.finish(parser.or_expr())


def parse_path(text: str) -> Path:
    parser = _Parser(text.strip())
    node = parser.path()
    parser.finish(node)
    return node


#
# Evaluation
#
def as_number(value: Any) -> Optional[Union[int, float]]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return int(stripped)
        except ValueError:
            pass
        try:
            return float(stripped)
        except ValueError:
            return None
    return None


def loose_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return _as_bool_token(left) == _as_bool_token(right)
    if isinstance(left, (int, float)) or isinstance(right, (int, float)):
        left_number, right_number = as_number(left), as_number(right)
        if left_number is not None and right_number is not None:
            return left_number == right_number
    return left == right


def strict_equals(left: Any, right: Any) -> bool:
    numeric = (int, float)
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    if isinstance(left, numeric) and isinstance(right, numeric):
        return left == right
    return type(left) is type(right) and left == right


def _as_bool_token(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    if isinstance(value, bool):
        return value
    return value


def _relational(op: str, left: Any, right: Any) -> bool:
    left_number, right_number = as_number(left), as_number(right)
    if left_number is not None and right_number is not None:
        left, right = left_number, right_number
    elif not (isinstance(left, str) and isinstance(right, str)):
        raise EvalError(f"Cannot compare {type(left).__name__} with {type(right).__name__}")
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


class Evaluator:
    def __init__(self, resolver: PathResolver):
        self.resolver = resolver

    def evaluate(self, node: Node) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Path):
            value = self.resolver.lookup(node, self.evaluate)
            if value is MISSING:
                raise EvalError(f"Unknown variable '{node.source}'")
            return value
        if isinstance(node, Not):
            return not self.evaluate(node.operand)
        if isinstance(node, BoolOp):
            if node.op == "and":
                return all(self.evaluate(operand) for operand in node.operands)
            return any(self.evaluate(operand) for operand in node.operands)
        if isinstance(node, Compare):
            left = self.evaluate(node.left)
            right = self.evaluate(node.right)
            if node.op == "==":
                return loose_equals(left, right)
            if node.op == "!=":
                return not loose_equals(left, right)
            if node.op == "===":
                return strict_equals(left, right)
            if node.op == "!==":
                return not strict_equals(left, right)
            return _relational(node.op, left, right)
        raise EvalError(f"Unsupported expression node {type(node).__name__}")


def evaluate_condition(text: str, resolver: PathResolver) -> bool:
    """Evaluate ``text`` to a boolean; any failure counts as false."""
    if not text.strip():
        logger.debug("Empty condition evaluates to false")
        return False
    try:
        result = Evaluator(resolver).evaluate(parse_expression(text))
    except EvalError as exc:
        logger.debug("Condition %r evaluated to false: %s", text, exc)
        return False
    return bool(result)


__all__ = [
    "BoolOp",
    "CallStep",
    "Compare",
    "EvalError",
    "Evaluator",
    "FieldStep",
    "IndexStep",
    "JoinFromStep",
    "Literal",
    "MAX_NESTING",
    "MISSING",
    "Node",
    "Not",
    "Path",
    "PathResolver",
    "as_number",
    "evaluate_condition",
    "loose_equals",
    "parse_expression",
    "parse_path",
    "strict_equals",
    "tokenize",
]
