"""PULSE — Formula Engine.

Evaluates tenant-authored formulas for calculated metrics, e.g.
``Math.round((delivered/sent)*100)``.

Formulas are untrusted. Nothing here calls ``eval``: metric names are
substituted with numeric literals, the result is screened by a reject-list and
an allow-list, then tokenized and parsed into a small numeric AST whose only
leaves are numbers and members of the ``Math`` namespace.

``evaluate_formula`` never raises. A broken formula evaluates to 0 and is
logged.
"""

import math
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pulse.config import settings
from pulse.core.logging import get_logger

logger = get_logger("analyzer.formula")

Number = Union[int, float]

NAMESPACE = "Math"


def round_half_up(value: float) -> int:
    """Round .5 towards +infinity, matching dashboard expectations (2.5 → 3, -2.5 → -2)."""
    return math.floor(value + 0.5)


ALLOWED_FUNCTIONS: Dict[str, Callable[..., float]] = {
    "round": round_half_up,
    "floor": math.floor,
    "ceil": math.ceil,
    "abs": abs,
    "max": max,
    "min": min,
    "sqrt": math.sqrt,
    "pow": math.pow,
    "exp": math.exp,
    "log": math.log,
    "log10": math.log10,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}

ALLOWED_CONSTANTS: Dict[str, float] = {
    "PI": math.pi,
    "E": math.e,
}

# Screened before parsing. Not exhaustive: the parser rejects everything else.
REJECT_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = tuple(
    (label, re.compile(pattern, re.IGNORECASE))
    for label, pattern in (
        ("function definition", r"\bfunction\b"),
        ("arrow function", r"=>"),
        ("eval call", r"\beval\s*\("),
        ("import", r"\bimport\b"),
        ("require", r"\brequire\b"),
        ("process access", r"\bprocess\b"),
        ("global access", r"\bglobal(?:This)?\b"),
        ("window access", r"\bwindow\b"),
        ("document access", r"\bdocument\b"),
        ("constructor access", r"\bconstructor\b"),
        ("prototype access", r"\b(?:prototype|__proto__)\b"),
        ("dunder access", r"__\w+__"),
        ("lambda", r"\blambda\b"),
        ("exec call", r"\bexec\s*\("),
    )
)

_ALLOWED_LETTERS = "".join(
    sorted(set(NAMESPACE + "".join(ALLOWED_FUNCTIONS) + "".join(ALLOWED_CONSTANTS)))
)
_ALLOWED_CHARS_RE = re.compile(rf"^[0-9+\-*/().,\s{re.escape(_ALLOWED_LETTERS)}]*$")

_NAMESPACE_MEMBER = rf"{NAMESPACE}\s*\.\s*[A-Za-z_][A-Za-z0-9_]*"

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<number>\d+(?:\.\d*)?|\.\d+)"
    r"|(?P<op>\*\*|[-+*/(),.])"
    r"|(?P<name>[A-Za-z_][A-Za-z0-9_]*))"
)


class FormulaError(ValueError):
    """A formula cannot be evaluated safely."""


# ─────────────────────────────────────────────
# SUBSTITUTION & SCREENING
# ─────────────────────────────────────────────


def _format_literal(value: Number) -> str:
    value = float(value)
    if not math.isfinite(value):
        raise FormulaError(f"metric value is not finite: {value}")
    if value.is_integer():
        literal = str(int(value))
    else:
        literal = format(value, ".15f").rstrip("0")
    return f"({literal})" if value < 0 else literal


def substitute_metric_values(formula: str, values: Mapping[str, Number]) -> str:
    """Replace whole-word metric names with their values, longest name first.

    ``Math.<member>`` tokens are matched by the same pattern and left as they
    are, so a metric called ``round`` cannot rewrite ``Math.round``.
    """
    lookup = {key.lower(): value for key, value in values.items() if key}
    if not lookup:
        return formula

    names = sorted(lookup, key=len, reverse=True)
    alternation = "|".join(re.escape(name) for name in names)
    pattern = re.compile(rf"(?P<member>{_NAMESPACE_MEMBER})|(?<!\w)(?i:(?P<metric>{alternation}))(?!\w)")

    def _replace(match: "re.Match[str]") -> str:
        if match.group("member"):
            return match.group("member")
        return _format_literal(lookup[match.group("metric").lower()])

    return pattern.sub(_replace, formula)


def find_rejected_pattern(expression: str) -> Optional[str]:
    """Label of the first dangerous pattern in ``expression``, if any."""
    for label, pattern in REJECT_PATTERNS:
        if pattern.search(expression):
            return label
    return None


def has_only_allowed_characters(expression: str) -> bool:
    return bool(_ALLOWED_CHARS_RE.match(expression))


# ─────────────────────────────────────────────
# AST
# ─────────────────────────────────────────────


@dataclass(frozen=True)
class NumberNode:
    value: float


@dataclass(frozen=True)
class UnaryNode:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class BinaryNode:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class ConstantNode:
    name: str


@dataclass(frozen=True)
class CallNode:
    name: str
    args: Tuple["Node", ...]


Node = Union[NumberNode, UnaryNode, BinaryNode, ConstantNode, CallNode]


def tokenize(expression: str) -> List[Tuple[str, str]]:
    """Split an expression into ``(kind, text)`` tokens."""
    tokens: List[Tuple[str, str]] = []
    position = 0
    end = len(expression.rstrip())
    while position < end:
        match = _TOKEN_RE.match(expression, position)
        if not match or match.end() == position:
            raise FormulaError(f"unexpected character at position {position}: {expression[position]!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        position = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser over the token list.

    expr    := term (('+'|'-') term)*
    term    := unary (('*'|'/') unary)*
    unary   := ('+'|'-') unary | power
    power   := primary ('**' unary)?
    primary := NUMBER | '(' expr ')' | 'Math' '.' NAME [ '(' args ')' ]
    """

    def __init__(self, tokens: List[Tuple[str, str]]):
        self.tokens = tokens
        self.index = 0

    def _peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _next(self) -> Tuple[str, str]:
        token = self._peek()
        if token is None:
            raise FormulaError("unexpected end of formula")
        self.index += 1
        return token

    def _accept(self, text: str) -> bool:
        token = self._peek()
        if token is not None and token[0] == "op" and token[1] == text:
            self.index += 1
            return True
        return False

    def _expect(self, text: str) -> None:
        if not self._accept(text):
            token = self._peek()
            found = token[1] if token else "end of formula"
            raise FormulaError(f"expected {text!r}, found {found!r}")

    def parse(self) -> Node:
        if not self.tokens:
            raise FormulaError("formula is empty")
        node = self._expr()
        if self._peek() is not None:
            raise FormulaError(f"unexpected token {self._peek()[1]!r}")
        return node

    def _expr(self) -> Node:
        node = self._term()
        while True:
            if self._accept("+"):
                node = BinaryNode("+", node, self._term())
            elif self._accept("-"):
                node = BinaryNode("-", node, self._term())
            else:
                return node

    def _term(self) -> Node:
        node = self._unary()
        while True:
            if self._accept("*"):
                node = BinaryNode("*", node, self._unary())
            elif self._accept("/"):
                node = BinaryNode("/", node, self._unary())
            else:
                return node

    def _unary(self) -> Node:
        if self._accept("-"):
            return UnaryNode("-", self._unary())
        if self._accept("+"):
            return UnaryNode("+", self._unary())
        return self._power()

    def _power(self) -> Node:
        node = self._primary()
        if self._accept("**"):
            return BinaryNode("**", node, self._unary())
        return node

    def _primary(self) -> Node:
        kind, text = self._next()
        if kind == "number":
            return NumberNode(float(text))
        if kind == "op" and text == "(":
            node = self._expr()
            self._expect(")")
            return node
        if kind == "name":
            if text != NAMESPACE:
                raise FormulaError(f"unknown identifier {text!r}")
            self._expect(".")
            member_kind, member = self._next()
            if member_kind != "name":
                raise FormulaError(f"expected a {NAMESPACE} member, found {member!r}")
            if member in ALLOWED_CONSTANTS:
                return ConstantNode(member)
            if member in ALLOWED_FUNCTIONS:
                return CallNode(member, self._arguments())
            raise FormulaError(f"{NAMESPACE}.{member} is not available")
        raise FormulaError(f"unexpected token {text!r}")

    def _arguments(self) -> Tuple[Node, ...]:
        self._expect("(")
        args: List[Node] = []
        if self._accept(")"):
            return ()
        while True:
            args.append(self._expr())
            if self._accept(")"):
                return tuple(args)
            self._expect(",")


def parse_expression(expression: str) -> Node:
    """Parse a substituted expression into an AST."""
    return _Parser(tokenize(expression)).parse()


def evaluate_node(node: Node) -> float:
    """Evaluate an AST. Arithmetic errors propagate to the caller."""
    if isinstance(node, NumberNode):
        return node.value
    if isinstance(node, ConstantNode):
        return ALLOWED_CONSTANTS[node.name]
    if isinstance(node, UnaryNode):
        operand = evaluate_node(node.operand)
        return -operand if node.op == "-" else operand
    if isinstance(node, BinaryNode):
        left = evaluate_node(node.left)
        right = evaluate_node(node.right)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        if node.op == "/":
            return left / right
        return math.pow(left, right)
    if isinstance(node, CallNode):
        args = [evaluate_node(arg) for arg in node.args]
        return float(ALLOWED_FUNCTIONS[node.name](*args))
    raise FormulaError(f"unsupported node {node!r}")


def finalize_result(value: float) -> Number:
    """Whole numbers pass through as ``int``; others round half-up to 2 places."""
    if not math.isfinite(value):
        return 0
    if float(value).is_integer():
        return int(value)
    rounded = round_half_up(value * 100) / 100
    return int(rounded) if rounded.is_integer() else rounded


# ─────────────────────────────────────────────
# PUBLIC API
# ─────────────────────────────────────────────


def _prepare(formula: str, values: Mapping[str, Number]) -> str:
    """Substitute and screen a formula, raising ``FormulaError`` on rejection."""
    if not formula or not formula.strip():
        raise FormulaError("formula is empty")
    if len(formula) > settings.formula_max_length:
        raise FormulaError(
            f"formula is longer than {settings.formula_max_length} characters"
        )

    expression = substitute_metric_values(formula, values)

    rejected = find_rejected_pattern(expression)
    if rejected:
        raise FormulaError(f"formula contains a disallowed pattern ({rejected})")
    if not has_only_allowed_characters(expression):
        raise FormulaError("formula contains disallowed characters")
    return expression


def evaluate_formula(formula: str, values: Mapping[str, Number]) -> Number:
    """Evaluate ``formula`` against metric values; 0 on any failure."""
    try:
        expression = _prepare(formula, values)
        return finalize_result(evaluate_node(parse_expression(expression)))
    except FormulaError as e:
        logger.warning(f"Formula rejected: {e}", extra={"reason": str(e)})
    except (ArithmeticError, ValueError, TypeError) as e:
        logger.info(
            f"Formula evaluation failed: {type(e).__name__}: {e}",
            extra={"reason": type(e).__name__},
        )
    except RecursionError:
        logger.warning("Formula is nested too deeply", extra={"reason": "recursion"})
    return 0


def referenced_metrics(formula: str, known_names: Iterable[str]) -> List[str]:
    """Known metric keys that appear as whole words in ``formula``."""
    keys = sorted({name.lower() for name in known_names if name}, key=len, reverse=True)
    if not keys:
        return []
    alternation = "|".join(re.escape(key) for key in keys)
    pattern = re.compile(rf"{_NAMESPACE_MEMBER}|(?<!\w)(?i:({alternation}))(?!\w)")
    found: Dict[str, None] = {}
    for match in pattern.finditer(formula):
        if match.group(1):
            found.setdefault(match.group(1).lower(), None)
    return list(found)


def _sentence(message: str) -> str:
    return message[:1].upper() + message[1:]


def validate_formula(formula: str, known_names: List[str]) -> List[str]:
    """Human-readable problems with ``formula``; empty when it is usable.

    Every known name is substituted with ``1`` so the check covers syntax and
    unknown identifiers without depending on live counts.
    """
    try:
        expression = _prepare(formula, {name: 1 for name in known_names})
    except FormulaError as e:
        return [_sentence(str(e))]

    try:
        parse_expression(expression)
    except FormulaError as e:
        message = str(e)
        if message.startswith("unknown identifier"):
            message = f"{message} (not a metric name or {NAMESPACE} member)"
        return [_sentence(message)]
    except RecursionError:
        return ["Formula is nested too deeply"]
    return []
