"""
Small expression language for derived columns (add_column).

The model writes expressions such as ``price * qty``,
``revenue / [totals].revenue_sum * 100`` or
``status == 'open' ? amount : 0``.  They are compiled in four passes and
never handed to eval/exec:

    1. substitute_scalars   ``[dataset].column`` → literal from a one-row dataset
    2. rewrite              string literals protected, column names
                            (longest first, whole word) → ``__COLUMN_<i>__``
    3. tokenize             → list[Token]
    4. Parser               Pratt parser → Node tree

``CompiledExpression.evaluate(row)`` walks the tree against one record.
Null operands, division by zero and non-finite results raise
``RowEvaluationError``; the caller turns those into a null cell.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from .errors import NotFoundError, ValidationError

_SCALAR_REF = re.compile(r"\[(\w+)\]\.(\w+)")
_STRING_LITERAL = re.compile(r"""(["'])(?:\\.|(?!\1).)*\1""")
_LITERAL_PLACEHOLDER = re.compile(r"__STRING_LITERAL_(\d+)__")
_COLUMN_PLACEHOLDER = re.compile(r"__COLUMN_(\d+)__")

_TOKEN_SPEC = [
    ("WS", r"\s+"),
    ("NUMBER", r"(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?"),
    ("STRING", r""""(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*'"""),
    ("COLUMN", r"__COLUMN_\d+__"),
    ("NAME", r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)?"),
    ("OP", r"===|!==|==|!=|<=|>=|&&|\|\||\*\*|[-+*/%<>!?:(),]"),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))

_KEYWORD_LITERALS = {
    "true": True, "True": True,
    "false": False, "False": False,
    "null": None, "None": None, "undefined": None,
}
_WORD_OPERATORS = {"and": "&&", "or": "||", "not": "!"}


class RowEvaluationError(Exception):
    """Evaluation failed for a single row (null operand, division by zero, ...)."""


class ExpressionSyntaxError(Exception):
    """The rewritten expression could not be tokenized or parsed."""


# ---------------------------------------------------------------------------
# Tokens and AST
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    pos: int


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class ColumnRef:
    name: str


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Any


@dataclass(frozen=True)
class Binary:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Logical:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Conditional:
    test: Any
    then: Any
    otherwise: Any


@dataclass(frozen=True)
class Call:
    func: str
    args: tuple


# ---------------------------------------------------------------------------
# Value helpers (JavaScript-flavoured loose semantics the model tends to assume)
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: Any) -> float:
    if value is None:
        raise RowEvaluationError("null operand")
    if isinstance(value, bool):
        return int(value)
    if _is_number(value):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise RowEvaluationError(f"'{value}' is not a number") from None
    raise RowEvaluationError(f"unsupported operand {value!r}")


def _stringify(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def truthy(value: Any) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def _loose_equal(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) != isinstance(right, str):
        try:
            return _to_number(left) == _to_number(right)
        except RowEvaluationError:
            return False
    return left == right


def _compare(op: str, left: Any, right: Any) -> bool:
    if left is None or right is None:
        raise RowEvaluationError("null operand")
    if not (isinstance(left, str) and isinstance(right, str)):
        left, right = _to_number(left), _to_number(right)
    if op == "<":
        return left < right
    if op == ">":
        return left > right
    if op == "<=":
        return left <= right
    return left >= right


def _arithmetic(op: str, left: Any, right: Any) -> Any:
    if left is None or right is None:
        raise RowEvaluationError("null operand")
    if op == "+" and (isinstance(left, str) or isinstance(right, str)):
        return _stringify(left) + _stringify(right)
    a, b = _to_number(left), _to_number(right)
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if op == "**":
        result = a ** b
        if isinstance(result, complex):
            raise RowEvaluationError("power has no real result")
        return result
    if b == 0:
        raise RowEvaluationError("division by zero")
    if op == "/":
        return a / b
    if isinstance(a, int) and isinstance(b, int):
        # remainder takes the sign of the dividend
        remainder = abs(a) % abs(b)
        return remainder if a >= 0 else -remainder
    return math.fmod(a, b)


def _js_round(x: float) -> float:
    return math.floor(x + 0.5)


def _checked_sqrt(x: float) -> float:
    if x < 0:
        raise RowEvaluationError("square root of a negative number")
    return math.sqrt(x)


def _checked_log(x: float) -> float:
    if x <= 0:
        raise RowEvaluationError("logarithm of a non-positive number")
    return math.log(x)


FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "round": _js_round,
    "floor": math.floor,
    "ceil": math.ceil,
    "sqrt": _checked_sqrt,
    "log": _checked_log,
    "min": min,
    "max": max,
}


# ---------------------------------------------------------------------------
# Rewriting
# ---------------------------------------------------------------------------

def _render_literal(value: Any) -> str:
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    if isinstance(value, bool):
        return "true" if value else "false"
    return repr(value)


def substitute_scalars(expression: str, resolve: Callable[[str, str], Any]) -> str:
    """Replace ``[dataset].column`` references with literal values.

    *resolve(dataset, column)* must return the scalar or raise.
    """
    def _replace(match: re.Match) -> str:
        value = resolve(match.group(1), match.group(2))
        if value is None:
            raise ValidationError(
                f'Scalar lookup failed: Value from "{match.group(1)}.{match.group(2)}" '
                "is null or undefined."
            )
        return _render_literal(value)

    return _SCALAR_REF.sub(_replace, expression)


def rewrite_columns(expression: str, column_names: Iterable[str]) -> tuple[str, list[str]]:
    """Rewrite column names into ``__COLUMN_<i>__`` placeholders.

    String literals are left untouched.  Longer names are matched first so
    ``amount_total`` wins over ``amount``.

    Returns:
        (rewritten expression, columns indexed by placeholder number)
    """
    literals: list[str] = []

    def _protect(match: re.Match) -> str:
        literals.append(match.group(0))
        return f"__STRING_LITERAL_{len(literals) - 1}__"

    protected = _STRING_LITERAL.sub(_protect, expression)

    names = sorted({c for c in column_names if c}, key=len, reverse=True)
    referenced: list[str] = []
    if names:
        alternation = "|".join(re.escape(n) for n in names)
        # a name followed by "(" is a function call, not a column
        column_re = re.compile(rf"(?<![\w])({alternation})(?![\w])(?!\s*\()")

        def _column(match: re.Match) -> str:
            referenced.append(match.group(1))
            return f"__COLUMN_{len(referenced) - 1}__"

        protected = column_re.sub(_column, protected)

    restored = _LITERAL_PLACEHOLDER.sub(lambda m: literals[int(m.group(1))], protected)
    return restored, referenced


def describe_rewritten(rewritten: str, referenced: list[str]) -> str:
    """Human-readable form of a rewritten expression, used in error messages."""
    return _COLUMN_PLACEHOLDER.sub(
        lambda m: f"row[{referenced[int(m.group(1))]!r}]", rewritten
    )


# ---------------------------------------------------------------------------
# Tokenizer and parser
# ---------------------------------------------------------------------------

def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ExpressionSyntaxError(f"Unexpected character {text[pos]!r} at position {pos}")
        kind = match.lastgroup
        if kind != "WS":
            tokens.append(Token(kind, match.group(0), pos))
        pos = match.end()
    tokens.append(Token("EOF", "", len(text)))
    return tokens


def _decode_string(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(
        r"\\(.)",
        lambda m: {"n": "\n", "t": "\t"}.get(m.group(1), m.group(1)),
        body,
    )


# Binding power per infix operator.
_INFIX = {
    "?": 1,
    "||": 2,
    "&&": 3,
    "==": 4, "!=": 4, "===": 4, "!==": 4,
    "<": 5, ">": 5, "<=": 5, ">=": 5,
    "+": 6, "-": 6,
    "*": 7, "/": 7, "%": 7,
    "**": 8,
}
_PREFIX_POWER = 9


class Parser:
    """Pratt parser producing the AST node classes above."""

    def __init__(self, tokens: list[Token], referenced: list[str]):
        self._tokens = tokens
        self._referenced = referenced
        self._pos = 0
        self.unknown_names: list[str] = []

    def parse(self):
        node = self._expression(0)
        if self._peek().kind != "EOF":
            tok = self._peek()
            raise ExpressionSyntaxError(f"Unexpected token {tok.value!r} at position {tok.pos}")
        return node

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _expect(self, value: str) -> Token:
        tok = self._advance()
        if tok.value != value:
            found = tok.value or "end of expression"
            raise ExpressionSyntaxError(f"Expected {value!r} but found {found!r} at position {tok.pos}")
        return tok

    def _operator(self, tok: Token) -> Optional[str]:
        if tok.kind == "OP":
            return tok.value
        if tok.kind == "NAME" and tok.value in _WORD_OPERATORS:
            return _WORD_OPERATORS[tok.value]
        return None

    def _expression(self, min_power: int):
        left = self._prefix()
        while True:
            op = self._operator(self._peek())
            power = _INFIX.get(op) if op else None
            if power is None or power <= min_power:
                break
            self._advance()
            if op == "?":
                then = self._expression(0)
                self._expect(":")
                otherwise = self._expression(power - 1)
                left = Conditional(left, then, otherwise)
            elif op in ("&&", "||"):
                left = Logical(op, left, self._expression(power))
            elif op == "**":
                left = Binary(op, left, self._expression(power - 1))
            else:
                left = Binary(op, left, self._expression(power))
        return left

    def _prefix(self):
        tok = self._advance()
        if tok.kind == "NUMBER":
            value = float(tok.value)
            return Literal(int(value) if value.is_integer() and "." not in tok.value and "e" not in tok.value.lower() else value)
        if tok.kind == "STRING":
            return Literal(_decode_string(tok.value))
        if tok.kind == "COLUMN":
            return ColumnRef(self._referenced[int(_COLUMN_PLACEHOLDER.match(tok.value).group(1))])
        op = self._operator(tok)
        if op in ("-", "+", "!"):
            return Unary(op, self._expression(_PREFIX_POWER))
        if tok.kind == "OP" and tok.value == "(":
            node = self._expression(0)
            self._expect(")")
            return node
        if tok.kind == "NAME":
            if tok.value in _KEYWORD_LITERALS:
                return Literal(_KEYWORD_LITERALS[tok.value])
            if self._peek().value == "(":
                return self._call(tok)
            self.unknown_names.append(tok.value)
            return Literal(None)
        found = tok.value or "end of expression"
        raise ExpressionSyntaxError(f"Unexpected {found!r} at position {tok.pos}")

    def _call(self, name_tok: Token):
        func = name_tok.value.removeprefix("Math.")
        if func not in FUNCTIONS:
            raise ExpressionSyntaxError(
                f"Unsupported function {name_tok.value!r}. Supported: {', '.join(sorted(FUNCTIONS))}"
            )
        self._expect("(")
        args = []
        if self._peek().value != ")":
            args.append(self._expression(0))
            while self._peek().value == ",":
                self._advance()
                args.append(self._expression(0))
        self._expect(")")
        if not args:
            raise ExpressionSyntaxError(f"Function {func!r} needs at least one argument")
        return Call(func, tuple(args))


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _eval(node, row: dict) -> Any:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, ColumnRef):
        return row.get(node.name)
    if isinstance(node, Binary):
        left, right = _eval(node.left, row), _eval(node.right, row)
        if node.op in ("==", "==="):
            return _loose_equal(left, right)
        if node.op in ("!=", "!=="):
            return not _loose_equal(left, right)
        if node.op in ("<", ">", "<=", ">="):
            return _compare(node.op, left, right)
        return _arithmetic(node.op, left, right)
    if isinstance(node, Logical):
        left = _eval(node.left, row)
        if node.op == "&&":
            return _eval(node.right, row) if truthy(left) else left
        return left if truthy(left) else _eval(node.right, row)
    if isinstance(node, Unary):
        value = _eval(node.operand, row)
        if node.op == "!":
            return not truthy(value)
        number = _to_number(value)
        return -number if node.op == "-" else number
    if isinstance(node, Conditional):
        branch = node.then if truthy(_eval(node.test, row)) else node.otherwise
        return _eval(branch, row)
    if isinstance(node, Call):
        args = [_to_number(_eval(a, row)) for a in node.args]
        return FUNCTIONS[node.func](*args)
    raise TypeError(f"Unknown expression node {type(node).__name__}")


@dataclass
class CompiledExpression:
    """A parsed expression ready for per-row evaluation."""

    source: str
    rewritten: str
    tree: Any
    columns: list[str] = field(default_factory=list)

    def evaluate(self, row: dict) -> Any:
        """Evaluate against *row*.

        Raises:
            RowEvaluationError: the value for this row is undefined.
        """
        try:
            value = _eval(self.tree, row)
        except RowEvaluationError:
            raise
        except (TypeError, ValueError, ArithmeticError) as e:
            raise RowEvaluationError(str(e)) from e
        if value is None:
            raise RowEvaluationError("result is null")
        if isinstance(value, float) and not math.isfinite(value):
            raise RowEvaluationError("result is not finite")
        return value


def compile_expression(
    expression: str,
    column_names: Iterable[str],
    resolve_scalar: Callable[[str, str], Any],
    dataset_name: str = "",
) -> CompiledExpression:
    """Compile *expression* against a dataset's columns.

    Raises:
        ValidationError: the expression cannot be parsed, or a scalar
            reference cannot be resolved.
        NotFoundError: the expression names something that is neither a
            column nor a supported keyword.
    """
    column_names = list(column_names)
    substituted = substitute_scalars(expression, resolve_scalar)
    rewritten, referenced = rewrite_columns(substituted, column_names)
    readable = describe_rewritten(rewritten, referenced)
    try:
        parser = Parser(tokenize(rewritten), referenced)
        tree = parser.parse()
    except ExpressionSyntaxError as e:
        raise ValidationError(
            f'Invalid expression format for: "{expression}". Please check the syntax. '
            f'The final evaluated expression was "{readable}". Error: {e}'
        ) from e
    if parser.unknown_names:
        where = f' in dataset "{dataset_name}"' if dataset_name else ""
        raise NotFoundError(
            f'Column "{parser.unknown_names[0]}" does not exist{where}. '
            f"Available columns: {', '.join(column_names)}"
        )
    return CompiledExpression(
        source=expression,
        rewritten=readable,
        tree=tree,
        columns=sorted(set(referenced)),
    )
