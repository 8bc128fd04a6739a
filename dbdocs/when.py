"""Evaluation of ``--when`` conditions against the process environment.

A condition is a small expression such as ``$CI == 'true' and 'HOME' in Env``.
``$NAME`` reads an environment variable (an unset one reads as an empty
string), ``Env`` is the whole variable map and ``$env`` the root context.
"""

from __future__ import annotations

import operator
import os
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any


class ExpressionError(ValueError):
    """Raised when a condition cannot be parsed or evaluated."""


class _StringMap(dict):
    """Environment map; lookups of unset variables read as an empty string."""


_Node = Callable[[Mapping[str, Any]], Any]

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<number>\d+\.\d+|\d+)
    |(?P<string>"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')
    |(?P<name>\$?[A-Za-z_][A-Za-z0-9_]*|\$)
    |(?P<op>==|!=|<=|>=|&&|\|\||[-+*/%<>!()\[\].,])
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)

_KIND_LABELS = {"number": "Number", "string": "String", "name": "Identifier", "op": "Operator"}
_ROOT_NAMES = frozenset({"Env"})
_CONSTANTS = {"true": True, "false": False, "nil": None}
_COMPARISONS = ("==", "!=", "<", ">", "<=", ">=")
_WORD_OPERATORS = ("in", "matches", "contains", "startsWith", "endsWith")
_ORDERING = {"<": operator.lt, ">": operator.gt, "<=": operator.le, ">=": operator.ge}


@dataclass(frozen=True)
class _Token:
    kind: str
    value: str
    pos: int

    def describe(self) -> str:
        if self.kind == "eof":
            return "EOF"
        return f'{_KIND_LABELS[self.kind]}("{self.value}")'


def _location(text: str, pos: int) -> str:
    line = text.count("\n", 0, pos) + 1
    column = pos - (text.rfind("\n", 0, pos) + 1) + 1
    return f"({line}:{column})"


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        found = _TOKEN_RE.match(text, pos)
        if found is None:
            char = text[pos]
            if char in "'\"":
                raise ExpressionError(f"literal not terminated {_location(text, pos)}")
            raise ExpressionError(f"unrecognized character: {char!r} {_location(text, pos)}")
        kind = found.lastgroup
        if kind != "ws":
            tokens.append(_Token(kind, found.group(), pos))
        pos = found.end()
    tokens.append(_Token("eof", "", len(text)))
    return tokens


def _unquote(literal: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(0)), literal[1:-1])


def _type_name(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, str):
        return "string"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float64"
    if isinstance(value, _StringMap):
        return "map[string]string"
    if isinstance(value, Mapping):
        return "map[string]interface {}"
    if isinstance(value, list):
        return "[]interface {}"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_bool(value: Any, op: str) -> bool:
    if not isinstance(value, bool):
        raise ExpressionError(f"invalid operation: {op} ({_type_name(value)})")
    return value


def _equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _contains(container: Any, item: Any) -> bool:
    if isinstance(container, Mapping):
        return item in container.keys()
    if isinstance(container, list):
        return any(_equal(element, item) for element in container)
    raise ExpressionError(f"operator in not defined on {_type_name(container)}")


def _fetch(container: Any, key: Any) -> Any:
    if isinstance(container, _StringMap):
        if not isinstance(key, str):
            raise ExpressionError(f"cannot fetch {key} from {_type_name(container)}")
        return container.get(key, "")
    if isinstance(container, Mapping):
        try:
            return container[key]
        except KeyError:
            raise ExpressionError(f"cannot fetch {key} from {_type_name(container)}") from None
    if isinstance(container, list) and isinstance(key, int) and not isinstance(key, bool):
        try:
            return container[key]
        except IndexError:
            raise ExpressionError(f"index out of range: {key}") from None
    raise ExpressionError(f"cannot fetch {key} from {_type_name(container)}")


def _apply(op: str, left: Any, right: Any) -> Any:
    if op == "==":
        return _equal(left, right)
    if op == "!=":
        return not _equal(left, right)
    if op in ("in", "not in"):
        found = _contains(right, left)
        return found if op == "in" else not found
    mismatch = ExpressionError(
        f"invalid operation: {_type_name(left)} {op} {_type_name(right)}"
    )
    if op in _ORDERING:
        if (_is_number(left) and _is_number(right)) or (
            isinstance(left, str) and isinstance(right, str)
        ):
            return _ORDERING[op](left, right)
        raise mismatch
    if op in ("contains", "startsWith", "endsWith", "matches"):
        if not (isinstance(left, str) and isinstance(right, str)):
            raise mismatch
        if op == "contains":
            return right in left
        if op == "startsWith":
            return left.startswith(right)
        if op == "endsWith":
            return left.endswith(right)
        try:
            return re.search(right, left) is not None
        except re.error as exc:
            raise ExpressionError(f"invalid pattern {right!r}: {exc}") from None
    if op == "+" and isinstance(left, str) and isinstance(right, str):
        return left + right
    if not (_is_number(left) and _is_number(right)):
        raise mismatch
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        if right == 0:
            raise ExpressionError("division by zero")
        return left / right
    if op == "%":
        if not (isinstance(left, int) and isinstance(right, int)):
            raise mismatch
        if right == 0:
            raise ExpressionError("integer divide by zero")
        return left % right
    raise mismatch


def _constant(value: Any) -> _Node:
    return lambda ctx: value


def _binary(op: str, left: _Node, right: _Node) -> _Node:
    return lambda ctx: _apply(op, left(ctx), right(ctx))


def _logical(op: str, left: _Node, right: _Node) -> _Node:
    short_circuit = op == "or"

    def evaluate_node(ctx: Mapping[str, Any]) -> bool:
        if _require_bool(left(ctx), op) is short_circuit:
            return short_circuit
        return _require_bool(right(ctx), op)

    return evaluate_node


def _negate(operand: _Node) -> _Node:
    return lambda ctx: not _require_bool(operand(ctx), "not")


def _minus(operand: _Node) -> _Node:
    def evaluate_node(ctx: Mapping[str, Any]) -> Any:
        value = operand(ctx)
        if not _is_number(value):
            raise ExpressionError(f"invalid operation: -{_type_name(value)}")
        return -value

    return evaluate_node


def _member(container: _Node, key: _Node) -> _Node:
    return lambda ctx: _fetch(container(ctx), key(ctx))


def _env_lookup(key: str) -> _Node:
    return lambda ctx: ctx["Env"].get(key, "")


def _root_lookup(name: str) -> _Node:
    return lambda ctx: ctx[name]


def _list(items: list[_Node]) -> _Node:
    return lambda ctx: [item(ctx) for item in items]


class _Parser:
    def __init__(self, text: str) -> None:
        self._text = text
        self._tokens = _tokenize(text)
        self._pos = 0

    def parse(self) -> _Node:
        node = self._or()
        if self._peek().kind != "eof":
            raise self._unexpected(self._peek())
        return node

    def _peek(self, offset: int = 0) -> _Token:
        return self._tokens[min(self._pos + offset, len(self._tokens) - 1)]

    def _advance(self) -> _Token:
        token = self._peek()
        if token.kind != "eof":
            self._pos += 1
        return token

    def _at(self, kind: str, *values: str, offset: int = 0) -> bool:
        token = self._peek(offset)
        return token.kind == kind and (not values or token.value in values)

    def _expect_op(self, value: str) -> None:
        if not self._at("op", value):
            raise self._unexpected(self._peek())
        self._advance()

    def _unexpected(self, token: _Token) -> ExpressionError:
        return ExpressionError(
            f"unexpected token {token.describe()} {_location(self._text, token.pos)}"
        )

    def _or(self) -> _Node:
        left = self._and()
        while self._at("name", "or") or self._at("op", "||"):
            self._advance()
            left = _logical("or", left, self._and())
        return left

    def _and(self) -> _Node:
        left = self._comparison()
        while self._at("name", "and") or self._at("op", "&&"):
            self._advance()
            left = _logical("and", left, self._comparison())
        return left

    def _comparison(self) -> _Node:
        left = self._additive()
        while True:
            if self._at("op", *_COMPARISONS) or self._at("name", *_WORD_OPERATORS):
                op = self._advance().value
            elif self._at("name", "not") and self._at("name", "in", offset=1):
                self._advance()
                self._advance()
                op = "not in"
            else:
                return left
            left = _binary(op, left, self._additive())

    def _additive(self) -> _Node:
        left = self._multiplicative()
        while self._at("op", "+", "-"):
            op = self._advance().value
            left = _binary(op, left, self._multiplicative())
        return left

    def _multiplicative(self) -> _Node:
        left = self._unary()
        while self._at("op", "*", "/", "%"):
            op = self._advance().value
            left = _binary(op, left, self._unary())
        return left

    def _unary(self) -> _Node:
        if self._at("name", "not") or self._at("op", "!"):
            self._advance()
            return _negate(self._unary())
        if self._at("op", "-"):
            self._advance()
            return _minus(self._unary())
        if self._at("op", "+"):
            self._advance()
            return self._unary()
        return self._postfix()

    def _postfix(self) -> _Node:
        node = self._primary()
        while True:
            if self._at("op", "."):
                self._advance()
                token = self._advance()
                if token.kind != "name":
                    raise self._unexpected(token)
                node = _member(node, _constant(token.value))
            elif self._at("op", "["):
                self._advance()
                key = self._or()
                self._expect_op("]")
                node = _member(node, key)
            else:
                return node

    def _primary(self) -> _Node:
        token = self._advance()
        if token.kind == "number":
            value = float(token.value) if "." in token.value else int(token.value)
            return _constant(value)
        if token.kind == "string":
            return _constant(_unquote(token.value))
        if token.kind == "op" and token.value == "(":
            node = self._or()
            self._expect_op(")")
            return node
        if token.kind == "op" and token.value == "[":
            items = []
            if not self._at("op", "]"):
                items.append(self._or())
                while self._at("op", ","):
                    self._advance()
                    items.append(self._or())
            self._expect_op("]")
            return _list(items)
        if token.kind == "name":
            return self._name(token)
        raise self._unexpected(token)

    def _name(self, token: _Token) -> _Node:
        name = token.value
        if name in _CONSTANTS:
            return _constant(_CONSTANTS[name])
        if name == "$env":
            return lambda ctx: ctx
        if name.startswith("$"):
            return _env_lookup(name[1:])
        if name in _ROOT_NAMES:
            return _root_lookup(name)
        if name in ("and", "or", "not") or name in _WORD_OPERATORS:
            raise self._unexpected(token)
        raise ExpressionError(f"unknown name {name} {_location(self._text, token.pos)}")


def env_map() -> dict[str, str]:
    """Return the current process environment as a plain dict."""
    return dict(os.environ)


def evaluate(expression: str, env: Mapping[str, str]) -> Any:
    """Evaluate ``expression`` with ``env`` as the environment variables."""
    program = _Parser(expression).parse()
    return program({"Env": _StringMap(env)})


def is_allowed_to_execute(when: str, env: Mapping[str, str] | None = None) -> bool:
    """Tell whether the ``when`` condition holds; an empty condition always does."""
    if not when:
        return True
    result = evaluate(when, env_map() if env is None else env)
    if not isinstance(result, bool):
        raise ExpressionError(f"expected bool, but got {_type_name(result)}")
    return result