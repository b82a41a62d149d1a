"""Declarative node selectors.

Two notations compile to the same :class:`Selector`:

* a compact esquery-style string::

      CallExpression[callee.property.name=/^(execute|query)$/]:has(TemplateLiteral[expressions.length>0])

* a structured mapping, convenient in YAML documents::

      kind: CallExpression
      attributes:
        - {path: callee.property.name, matches: "^(execute|query)$"}
      contains:
        - "TemplateLiteral[expressions.length>0]"

A selector is a conjunction: kind equality, attribute predicates and
``:has(...)`` containment (a strict descendant at any depth). Evaluation order
does not affect the result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Set, Tuple

from .errors import InvalidConfigError
from .source import MISSING, Node, resolve_path

OPERATORS = ("!=", ">=", "<=", "=", ">", "<")
_NUMBER_PATTERN = re.compile(r"-?\d+(\.\d+)?\Z")
_IDENT_CHARS = re.compile(r"[A-Za-z0-9_$\-]")


class SelectorSyntaxError(InvalidConfigError):
    def __init__(self, text: str, position: int, reason: str) -> None:
        super().__init__(f"Invalid selector {text!r} at position {position}: {reason}")
        self.text = text
        self.position = position


@dataclass(frozen=True)
class AttributePredicate:
    """Constraint on the value found at ``path``.

    ``operator`` is None for a presence test. ``value`` is a compiled pattern
    for regex comparisons.
    """

    path: str
    operator: Optional[str] = None
    value: Any = None

    def test(self, node: Node) -> bool:
        actual = resolve_path(node, self.path)
        if self.operator is None:
            return actual is not MISSING and actual is not None
        if isinstance(self.value, re.Pattern):
            found = isinstance(actual, str) and self.value.search(actual) is not None
            return found if self.operator == "=" else not found
        if self.operator == "=":
            return _equals(actual, self.value)
        if self.operator == "!=":
            return not _equals(actual, self.value)
        if not _is_number(actual) or not _is_number(self.value):
            return False
        if self.operator == ">":
            return actual > self.value
        if self.operator == ">=":
            return actual >= self.value
        if self.operator == "<":
            return actual < self.value
        return actual <= self.value


@dataclass(frozen=True)
class Selector:
    """Conjunction of kind, attribute and containment predicates."""

    kind: Optional[str] = None
    predicates: Tuple[AttributePredicate, ...] = ()
    contains: Tuple["Selector", ...] = ()
    source: str = ""

    def matches(self, node: Node) -> bool:
        if node.kind is None:
            return False
        if self.kind is not None and node.kind != self.kind:
            return False
        if not all(predicate.test(node) for predicate in self.predicates):
            return False
        return all(_has_descendant(node, inner) for inner in self.contains)

    def __str__(self) -> str:
        return self.source or _render(self)


def compile_selector(spec: Any) -> Selector:
    """Build a selector from a string or a structured mapping."""

    if isinstance(spec, Selector):
        return spec
    if isinstance(spec, str):
        return parse_selector(spec)
    if isinstance(spec, Mapping):
        return _from_mapping(spec)
    raise InvalidConfigError(f"Selector must be a string or mapping, got {type(spec).__name__}")


def parse_selector(text: str) -> Selector:
    parser = _Parser(text)
    selector = parser.parse_compound()
    parser.skip_whitespace()
    if not parser.at_end():
        parser.fail("unexpected trailing input")
    return Selector(selector.kind, selector.predicates, selector.contains, source=text.strip())


# ----------------------------------------------------------------------
# Matching helpers
# ----------------------------------------------------------------------
def _has_descendant(root: Node, selector: Selector) -> bool:
    seen: Set[int] = {id(root)}
    stack = [child for _, _, child in root.iter_children()]
    while stack:
        node = stack.pop()
        if not isinstance(node, Node) or id(node) in seen:
            continue
        seen.add(id(node))
        if selector.matches(node):
            return True
        stack.extend(child for _, _, child in node.iter_children())
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equals(actual: Any, expected: Any) -> bool:
    if actual is MISSING:
        return False
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    if _is_number(actual) and _is_number(expected):
        return actual == expected
    return type(actual) is type(expected) and actual == expected


def _render(selector: Selector) -> str:
    parts = [selector.kind or "*"]
    for predicate in selector.predicates:
        if predicate.operator is None:
            parts.append(f"[{predicate.path}]")
        elif isinstance(predicate.value, re.Pattern):
            parts.append(f"[{predicate.path}{predicate.operator}/{predicate.value.pattern}/]")
        else:
            parts.append(f"[{predicate.path}{predicate.operator}{predicate.value!r}]")
    for inner in selector.contains:
        parts.append(f":has({inner})")
    return "".join(parts)


# ----------------------------------------------------------------------
# Structured form
# ----------------------------------------------------------------------
_MAPPING_OPERATORS = {
    "equals": "=",
    "not_equals": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
}


def _from_mapping(spec: Mapping[str, Any]) -> Selector:
    unknown = set(spec) - {"kind", "attributes", "contains"}
    if unknown:
        raise InvalidConfigError(f"Unknown selector fields: {', '.join(sorted(unknown))}")
    kind = spec.get("kind")
    if kind is not None and (not isinstance(kind, str) or not kind):
        raise InvalidConfigError("Selector kind must be a non-empty string")
    if kind == "*":
        kind = None

    predicates: List[AttributePredicate] = []
    for entry in spec.get("attributes") or []:
        predicates.append(_predicate_from_mapping(entry))

    contains = spec.get("contains") or []
    if isinstance(contains, (str, Mapping)):
        contains = [contains]
    inner = tuple(compile_selector(item) for item in contains)
    return Selector(kind=kind, predicates=tuple(predicates), contains=inner)


def _predicate_from_mapping(entry: Any) -> AttributePredicate:
    if not isinstance(entry, Mapping) or not isinstance(entry.get("path"), str):
        raise InvalidConfigError(f"Attribute predicate needs a 'path': {entry!r}")
    path = entry["path"]
    ops = [key for key in entry if key != "path"]
    if not ops:
        return AttributePredicate(path)
    if len(ops) > 1:
        raise InvalidConfigError(f"Attribute predicate for {path!r} has several operators: {ops}")
    op = ops[0]
    value = entry[op]
    if op in ("matches", "not_matches"):
        return AttributePredicate(path, "=" if op == "matches" else "!=", _compile_regex(str(value), ""))
    if op not in _MAPPING_OPERATORS:
        raise InvalidConfigError(f"Unknown attribute operator {op!r} for {path!r}")
    operator = _MAPPING_OPERATORS[op]
    if operator in (">", ">=", "<", "<=") and not _is_number(value):
        raise InvalidConfigError(f"Operator {op!r} for {path!r} needs a number")
    return AttributePredicate(path, operator, value)


def _compile_regex(pattern: str, flags: str) -> re.Pattern:
    value = 0
    for flag in flags:
        if flag == "i":
            value |= re.IGNORECASE
        elif flag == "m":
            value |= re.MULTILINE
        elif flag == "s":
            value |= re.DOTALL
        elif flag != "u":
            raise InvalidConfigError(f"Unsupported regex flag {flag!r}")
    try:
        return re.compile(pattern, value)
    except re.error as exc:
        raise InvalidConfigError(f"Invalid regex /{pattern}/: {exc}") from exc


# ----------------------------------------------------------------------
# String form
# ----------------------------------------------------------------------
class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def fail(self, reason: str) -> None:
        raise SelectorSyntaxError(self.text, self.pos, reason)

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_whitespace(self) -> None:
        while self.peek().isspace():
            self.pos += 1

    def expect(self, char: str) -> None:
        if self.peek() != char:
            self.fail(f"expected {char!r}")
        self.pos += 1

    def parse_compound(self) -> Selector:
        self.skip_whitespace()
        kind: Optional[str] = None
        wildcard = self.peek() == "*"
        if wildcard:
            self.pos += 1
        elif self.peek() and _IDENT_CHARS.match(self.peek()):
            kind = self.read_identifier()

        predicates: List[AttributePredicate] = []
        contains: List[Selector] = []
        while True:
            char = self.peek()
            if char == "[":
                predicates.append(self.parse_attribute())
            elif char == ":":
                contains.append(self.parse_has())
            else:
                break
        if kind is None and not wildcard and not predicates and not contains:
            self.fail("expected a node kind, '*', '[' or ':has('")
        return Selector(kind=kind, predicates=tuple(predicates), contains=tuple(contains))

    def parse_has(self) -> Selector:
        start = self.pos
        self.expect(":")
        name = self.read_identifier()
        if name != "has":
            self.pos = start
            self.fail(f"unsupported pseudo-class ':{name}'")
        self.expect("(")
        inner = self.parse_compound()
        self.skip_whitespace()
        self.expect(")")
        return inner

    def parse_attribute(self) -> AttributePredicate:
        self.expect("[")
        self.skip_whitespace()
        path = self.read_path()
        self.skip_whitespace()
        if self.peek() == "]":
            self.pos += 1
            return AttributePredicate(path)
        operator = self.read_operator()
        self.skip_whitespace()
        value = self.read_value()
        self.skip_whitespace()
        self.expect("]")
        if operator in (">", ">=", "<", "<=") and not _is_number(value):
            self.fail(f"operator {operator!r} needs a number")
        return AttributePredicate(path, operator, value)

    def read_identifier(self) -> str:
        start = self.pos
        while self.peek() and _IDENT_CHARS.match(self.peek()):
            self.pos += 1
        if start == self.pos:
            self.fail("expected an identifier")
        return self.text[start:self.pos]

    def read_path(self) -> str:
        parts = [self.read_identifier()]
        while self.peek() == ".":
            self.pos += 1
            parts.append(self.read_identifier())
        return ".".join(parts)

    def read_operator(self) -> str:
        for operator in OPERATORS:
            if self.text.startswith(operator, self.pos):
                self.pos += len(operator)
                return operator
        self.fail("expected a comparison operator")
        return ""  # pragma: no cover

    def read_value(self) -> Any:
        char = self.peek()
        if char in ("'", '"'):
            return self.read_string(char)
        if char == "/":
            return self.read_regex()
        start = self.pos
        while self.peek() and self.peek() not in "]" and not self.peek().isspace():
            self.pos += 1
        raw = self.text[start:self.pos]
        if not raw:
            self.fail("expected a value")
        if _NUMBER_PATTERN.match(raw):
            return float(raw) if "." in raw else int(raw)
        literals = {"true": True, "false": False, "null": None}
        return literals.get(raw, raw)

    def read_string(self, quote: str) -> str:
        self.pos += 1
        chars: List[str] = []
        while True:
            char = self.peek()
            if not char:
                self.fail("unterminated string")
            self.pos += 1
            if char == "\\":
                chars.append(self.peek())
                self.pos += 1
            elif char == quote:
                return "".join(chars)
            else:
                chars.append(char)

    def read_regex(self) -> re.Pattern:
        self.pos += 1
        chars: List[str] = []
        while True:
            char = self.peek()
            if not char:
                self.fail("unterminated regex")
            self.pos += 1
            if char == "\\" and self.peek() == "/":
                chars.append("/")
                self.pos += 1
            elif char == "\\":
                chars.append(char + self.peek())
                self.pos += 1
            elif char == "/":
                break
            else:
                chars.append(char)
        start = self.pos
        while self.peek().isalpha():
            self.pos += 1
        return _compile_regex("".join(chars), self.text[start:self.pos])
