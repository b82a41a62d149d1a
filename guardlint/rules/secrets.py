"""Detect hardcoded secrets in string literals.

A literal is reported under a label when either

* its Shannon entropy reaches ``tolerance`` and the name it is assigned to
  (variable, attribute, object key or keyword) matches the label's ``key``
  pattern, or
* the key/value pair it belongs to, or the literal itself, matches the label's
  credential ``pattern``. This path ignores entropy so that short, weak
  passwords are still caught.

Each label reports separately, so one literal can produce several findings.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple

from guardlint.errors import InvalidConfigError
from guardlint.source import resolve_path

from . import Match, MatchContext, Param, Rule, render_message

DEFAULT_TOLERANCE = 4.2
DEFAULT_LITERAL_KINDS = ("Literal", "StringLiteral", "Constant", "TemplateElement")
DEFAULT_PATTERNS: Dict[str, Dict[str, str]] = {
    "Hardcoded Password": {
        "pattern": r"password\s*[:=]\s*[\"'][^\"']{3,}[\"']",
        "key": r"passw(or)?d|pwd",
    },
    "API Key": {
        "pattern": r"(api[_-]?key|apikey)\s*[:=]\s*[\"'][^\"']{10,}[\"']",
        "key": r"api[_-]?key",
    },
    "Database Password": {
        "pattern": r"(db[_-]?password|database[_-]?password)\s*[:=]\s*[\"'][^\"']{3,}[\"']",
        "key": r"(db|database)[_-]?passw(or)?d",
    },
    "Generic Secret": {
        "pattern": r"(secret|token|key)\s*[:=]\s*[\"'][^\"']{8,}[\"']",
        "key": r"secret|token|key|credential",
    },
}
DEFAULT_MESSAGE = "Potential hardcoded secret ({{label}}) assigned to '{{name}}'"

# (parent kind, field holding the literal) -> paths naming the assignment target
TARGET_PATHS: Dict[Tuple[str, str], Tuple[str, ...]] = {
    ("VariableDeclarator", "init"): ("id.name",),
    ("Property", "value"): ("key.name", "key.value"),
    ("DictItem", "value"): ("key.value",),
    ("PropertyDefinition", "value"): ("key.name", "key.value"),
    ("AssignmentExpression", "right"): ("left.name", "left.property.name", "left.property.value"),
    ("AssignmentPattern", "right"): ("left.name",),
    ("Assign", "value"): ("targets.0.id", "targets.0.attr", "targets.0.slice.value"),
    ("AnnAssign", "value"): ("target.id", "target.attr"),
    ("keyword", "value"): ("arg",),
}
# Parents whose span covers exactly one key/value pair.
PAIR_KINDS = {kind for kind, _ in TARGET_PATHS}


@dataclass(frozen=True)
class SecretPattern:
    label: str
    pattern: "re.Pattern[str]"
    key: Optional["re.Pattern[str]"] = None


def shannon_entropy(value: str) -> float:
    """Return the base-2 Shannon entropy of ``value`` in bits per character."""

    if not value:
        return 0.0
    length = len(value)
    entropy = -sum((count / length) * math.log2(count / length) for count in Counter(value).values())
    return entropy if entropy > 0 else 0.0


def _validate_tolerance(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfigError(f"{name} must be a positive number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise InvalidConfigError(f"{name} must be a positive number, got {value!r}")
    return float(value)


def _validate_patterns(name: str, value: Any) -> Dict[str, Dict[str, Optional[str]]]:
    if not isinstance(value, Mapping):
        raise InvalidConfigError(f"{name} must map labels to regular expressions")
    patterns: Dict[str, Dict[str, Optional[str]]] = {}
    for label, entry in value.items():
        if isinstance(entry, str):
            entry = {"pattern": entry}
        if not isinstance(label, str) or not label or not isinstance(entry, Mapping):
            raise InvalidConfigError(f"{name}: invalid entry {label!r}")
        if not isinstance(entry.get("pattern"), str):
            raise InvalidConfigError(f"{name}: entry {label!r} needs a 'pattern'")
        key = entry.get("key")
        if key is not None and not isinstance(key, str):
            raise InvalidConfigError(f"{name}: 'key' of {label!r} must be a string")
        for regex in (entry["pattern"], key):
            if regex is None:
                continue
            try:
                re.compile(regex)
            except re.error as exc:
                raise InvalidConfigError(f"{name}: invalid regex for {label!r}: {exc}") from exc
        patterns[label] = {"pattern": entry["pattern"], "key": key}
    return patterns


def _validate_kinds(name: str, value: Any) -> Tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)) or not value:
        raise InvalidConfigError(f"{name} must be a non-empty list of node kinds")
    if not all(isinstance(kind, str) and kind for kind in value):
        raise InvalidConfigError(f"{name} must contain non-empty strings")
    return tuple(value)


@dataclass(frozen=True)
class SecretEntropyRule(Rule):
    """Entropy plus regex corroboration over string literals."""

    message: str = DEFAULT_MESSAGE
    _patterns: Tuple[SecretPattern, ...] = field(default=(), init=False, repr=False, compare=False)

    type_name: ClassVar[str] = "secret-entropy"
    PARAMS: ClassVar[Dict[str, Param]] = {
        "tolerance": Param(_validate_tolerance, default=DEFAULT_TOLERANCE),
        "additional_regexes": Param(_validate_patterns, default={}),
        "literal_kinds": Param(_validate_kinds, default=DEFAULT_LITERAL_KINDS),
    }

    def __post_init__(self) -> None:
        super().__post_init__()
        merged: Dict[str, Dict[str, Optional[str]]] = {label: dict(entry) for label, entry in DEFAULT_PATTERNS.items()}
        for label, entry in self.params["additional_regexes"].items():
            overrides = {name: value for name, value in entry.items() if value is not None}
            merged[label] = {**merged.get(label, {}), **overrides}
        compiled = []
        for label, entry in merged.items():
            key = entry.get("key")
            compiled.append(
                SecretPattern(
                    label=label,
                    pattern=re.compile(entry["pattern"], re.IGNORECASE),
                    key=re.compile(key, re.IGNORECASE) if key else None,
                )
            )
        object.__setattr__(self, "_patterns", tuple(compiled))

    @property
    def tolerance(self) -> float:
        return self.params["tolerance"]

    @property
    def labels(self) -> List[str]:
        return [pattern.label for pattern in self._patterns]

    def check(self, context: MatchContext) -> List[Match]:
        node = context.node
        if node.kind not in self.params["literal_kinds"]:
            return []
        value = literal_text(node)
        if not value:
            return []
        if not self.selector.matches(node):
            return []

        name = target_name(context)
        entropy = shannon_entropy(value)
        texts = [value]
        if name:
            texts.extend(self._pair_texts(context, name, value))

        matches: List[Match] = []
        for secret in self._patterns:
            by_entropy = (
                name is not None
                and secret.key is not None
                and entropy >= self.tolerance
                and secret.key.search(name) is not None
            )
            by_pattern = any(secret.pattern.search(text) for text in texts)
            if not (by_entropy or by_pattern):
                continue
            message = (
                self.message.replace("{{label}}", secret.label)
                .replace("{{name}}", name or "literal")
                .replace("{{entropy}}", f"{entropy:.2f}")
            )
            matches.append(
                Match(
                    message=render_message(message, node),
                    excerpt=mask(value),
                    label=secret.label,
                )
            )
        return matches

    def _pair_texts(self, context: MatchContext, name: str, value: str) -> List[str]:
        texts = [f'{name} = "{value}"']
        parent = context.parent
        if parent is not None and parent.kind in PAIR_KINDS and parent.span is not None:
            raw = context.unit.text[parent.span.start:parent.span.end]
            if raw:
                texts.insert(0, raw)
        return texts


def target_name(context: MatchContext) -> Optional[str]:
    """Return the variable, attribute or key name a literal is assigned to."""

    parent = context.parent
    if parent is None or parent.kind is None:
        return None
    for path in TARGET_PATHS.get((parent.kind, context.field or ""), ()):
        candidate = _resolve_name(parent, path)
        if candidate:
            return candidate
    return None


def _resolve_name(parent: Any, path: str) -> Optional[str]:
    value = resolve_path(parent, path)
    return value if isinstance(value, str) else None


def mask(value: str) -> str:
    """Keep the first three characters of a secret for reports."""

    if len(value) <= 3:
        return "*" * len(value)
    return value[:3] + "*" * min(len(value) - 3, 8)


def literal_text(node: Any) -> Optional[str]:
    """Return the string carried by a literal node, or ``None``.

    ESTree ``TemplateElement`` nodes hold ``{"raw", "cooked"}``; ``cooked`` is
    ``null`` for invalid escapes, in which case the raw text is used.
    """

    value = node.attributes.get("value")
    if isinstance(value, Mapping):
        value = value.get("cooked") if isinstance(value.get("cooked"), str) else value.get("raw")
    return value if isinstance(value, str) and value else None
