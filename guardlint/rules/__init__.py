"""Rule model and registry."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Callable, ClassVar, Dict, Iterable, Iterator, List, Mapping, Optional

from guardlint.errors import DuplicateRuleError, InvalidConfigError, UnknownRuleError
from guardlint.selector import Selector, compile_selector
from guardlint.severity import Severity
from guardlint.source import MISSING, Node, SourceUnit, resolve_path

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_$][\w$\-]*(?:\.[A-Za-z_$0-9][\w$\-]*)*)\s*\}\}")


@dataclass(frozen=True)
class MatchContext:
    """Bundle the node under evaluation with where it sits in its tree."""

    unit: SourceUnit
    node: Node
    parent: Optional[Node] = None
    field: Optional[str] = None
    index: int = -1


@dataclass(frozen=True)
class Match:
    """What a rule reports for one node, before it becomes a Finding."""

    message: str
    excerpt: Optional[str] = None
    label: Optional[str] = None


@dataclass(frozen=True)
class Param:
    """Declared rule parameter with its validator."""

    validate: Callable[[str, Any], Any]
    required: bool = False
    default: Any = None


@dataclass(frozen=True)
class Rule:
    """Selector-driven rule: one match per node the selector accepts."""

    id: str
    message: str
    selector: Selector = field(default_factory=Selector)
    severity: Severity = Severity.ERROR
    params: Mapping[str, Any] = field(default_factory=dict)

    type_name: ClassVar[str] = "pattern"
    PARAMS: ClassVar[Dict[str, Param]] = {}

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise InvalidConfigError("Rule id must be a non-empty string")
        if not isinstance(self.message, str):
            raise InvalidConfigError(f"Rule {self.id!r}: message must be a string")
        object.__setattr__(self, "selector", compile_selector(self.selector))
        object.__setattr__(self, "severity", Severity.from_config(self.severity))
        object.__setattr__(self, "params", self._validate_params(self.params or {}))

    def _validate_params(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(params, Mapping):
            raise InvalidConfigError(f"Rule {self.id!r}: params must be a mapping")
        unknown = sorted(set(params) - set(self.PARAMS))
        if unknown:
            raise InvalidConfigError(f"Rule {self.id!r}: unknown parameter(s) {', '.join(unknown)}")
        validated: Dict[str, Any] = {}
        for name, spec in self.PARAMS.items():
            if name in params:
                validated[name] = spec.validate(f"{self.id}.{name}", params[name])
            elif spec.required:
                raise InvalidConfigError(f"Rule {self.id!r}: missing required parameter {name!r}")
            else:
                validated[name] = spec.default
        return validated

    @property
    def enabled(self) -> bool:
        return self.severity.enabled

    def configure(self, params: Mapping[str, Any]) -> "Rule":
        """Return a copy with ``params`` merged over the current values."""

        if not isinstance(params, Mapping):
            raise InvalidConfigError(f"Rule {self.id!r}: params must be a mapping")
        return replace(self, params={**self.params, **params})

    def with_severity(self, severity: Any) -> "Rule":
        return replace(self, severity=Severity.from_config(severity))

    def check(self, context: MatchContext) -> Iterable[Match]:
        if not self.selector.matches(context.node):
            return []
        message = render_message(self.message, context.node)
        return [Match(message=message, excerpt=context.unit.excerpt(context.node.span))]


def render_message(template: str, node: Node) -> str:
    """Substitute ``{{attr.path}}`` placeholders with values from ``node``.

    Unresolvable placeholders are left as written.
    """

    def _substitute(match: "re.Match[str]") -> str:
        value = resolve_path(node, match.group(1))
        if value is MISSING or isinstance(value, (Node, list, tuple, dict)):
            return match.group(0)
        return str(value)

    return _PLACEHOLDER.sub(_substitute, template)


class RuleSet:
    """Ordered, id-unique collection of rules.

    Rules set to ``off`` stay registered so reports can list them, but the
    engine never evaluates them.
    """

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: Dict[str, Rule] = {}
        for rule in rules:
            self.add(rule)

    def add(self, rule: Rule) -> None:
        if rule.id in self._rules:
            raise DuplicateRuleError(rule.id)
        self._rules[rule.id] = rule

    def get(self, rule_id: str) -> Rule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise UnknownRuleError(rule_id) from None

    def configure(self, rule_id: str, params: Mapping[str, Any]) -> None:
        self._rules[rule_id] = self.get(rule_id).configure(params)

    def set_severity(self, rule_id: str, severity: Any) -> None:
        self._rules[rule_id] = self.get(rule_id).with_severity(severity)

    def enabled(self) -> List[Rule]:
        return [rule for rule in self._rules.values() if rule.enabled]

    def disabled_ids(self) -> List[str]:
        return [rule.id for rule in self._rules.values() if not rule.enabled]

    def ids(self) -> List[str]:
        return list(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[Rule]:
        return iter(list(self._rules.values()))

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleSet({self.ids()!r})"
