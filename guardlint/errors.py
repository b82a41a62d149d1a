"""Exception taxonomy for rule configuration and analysis."""

from __future__ import annotations


class GuardlintError(Exception):
    """Base class for all linter errors."""


class ConfigError(GuardlintError):
    """Raised while building a RuleSet; fatal to the run."""


class DuplicateRuleError(ConfigError):
    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Rule {rule_id!r} is already registered")
        self.rule_id = rule_id


class UnknownRuleError(ConfigError):
    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Unknown rule {rule_id!r}")
        self.rule_id = rule_id


class InvalidConfigError(ConfigError):
    """A rule parameter, selector or document field is missing or out of range."""


class MalformedUnitError(GuardlintError):
    """A source unit is missing required structural fields.

    Only the offending unit is skipped; the rest of a batch is still analyzed.
    """

    def __init__(self, unit_id: object, reason: str) -> None:
        super().__init__(f"Malformed source unit {unit_id!r}: {reason}")
        self.unit_id = unit_id
        self.reason = reason


class Cancelled(GuardlintError):
    """The batch was cancelled before this unit was started."""
