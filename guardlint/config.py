"""Build a RuleSet from a declarative configuration document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type

import yaml

from .errors import InvalidConfigError
from .rules import Rule, RuleSet
from .rules.secrets import SecretEntropyRule
from .utils.fileio import read_document

LOGGER = logging.getLogger(__name__)

RULE_TYPES: Dict[str, Type[Rule]] = {
    Rule.type_name: Rule,
    SecretEntropyRule.type_name: SecretEntropyRule,
}
BUNDLED_PACKS = ("recommended", "python")
DEFAULT_EXTENDS = ("recommended", "python")
DEFINITION_KEYS = {"type", "selector", "message"}
ENTRY_KEYS = DEFINITION_KEYS | {"severity", "params"}
DOCUMENT_KEYS = {"extends", "settings", "rules"}


@dataclass
class LintConfig:
    """RuleSet plus run settings."""

    ruleset: RuleSet
    workers: int = 1
    errors_fatal: bool = True


def load_config(path: Optional[str] = None) -> LintConfig:
    """Load a YAML/JSON configuration file, or the bundled defaults when ``path`` is None."""

    if path is None:
        return build_config({"extends": list(DEFAULT_EXTENDS)})
    config_path = Path(path)
    if not config_path.is_file():
        raise InvalidConfigError(f"Config file not found: {config_path}")
    try:
        document = read_document(config_path)
    except (yaml.YAMLError, ValueError) as exc:
        raise InvalidConfigError(f"Cannot parse {config_path}: {exc}") from exc
    except OSError as exc:
        raise InvalidConfigError(f"Cannot read {config_path}: {exc}") from exc
    LOGGER.debug("Loaded configuration from %s", config_path)
    return build_config(document or {})


def build_config(document: Mapping[str, Any]) -> LintConfig:
    """Build the RuleSet described by ``document``.

    Packs named in ``extends`` are added first, in order. Entries under
    ``rules`` either define a new rule (they carry ``selector``, ``message`` or
    ``type``) or adjust the severity and params of an existing one.
    """

    if not isinstance(document, Mapping):
        raise InvalidConfigError("Configuration must be a mapping")
    unknown = set(document) - DOCUMENT_KEYS
    if unknown:
        raise InvalidConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    ruleset = RuleSet()
    for pack in _as_list(document.get("extends")):
        for rule in load_pack(pack):
            ruleset.add(rule)

    rules = document.get("rules") or {}
    if not isinstance(rules, Mapping):
        raise InvalidConfigError("'rules' must map rule ids to settings")
    for rule_id, entry in rules.items():
        _apply_entry(ruleset, str(rule_id), entry)

    settings = document.get("settings") or {}
    if not isinstance(settings, Mapping):
        raise InvalidConfigError("'settings' must be a mapping")
    return LintConfig(ruleset=ruleset, **_validate_settings(settings))


def load_pack(name: str) -> List[Rule]:
    """Return the rules of a bundled pack, in file order."""

    if name not in BUNDLED_PACKS:
        raise InvalidConfigError(f"Unknown rule pack {name!r}; available: {', '.join(BUNDLED_PACKS)}")
    text = resources.files("guardlint").joinpath("rulesets", f"{name}.yaml").read_text(encoding="utf-8")
    document = yaml.safe_load(text) or {}
    return [build_rule(rule_id, entry) for rule_id, entry in (document.get("rules") or {}).items()]


def build_rule(rule_id: str, entry: Mapping[str, Any]) -> Rule:
    if not isinstance(entry, Mapping):
        raise InvalidConfigError(f"Rule {rule_id!r} must be defined by a mapping")
    unknown = set(entry) - ENTRY_KEYS
    if unknown:
        raise InvalidConfigError(f"Rule {rule_id!r}: unknown fields {', '.join(sorted(unknown))}")
    type_name = entry.get("type", Rule.type_name)
    rule_class = RULE_TYPES.get(type_name)
    if rule_class is None:
        raise InvalidConfigError(f"Rule {rule_id!r}: unknown type {type_name!r}")

    kwargs: Dict[str, Any] = {
        "id": rule_id,
        "severity": entry.get("severity", "error"),
        "params": entry.get("params") or {},
    }
    if "selector" in entry:
        kwargs["selector"] = entry["selector"]
    elif rule_class is Rule:
        raise InvalidConfigError(f"Rule {rule_id!r}: missing selector")
    if "message" in entry:
        kwargs["message"] = entry["message"]
    elif rule_class is Rule:
        raise InvalidConfigError(f"Rule {rule_id!r}: missing message")
    return rule_class(**kwargs)


def _apply_entry(ruleset: RuleSet, rule_id: str, entry: Any) -> None:
    if isinstance(entry, Mapping) and DEFINITION_KEYS & set(entry):
        ruleset.add(build_rule(rule_id, entry))
        return

    severity: Any = None
    params: Optional[Mapping[str, Any]] = None
    if isinstance(entry, (list, tuple)):
        if not 1 <= len(entry) <= 2:
            raise InvalidConfigError(f"Rule {rule_id!r}: expected [severity] or [severity, params]")
        severity = entry[0]
        params = entry[1] if len(entry) == 2 else None
    elif isinstance(entry, Mapping):
        unknown = set(entry) - {"severity", "params"}
        if unknown:
            raise InvalidConfigError(f"Rule {rule_id!r}: unknown fields {', '.join(sorted(unknown))}")
        severity = entry.get("severity")
        params = entry.get("params")
    else:
        severity = entry

    if severity is not None:
        ruleset.set_severity(rule_id, severity)
    if params is not None:
        ruleset.configure(rule_id, params)
    if severity is None and params is None:
        ruleset.get(rule_id)


def _validate_settings(settings: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(settings) - {"workers", "errors_fatal"}
    if unknown:
        raise InvalidConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
    validated: Dict[str, Any] = {}
    if "workers" in settings:
        workers = settings["workers"]
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            raise InvalidConfigError(f"settings.workers must be a positive integer, got {workers!r}")
        validated["workers"] = workers
    if "errors_fatal" in settings:
        if not isinstance(settings["errors_fatal"], bool):
            raise InvalidConfigError("settings.errors_fatal must be true or false")
        validated["errors_fatal"] = settings["errors_fatal"]
    return validated


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
        return list(value)
    raise InvalidConfigError("'extends' must be a pack name or a list of pack names")
