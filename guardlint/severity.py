"""Severity definitions for rules and findings."""

from __future__ import annotations

from enum import Enum

from .errors import InvalidConfigError


class Severity(str, Enum):
    """Enumerate the supported rule severities."""

    ERROR = "error"
    WARNING = "warning"
    OFF = "off"

    @property
    def enabled(self) -> bool:
        return self is not Severity.OFF

    @classmethod
    def from_config(cls, value: object) -> "Severity":
        """Normalize a configured severity.

        Accepts the names used in eslint-style documents (``error``, ``warn``,
        ``warning``, ``off``) and their numeric forms (2, 1, 0).
        """

        if isinstance(value, Severity):
            return value
        if value is False:
            # YAML 1.1 loads a bare ``off`` as false
            return cls.OFF
        aliases = {
            "error": cls.ERROR,
            "warn": cls.WARNING,
            "warning": cls.WARNING,
            "off": cls.OFF,
            2: cls.ERROR,
            1: cls.WARNING,
            0: cls.OFF,
        }
        key = value.lower() if isinstance(value, str) else value
        if isinstance(key, bool) or not isinstance(key, (str, int)) or key not in aliases:
            raise InvalidConfigError(f"Unsupported severity: {value!r}")
        return aliases[key]
