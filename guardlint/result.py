"""Findings and the aggregated report."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .severity import Severity
from .source import Span

VERDICT_PASS = "pass"
VERDICT_FAIL = "fail"
STATUS_COMPLETE = "complete"
STATUS_CANCELLED = "cancelled"


@dataclass(frozen=True)
class Finding:
    """One rule violation at a location in a source unit."""

    rule_id: str
    severity: Severity
    unit_id: str
    span: Span
    message: str
    excerpt: Optional[str] = None
    label: Optional[str] = None

    def sort_key(self) -> Tuple[Any, ...]:
        return (
            self.unit_id,
            self.span.start,
            self.rule_id,
            self.span.end,
            self.label or "",
            self.message,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "ruleId": self.rule_id,
            "severity": self.severity.value,
            "unitId": self.unit_id,
            "span": self.span.to_dict(),
            "message": self.message,
        }
        if self.excerpt is not None:
            data["excerpt"] = self.excerpt
        if self.label is not None:
            data["label"] = self.label
        return data


@dataclass(frozen=True)
class SkippedUnit:
    """A unit left out of the analysis, with the reason."""

    unit_id: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"unitId": self.unit_id, "reason": self.reason}


@dataclass
class Summary:
    """Finding counts by severity."""

    error: int = 0
    warning: int = 0

    def increment(self, severity: Severity) -> None:
        if severity is Severity.ERROR:
            self.error += 1
        elif severity is Severity.WARNING:
            self.warning += 1

    def to_dict(self) -> Dict[str, int]:
        return {"error": self.error, "warning": self.warning}

    @property
    def total(self) -> int:
        return self.error + self.warning


@dataclass
class Report:
    """Sorted findings with counts and the pass/fail verdict."""

    findings: List[Finding] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)
    verdict: str = VERDICT_PASS
    status: str = STATUS_COMPLETE
    skipped: List[SkippedUnit] = field(default_factory=list)
    disabled_rules: List[str] = field(default_factory=list)
    units_analyzed: int = 0

    @property
    def passed(self) -> bool:
        return self.verdict == VERDICT_PASS

    @property
    def counts(self) -> Dict[str, int]:
        return self.summary.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "findings": [finding.to_dict() for finding in self.findings],
            "counts": self.summary.to_dict(),
            "verdict": self.verdict,
            "status": self.status,
            "skipped": [unit.to_dict() for unit in self.skipped],
            "disabledRules": list(self.disabled_rules),
            "unitsAnalyzed": self.units_analyzed,
        }

    def to_json(self, out_path: Optional[str] = None) -> str:
        """Serialise the report and optionally persist it to disk."""

        payload = json.dumps(self.to_dict(), indent=2, sort_keys=True)
        if out_path:
            path = Path(out_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(payload + "\n", encoding="utf-8")
        return payload

    def exit_code(self) -> int:
        return 0 if self.passed else 1


def aggregate(
    findings: Iterable[Finding],
    errors_fatal: bool = True,
    status: str = STATUS_COMPLETE,
    skipped: Sequence[SkippedUnit] = (),
    disabled_rules: Sequence[str] = (),
    units_analyzed: Optional[int] = None,
) -> Report:
    """Build a Report from findings alone; no other state is consulted.

    Findings are ordered by unit id, span start and rule id, so the output does
    not depend on the order units were evaluated in.
    """

    ordered = sorted(findings, key=Finding.sort_key)
    summary = Summary()
    for finding in ordered:
        summary.increment(finding.severity)
    failed = errors_fatal and summary.error > 0
    if units_analyzed is None:
        units_analyzed = len({finding.unit_id for finding in ordered})
    return Report(
        findings=ordered,
        summary=summary,
        verdict=VERDICT_FAIL if failed else VERDICT_PASS,
        status=status,
        skipped=sorted(skipped, key=lambda unit: (unit.unit_id, unit.reason)),
        disabled_rules=sorted(disabled_rules),
        units_analyzed=units_analyzed,
    )


def format_summary_table(report: Report, max_findings: int = 10) -> str:
    """Create a human-readable summary table for console output."""

    lines: List[str] = []
    lines.append("Lint Summary")
    lines.append("=" * 40)
    header = f"{'Severity':<10} | {'Count':>5}"
    lines.append(header)
    lines.append("-" * len(header))
    for severity, count in report.summary.to_dict().items():
        lines.append(f"{severity:<10} | {count:>5}")
    lines.append("-" * len(header))
    lines.append(f"Verdict   : {report.verdict.upper()}")
    lines.append(f"Findings  : {report.summary.total}")
    lines.append(f"Units     : {report.units_analyzed}")
    if report.status != STATUS_COMPLETE:
        lines.append(f"Status    : {report.status.upper()}")
    if report.disabled_rules:
        lines.append(f"Disabled  : {', '.join(report.disabled_rules)}")

    findings = report.findings[:max_findings]
    if findings:
        lines.append("")
        lines.append("Findings")
        lines.append("-" * 40)
        for finding in findings:
            lines.append(f"[{finding.severity.value}] {finding.rule_id}: {finding.message}")
            lines.append(f"  Location: {finding.unit_id}:{finding.span.line}:{finding.span.column}")
        remaining = len(report.findings) - len(findings)
        if remaining > 0:
            lines.append(f"... and {remaining} more")
    if report.skipped:
        lines.append("")
        lines.append("Skipped Units")
        lines.append("-" * 40)
        for unit in report.skipped:
            lines.append(f"{unit.unit_id}: {unit.reason}")
    return "\n".join(lines)
