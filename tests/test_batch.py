import random
import threading
from dataclasses import dataclass, field

import pytest

from guardlint.engine import analyze
from guardlint.result import SkippedUnit
from guardlint.rules import Rule, RuleSet


@dataclass(frozen=True)
class CancellingRule(Rule):
    """Set the cancel flag as soon as the first node is checked."""

    event: threading.Event = field(default_factory=threading.Event, compare=False)

    def check(self, context):
        self.event.set()
        return super().check(context)


def _ruleset():
    return RuleSet(
        [
            Rule(id="no-eval", message="eval can be harmful", selector='CallExpression[callee.name="eval"]'),
            Rule(id="no-console", message="Unexpected console statement", selector="CallExpression[callee.object.name=\"console\"]", severity="warning"),
        ]
    )


def _units(node, count=8):
    units = []
    for index in range(count):
        calls = [
            node("CallExpression", {"callee": node("Identifier", name="eval")}),
            node(
                "CallExpression",
                {"callee": node("MemberExpression", {"object": node("Identifier", name="console")})},
            ),
        ]
        units.append(node.unit(node("Program", {"body": calls}), unit_id=f"handler-{index}.ts"))
    return units


@pytest.mark.parametrize("workers", [1, 4])
def test_report_does_not_depend_on_unit_order(node, workers):
    units = _units(node)
    shuffled = list(units)
    random.Random(7).shuffle(shuffled)

    expected = analyze(units, _ruleset()).to_json()
    actual = analyze(shuffled, _ruleset(), workers=workers).to_json()

    assert actual == expected


def test_batch_counts_and_verdict(node):
    report = analyze(_units(node, count=3), _ruleset(), workers=2)

    assert report.counts == {"error": 3, "warning": 3}
    assert report.verdict == "fail"
    assert report.status == "complete"
    assert report.units_analyzed == 3


def test_malformed_unit_is_skipped_and_batch_continues(node):
    units = _units(node, count=2)
    broken = node.unit(node("Program", {"body": [{"type": "CallExpression"}]}), unit_id="broken.ts")

    report = analyze([units[0], broken, units[1]], _ruleset(), workers=2)

    assert [skipped.unit_id for skipped in report.skipped] == ["broken.ts"]
    assert "not a Node" in report.skipped[0].reason
    assert {finding.unit_id for finding in report.findings} == {"handler-0.ts", "handler-1.ts"}
    assert report.units_analyzed == 2


def test_ingestion_skips_are_carried_into_the_report(node):
    skipped = [SkippedUnit("bad.py", "SyntaxError: invalid syntax")]

    report = analyze(_units(node, count=1), _ruleset(), skipped=skipped)

    assert report.skipped == skipped


def test_cancel_before_start_returns_empty_partial_report(node):
    event = threading.Event()
    event.set()

    report = analyze(_units(node), _ruleset(), cancel_event=event)

    assert report.status == "cancelled"
    assert report.findings == []
    assert report.units_analyzed == 0


def test_cancel_during_batch_keeps_finished_units(node):
    rule = CancellingRule(id="cancel", message="checked", selector="Program")
    units = _units(node, count=5)

    report = analyze(units, RuleSet([rule]), workers=1, cancel_event=rule.event)

    assert report.status == "cancelled"
    assert report.units_analyzed == 1
    assert [finding.unit_id for finding in report.findings] == ["handler-0.ts"]


def test_workers_must_be_positive(node):
    with pytest.raises(ValueError):
        analyze(_units(node, count=1), _ruleset(), workers=0)


def test_empty_batch_passes():
    report = analyze([], RuleSet())

    assert report.units_analyzed == 0
    assert report.status == "complete"
    assert report.verdict == "pass"
