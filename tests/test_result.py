import json

from guardlint.result import STATUS_CANCELLED, STATUS_COMPLETE, Finding, SkippedUnit, aggregate, format_summary_table
from guardlint.severity import Severity
from guardlint.source import Span


def _finding(unit_id, start, rule_id, severity=Severity.ERROR, label=None):
    return Finding(
        rule_id=rule_id,
        severity=severity,
        unit_id=unit_id,
        span=Span(start, start + 4, line=1, column=start),
        message=f"{rule_id} at {start}",
        label=label,
    )


def test_findings_sorted_by_unit_span_and_rule():
    findings = [
        _finding("b.ts", 0, "no-eval"),
        _finding("a.ts", 10, "no-eval"),
        _finding("a.ts", 10, "detect-new-buffer"),
        _finding("a.ts", 2, "weak-hash-md5"),
    ]

    report = aggregate(findings)

    assert [(f.unit_id, f.span.start, f.rule_id) for f in report.findings] == [
        ("a.ts", 2, "weak-hash-md5"),
        ("a.ts", 10, "detect-new-buffer"),
        ("a.ts", 10, "no-eval"),
        ("b.ts", 0, "no-eval"),
    ]


def test_warnings_alone_pass():
    report = aggregate([_finding("a.ts", 0, "no-console", Severity.WARNING)])

    assert report.verdict == "pass"
    assert report.counts == {"error": 0, "warning": 1}
    assert report.exit_code() == 0


def test_any_error_fails():
    report = aggregate(
        [_finding("a.ts", 0, "no-console", Severity.WARNING), _finding("a.ts", 5, "no-eval")]
    )

    assert report.verdict == "fail"
    assert not report.passed
    assert report.exit_code() == 1


def test_errors_can_be_made_non_fatal():
    report = aggregate([_finding("a.ts", 0, "no-eval")], errors_fatal=False)

    assert report.verdict == "pass"
    assert report.counts["error"] == 1


def test_json_is_identical_for_any_input_order(tmp_path):
    findings = [
        _finding("a.ts", 0, "no-secrets", label="API Key"),
        _finding("a.ts", 0, "no-secrets", label="Generic Secret"),
        _finding("b.ts", 3, "no-eval"),
    ]
    output_path = tmp_path / "reports" / "lint.json"

    forward = aggregate(findings, disabled_rules=["z", "a"]).to_json(str(output_path))
    backward = aggregate(list(reversed(findings)), disabled_rules=["a", "z"]).to_json()

    assert forward == backward
    assert output_path.read_text(encoding="utf-8") == forward + "\n"
    data = json.loads(forward)
    assert data["verdict"] == "fail"
    assert data["disabledRules"] == ["a", "z"]
    assert [item["label"] for item in data["findings"][:2]] == ["API Key", "Generic Secret"]
    assert data["findings"][0]["span"]["endLine"] == 0


def test_report_document_shape():
    report = aggregate(
        [_finding("a.ts", 0, "no-eval")],
        status="cancelled",
        skipped=[SkippedUnit("broken.ts", "root node is dict, not a Node")],
        units_analyzed=3,
    )

    data = report.to_dict()

    assert set(data) == {"findings", "counts", "verdict", "status", "skipped", "disabledRules", "unitsAnalyzed"}
    assert data["findings"][0] == {
        "ruleId": "no-eval",
        "severity": "error",
        "unitId": "a.ts",
        "span": {"start": 0, "end": 4, "line": 1, "column": 0, "endLine": 0, "endColumn": 0},
        "message": "no-eval at 0",
    }
    assert data["skipped"] == [{"unitId": "broken.ts", "reason": "root node is dict, not a Node"}]
    assert data["unitsAnalyzed"] == 3


def test_summary_table_lists_findings_and_skipped_units():
    report = aggregate(
        [_finding("a.ts", 0, "no-eval"), _finding("a.ts", 8, "no-console", Severity.WARNING)],
        skipped=[SkippedUnit("broken.py", "SyntaxError: invalid syntax")],
        disabled_rules=["detect-new-buffer"],
    )

    table = format_summary_table(report)

    assert "Lint Summary" in table
    assert "Verdict   : FAIL" in table
    assert "[error] no-eval: no-eval at 0" in table
    assert "Location: a.ts:1:0" in table
    assert "Disabled  : detect-new-buffer" in table
    assert "broken.py: SyntaxError: invalid syntax" in table


def test_empty_report_passes():
    report = aggregate([])

    assert report.verdict == "pass"
    assert report.findings == []
    assert report.units_analyzed == 0


def test_summary_table_shows_status_only_when_incomplete():
    complete = aggregate([_finding("a.ts", 0, "no-eval")])
    cancelled = aggregate([_finding("a.ts", 0, "no-eval")], status=STATUS_CANCELLED)

    assert complete.status == STATUS_COMPLETE
    assert "Status" not in format_summary_table(complete)
    assert "Status    : CANCELLED" in format_summary_table(cancelled)
    assert json.loads(cancelled.to_json())["status"] == "cancelled"
