import json
from pathlib import Path

import pytest

from guardlint import cli

ROOT = Path(__file__).resolve().parents[1]
VULNERABLE = ROOT / "functions" / "vulnerable"
SAFE = ROOT / "functions" / "safe"


def test_cli_generates_json_report(tmp_path, capsys):
    output_path = tmp_path / "lint.json"

    exit_code = cli.main(["--source", str(VULNERABLE), "--out", str(output_path)])

    captured = capsys.readouterr()
    assert "Lint Summary" in captured.out
    assert exit_code == 1
    data = json.loads(output_path.read_text(encoding="utf-8"))
    assert data["verdict"] == "fail"
    assert data["counts"]["error"] >= 1
    rule_ids = {finding["ruleId"] for finding in data["findings"]}
    assert {"no-secrets", "py/sql-fstring", "py/weak-hash", "py/print-environ", "py/log-environ"} <= rule_ids


def test_cli_passes_on_safe_handler(tmp_path, capsys):
    output_path = tmp_path / "clean.json"

    exit_code = cli.main(["--source", str(SAFE), "--out", str(output_path)])

    captured = capsys.readouterr()
    assert "Verdict   : PASS" in captured.out
    assert exit_code == 0
    data = json.loads(output_path.read_text(encoding="utf-8"))
    assert data["counts"] == {"error": 0, "warning": 0}
    assert data["unitsAnalyzed"] == 1


def test_cli_json_format_prints_report(capsys):
    exit_code = cli.main(["--source", str(VULNERABLE), "--format", "json", "--workers", "2"])

    data = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert data["status"] == "complete"
    assert data["findings"] == sorted(
        data["findings"], key=lambda item: (item["unitId"], item["span"]["start"], item["ruleId"])
    )


def test_cli_config_can_make_errors_non_fatal(tmp_path, capsys):
    config_path = tmp_path / "guardlint.yaml"
    config_path.write_text("extends: [recommended, python]\nsettings:\n  errors_fatal: false\n", encoding="utf-8")

    exit_code = cli.main(["--source", str(VULNERABLE), "--config", str(config_path)])

    assert exit_code == 0
    assert "Verdict   : PASS" in capsys.readouterr().out


def test_cli_lints_estree_documents(tmp_path, capsys):
    document = {
        "id": "handler.js",
        "text": "eval(input)",
        "ast": {
            "type": "Program",
            "range": [0, 11],
            "body": [
                {
                    "type": "ExpressionStatement",
                    "range": [0, 11],
                    "expression": {
                        "type": "CallExpression",
                        "range": [0, 11],
                        "callee": {"type": "Identifier", "range": [0, 4], "name": "eval"},
                        "arguments": [{"type": "Identifier", "range": [5, 10], "name": "input"}],
                    },
                }
            ],
        },
    }
    (tmp_path / "handler.js.estree.json").write_text(json.dumps(document), encoding="utf-8")

    exit_code = cli.main(["--source", str(tmp_path), "--format", "json"])

    data = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert [finding["ruleId"] for finding in data["findings"]] == ["no-eval"]
    assert data["findings"][0]["excerpt"] == "eval(input)"


def test_cli_reports_unparseable_sources(tmp_path, capsys):
    (tmp_path / "broken.py").write_text("def broken(:\n", encoding="utf-8")

    exit_code = cli.main(["--source", str(tmp_path)])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert "Skipped Units" in captured.out
    assert "broken.py" in captured.out


def test_cli_list_rules(capsys):
    exit_code = cli.main(["--list-rules"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "no-secrets" in out
    assert "py/subprocess-shell" in out


@pytest.mark.parametrize(
    "argv",
    [
        ["--config", "does-not-exist.yaml"],
        ["--workers", "0"],
        ["--format", "sarif"],
    ],
)
def test_cli_usage_errors_exit_with_2(argv, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)

    assert excinfo.value.code == 2


def test_cli_invalid_config_exits_with_2(tmp_path):
    config_path = tmp_path / "guardlint.yaml"
    config_path.write_text("extends: recommended\nrules:\n  no-eval: {selector: CallExpression, message: dup}\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(config_path)])

    assert excinfo.value.code == 2


def test_cli_unreadable_config_exits_with_2(tmp_path, monkeypatch):
    config_path = tmp_path / "guardlint.yaml"
    config_path.write_text("extends: recommended\n", encoding="utf-8")

    def _denied(path):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr("guardlint.config.read_document", _denied)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(config_path)])

    assert excinfo.value.code == 2


def test_cli_list_rules_shows_secret_labels(capsys):
    cli.main(["--list-rules"])

    line = next(line for line in capsys.readouterr().out.splitlines() if line.startswith("no-secrets "))
    assert "labels: Hardcoded Password, API Key, Database Password, Generic Secret" in line


def test_cli_reports_each_python_exposure_once(tmp_path):
    output_path = tmp_path / "lint.json"

    cli.main(["--source", str(VULNERABLE), "--out", str(output_path)])

    findings = json.loads(output_path.read_text(encoding="utf-8"))["findings"]
    lines = {}
    for finding in findings:
        lines.setdefault(finding["ruleId"], []).append(finding["span"]["line"])
    assert lines["py/permissive-cors"] == [38]
    assert lines["py/system-info-exposure"] == [41]
    assert lines["py/stack-trace-exposure"] == [46]
