"""Command-line entry point for the guardlint security linter."""

from __future__ import annotations

import argparse
import logging
from typing import Iterable, List

from .config import LintConfig, load_config
from .engine import analyze
from .errors import ConfigError
from .result import Report, format_summary_table
from .rules.secrets import SecretEntropyRule
from .utils import load_units

LOGGER = logging.getLogger("guardlint")

DEFAULT_SOURCE_DIRS = ("functions",)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guardlint",
        description="Pattern-based security linter for serverless handlers",
    )
    parser.add_argument(
        "--source",
        "-s",
        dest="source_dirs",
        action="append",
        default=[],
        help="File or directory to lint: *.py, *.estree.json, *.ast.json (repeatable).",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="YAML/JSON rule configuration (defaults to the bundled packs).",
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Console output format.",
    )
    parser.add_argument(
        "--out",
        "--output",
        dest="output_path",
        type=str,
        default=None,
        help="Path to write the JSON report (e.g., artifacts/lint-report.json).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of units analyzed in parallel (overrides settings.workers).",
    )
    parser.add_argument(
        "--list-rules",
        action="store_true",
        help="Print the configured rules and exit.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def run_lint(config: LintConfig, source_paths: Iterable[str], workers: int | None = None) -> Report:
    units, skipped = load_units(source_paths)
    LOGGER.info("Linting %d unit(s) with %d rule(s)", len(units), len(config.ruleset.enabled()))
    return analyze(
        units,
        config.ruleset,
        workers=workers or config.workers,
        errors_fatal=config.errors_fatal,
        skipped=skipped,
    )


def write_output(report: Report, output_path: str | None, report_format: str) -> None:
    if report_format == "json":
        print(report.to_json())
    else:
        print(format_summary_table(report))

    if output_path:
        report.to_json(output_path)
        LOGGER.info("Report written to %s", output_path)
        if report_format == "text":
            print(f"\nReport written to {output_path}")


def list_rules(config: LintConfig) -> str:
    lines = []
    for rule in config.ruleset:
        line = f"{rule.id:<32} {rule.severity.value:<8} {rule.type_name:<15} {rule.selector}"
        if isinstance(rule, SecretEntropyRule):
            line += f" labels: {', '.join(rule.labels)}"
        lines.append(line)
    return "\n".join(lines)


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1")

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.error(str(exc))

    if args.list_rules:
        print(list_rules(config))
        return 0

    sources = args.source_dirs or list(DEFAULT_SOURCE_DIRS)
    report = run_lint(config, sources, workers=args.workers)
    write_output(report, args.output_path, args.format)
    if not report.passed:
        LOGGER.info("Lint failed with %d error(s)", report.summary.error)
    return report.exit_code()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
