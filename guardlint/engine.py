"""Evaluate a RuleSet against source units."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .errors import Cancelled, MalformedUnitError
from .result import STATUS_CANCELLED, STATUS_COMPLETE, Finding, Report, SkippedUnit, aggregate
from .rules import MatchContext, RuleSet
from .source import Node, SourceUnit

LOGGER = logging.getLogger(__name__)


def evaluate(unit: SourceUnit, ruleset: RuleSet) -> List[Finding]:
    """Run every enabled rule over every node of ``unit``.

    Nodes are visited once each, pre-order and depth-first with children in
    declared order. Shared or cyclic references are followed only the first
    time. Nodes without a kind are not matched but their children are walked.
    A malformed unit raises :class:`MalformedUnitError` and yields nothing.
    """

    unit_id = _check_unit(unit)
    rules = ruleset.enabled()
    findings: List[Finding] = []
    reported: Set[Tuple[str, object, Optional[str]]] = set()
    visited: Set[int] = set()

    stack: List[Tuple[object, Optional[Node], Optional[str], int]] = [
        (root, None, None, -1) for root in reversed(unit.nodes)
    ]
    while stack:
        node, parent, field, index = stack.pop()
        if not isinstance(node, Node):
            where = f"child {field!r} of {parent!r}" if parent is not None else "root node"
            raise MalformedUnitError(unit_id, f"{where} is {type(node).__name__}, not a Node")
        if id(node) in visited:
            continue
        visited.add(id(node))

        if not isinstance(node.attributes, dict) or not isinstance(node.children, dict):
            raise MalformedUnitError(unit_id, f"attributes or children of {node!r} are not mappings")

        if node.kind is not None:
            if node.span is None:
                raise MalformedUnitError(unit_id, f"{node.kind} node has no span")
            context = MatchContext(unit=unit, node=node, parent=parent, field=field, index=index)
            for rule in rules:
                for match in rule.check(context):
                    key = (rule.id, node.span, match.label)
                    if key in reported:
                        continue
                    reported.add(key)
                    findings.append(
                        Finding(
                            rule_id=rule.id,
                            severity=rule.severity,
                            unit_id=unit_id,
                            span=node.span,
                            message=match.message,
                            excerpt=match.excerpt,
                            label=match.label,
                        )
                    )

        children = [(child, node, name, idx) for name, idx, child in node.iter_children()]
        stack.extend(reversed(children))

    LOGGER.debug("Unit %s: %d node(s), %d finding(s)", unit_id, len(visited), len(findings))
    return findings


def analyze(
    units: Iterable[SourceUnit],
    ruleset: RuleSet,
    workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
    errors_fatal: bool = True,
    skipped: Sequence[SkippedUnit] = (),
) -> Report:
    """Evaluate a batch of units and aggregate the findings into a Report.

    Units run one per task on up to ``workers`` threads. ``cancel_event`` is
    checked before each unit starts; once set, remaining units are dropped and
    the report is marked cancelled. Malformed units are listed in the report
    and do not stop the batch. ``skipped`` carries units an ingestion step
    already rejected.
    """

    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")
    batch = list(units)
    findings: List[Finding] = []
    skipped_units: List[SkippedUnit] = list(skipped)
    analyzed = 0
    cancelled = False

    def _run(unit: SourceUnit) -> List[Finding]:
        if cancel_event is not None and cancel_event.is_set():
            raise Cancelled(getattr(unit, "id", None))
        return evaluate(unit, ruleset)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(_run, unit): unit for unit in batch}
        for future in as_completed(futures):
            unit = futures[future]
            try:
                produced = future.result()
            except Cancelled:
                cancelled = True
                continue
            except MalformedUnitError as exc:
                LOGGER.warning("Skipping unit: %s", exc)
                skipped_units.append(SkippedUnit(unit_id=str(exc.unit_id), reason=exc.reason))
                continue
            analyzed += 1
            findings.extend(produced)
            LOGGER.debug("Unit %s produced %d finding(s)", unit.id, len(produced))

    if cancelled:
        LOGGER.info("Batch cancelled after %d of %d unit(s)", analyzed, len(batch))

    return aggregate(
        findings,
        errors_fatal=errors_fatal,
        status=STATUS_CANCELLED if cancelled else STATUS_COMPLETE,
        skipped=skipped_units,
        disabled_rules=ruleset.disabled_ids(),
        units_analyzed=analyzed,
    )


def _check_unit(unit: object) -> str:
    unit_id = getattr(unit, "id", None)
    if not isinstance(unit_id, str) or not unit_id:
        raise MalformedUnitError(unit_id, "missing unit id")
    if not isinstance(getattr(unit, "text", None), str):
        raise MalformedUnitError(unit_id, "missing raw text")
    nodes = getattr(unit, "nodes", None)
    if not isinstance(nodes, (list, tuple)):
        raise MalformedUnitError(unit_id, "structural representation is not a sequence of nodes")
    return unit_id
