"""Adapt ESTree JSON (as emitted by espree or typescript-estree) to source units."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..source import Node, SourceUnit, Span
from .fileio import read_json_file

RESERVED_KEYS = {"type", "range", "loc", "start", "end", "parent", "tokens", "comments"}


def unit_from_estree(document: Mapping[str, Any], unit_id: Optional[str] = None, text: str = "") -> SourceUnit:
    """Build a unit from a bare ESTree tree or an ``{id, text, ast}`` wrapper."""

    if not isinstance(document, Mapping):
        raise ValueError("ESTree document must be a JSON object")
    if "ast" in document:
        unit_id = document.get("id") or unit_id
        text = document.get("text") or text
        tree = document["ast"]
    else:
        tree = document
    if not isinstance(tree, Mapping) or "type" not in tree:
        raise ValueError("ESTree document has no root node with a 'type'")
    if not unit_id:
        raise ValueError("ESTree document needs an id")
    converter = _Converter(text)
    return SourceUnit(id=str(unit_id), text=text, nodes=(converter.convert(tree),))


def load_estree_file(path: Path) -> SourceUnit:
    document = read_json_file(path)
    text = ""
    if isinstance(document, Mapping) and "ast" not in document:
        # foo.ts.estree.json next to foo.ts supplies the raw text when present
        sibling = _source_sibling(path)
        if sibling is not None and sibling.is_file():
            text = sibling.read_text(encoding="utf-8")
    return unit_from_estree(document, unit_id=str(path), text=text)


class _Converter:
    def __init__(self, text: str) -> None:
        self._line_starts = _line_starts(text)
        self._memo: Dict[int, Node] = {}

    def convert(self, raw: Mapping[str, Any]) -> Node:
        pending: List[Tuple[Mapping[str, Any], Node]] = []
        root = self._node_for(raw, pending)
        while pending:
            current, node = pending.pop()
            for key, value in current.items():
                if key in RESERVED_KEYS:
                    continue
                if _is_node(value):
                    node.children[key] = self._node_for(value, pending)
                elif isinstance(value, list) and value and all(item is None or _is_node(item) for item in value):
                    node.children[key] = [
                        Node(kind=None) if item is None else self._node_for(item, pending) for item in value
                    ]
                else:
                    node.attributes[key] = value
        return root

    def _node_for(self, raw: Mapping[str, Any], pending: List[Tuple[Mapping[str, Any], Node]]) -> Node:
        # Shared subtrees map to one node; only unseen objects are queued
        cached = self._memo.get(id(raw))
        if cached is not None:
            return cached
        kind = raw.get("type")
        node = Node(kind=kind if isinstance(kind, str) else None, span=self._span(raw))
        self._memo[id(raw)] = node
        pending.append((raw, node))
        return node

    def _span(self, raw: Mapping[str, Any]) -> Optional[Span]:
        loc = raw.get("loc") if isinstance(raw.get("loc"), Mapping) else {}
        start_pos = loc.get("start") or {}
        end_pos = loc.get("end") or {}
        line, column = start_pos.get("line", 0), start_pos.get("column", 0)
        end_line, end_column = end_pos.get("line", 0), end_pos.get("column", 0)

        offsets = raw.get("range")
        if isinstance(offsets, list) and len(offsets) == 2:
            start, end = offsets
        elif isinstance(raw.get("start"), int) and isinstance(raw.get("end"), int):
            start, end = raw["start"], raw["end"]
        elif line and self._line_starts:
            start = self._offset(line, column)
            end = self._offset(end_line or line, end_column)
        else:
            return None
        return Span(start, end, line, column, end_line, end_column)

    def _offset(self, line: int, column: int) -> int:
        index = min(max(line - 1, 0), len(self._line_starts) - 1)
        return self._line_starts[index] + column


def _is_node(value: Any) -> bool:
    return isinstance(value, Mapping) and isinstance(value.get("type"), str)


def _line_starts(text: str) -> List[int]:
    if not text:
        return []
    starts = [0]
    for index, char in enumerate(text):
        if char == "\n":
            starts.append(index + 1)
    return starts


def _source_sibling(path: Path) -> Optional[Path]:
    for suffix in (".estree.json", ".ast.json", ".json"):
        if path.name.endswith(suffix) and len(path.name) > len(suffix):
            return path.with_name(path.name[: -len(suffix)])
    return None
