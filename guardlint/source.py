"""Structural representation of a parsed source unit."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Tuple, Union

MISSING = object()


@dataclass(frozen=True, order=True)
class Span:
    """Location of a node; ordered by start offset."""

    start: int
    end: int
    line: int = 0
    column: int = 0
    end_line: int = 0
    end_column: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "start": self.start,
            "end": self.end,
            "line": self.line,
            "column": self.column,
            "endLine": self.end_line,
            "endColumn": self.end_column,
        }


@dataclass(eq=False)
class Node:
    """A tagged node of an externally supplied syntax tree.

    Nodes compare and hash by identity, so the same node may be reachable
    through several parents (or even through itself).
    """

    kind: Optional[str]
    span: Optional[Span] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    children: Dict[str, Union["Node", Sequence["Node"]]] = field(default_factory=dict)

    def lookup(self, name: str) -> Any:
        if isinstance(self.attributes, Mapping) and name in self.attributes:
            return self.attributes[name]
        if isinstance(self.children, Mapping) and name in self.children:
            return self.children[name]
        if name in ("type", "kind"):
            return self.kind
        return MISSING

    def iter_children(self) -> Iterator[Tuple[str, int, Any]]:
        """Yield ``(field, index, child)`` in declared order.

        ``index`` is -1 for single-node fields. Values are yielded unchecked so
        the engine can reject malformed references.
        """

        if not isinstance(self.children, Mapping):
            return
        for name, value in self.children.items():
            if isinstance(value, (list, tuple)):
                for index, child in enumerate(value):
                    yield name, index, child
            else:
                yield name, -1, value

    def __repr__(self) -> str:
        return f"Node({self.kind!r}, span={self.span!r})"


@dataclass(frozen=True)
class SourceUnit:
    """One parsed file: identifier, raw text and root nodes."""

    id: str
    text: str
    nodes: Tuple[Node, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.nodes, list):
            object.__setattr__(self, "nodes", tuple(self.nodes))

    def excerpt(self, span: Span, limit: int = 120) -> Optional[str]:
        if not isinstance(self.text, str) or not 0 <= span.start <= span.end <= len(self.text):
            return None
        snippet = self.text[span.start:span.end]
        if not snippet:
            return None
        snippet = " ".join(snippet.split())
        if len(snippet) > limit:
            snippet = snippet[: limit - 3] + "..."
        return snippet


def resolve_path(value: Any, path: str) -> Any:
    """Walk a dotted attribute path from ``value``.

    Segments address node attributes, child nodes, mapping keys and list
    indices; ``length`` yields the size of a sequence or string. Returns
    ``MISSING`` when any segment cannot be resolved.
    """

    for segment in path.split("."):
        if isinstance(value, Node):
            value = value.lookup(segment)
        elif isinstance(value, Mapping):
            value = value.get(segment, MISSING)
        elif isinstance(value, (list, tuple, str)) and segment == "length":
            value = len(value)
        elif isinstance(value, (list, tuple)) and segment.isdigit():
            index = int(segment)
            value = value[index] if index < len(value) else MISSING
        else:
            return MISSING
        if value is MISSING:
            return MISSING
    return value
