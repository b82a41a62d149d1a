"""Adapt Python source, parsed with the standard ``ast`` module, to source units."""

from __future__ import annotations

import ast
from pathlib import Path
from typing import List, Optional, Tuple

from ..source import Node, SourceUnit, Span
from .fileio import read_text_file

# Operator and context nodes become plain attributes (``BinOp.op == "Add"``).
# ``Dict`` nodes expose their entries as ``items``: ``DictItem`` nodes with
# ``key`` and ``value`` children.
_TOKEN_NODES = (ast.expr_context, ast.operator, ast.unaryop, ast.cmpop, ast.boolop)


def unit_from_python(source: str, unit_id: str) -> SourceUnit:
    """Parse ``source`` and convert the tree; raises ``SyntaxError`` on bad input."""

    tree = ast.parse(source, filename=unit_id)
    lines = source.splitlines(keepends=True)
    converter = _Converter(lines)
    root_span = Span(0, len(source), 1, 0, max(len(lines), 1), len(lines[-1]) if lines else 0)
    return SourceUnit(id=unit_id, text=source, nodes=(converter.convert(tree, root_span),))


def load_python_file(path: Path) -> SourceUnit:
    return unit_from_python(read_text_file(path), str(path))


class _Converter:
    def __init__(self, lines: List[str]) -> None:
        self._lines = lines
        self._line_starts = [0]
        for line in lines:
            self._line_starts.append(self._line_starts[-1] + len(line))

    def convert(self, tree: ast.AST, inherited: Span) -> Node:
        """Convert ``tree`` with an explicit work stack, so depth is not bounded by recursion."""

        root = self._new_node(tree, inherited)
        stack: List[Tuple[ast.AST, Node]] = [(tree, root)]
        while stack:
            current, node = stack.pop()
            if isinstance(current, ast.Dict):
                node.children["items"] = [
                    self._dict_item(key, value, node.span, stack) for key, value in zip(current.keys, current.values)
                ]
                continue
            for name, value in ast.iter_fields(current):
                if isinstance(value, _TOKEN_NODES):
                    node.attributes[name] = type(value).__name__
                elif isinstance(value, ast.AST):
                    node.children[name] = self._child(value, node.span, stack)
                elif isinstance(value, list) and any(isinstance(item, ast.AST) for item in value):
                    if all(isinstance(item, _TOKEN_NODES) for item in value):
                        node.attributes[name] = [type(item).__name__ for item in value]
                    else:
                        node.children[name] = [
                            Node(kind=None) if item is None else self._child(item, node.span, stack)
                            for item in value
                        ]
                else:
                    node.attributes[name] = value
        return root

    def _new_node(self, tree: ast.AST, inherited: Span) -> Node:
        return Node(kind=type(tree).__name__, span=self._span(tree) or inherited)

    def _child(self, tree: ast.AST, inherited: Span, stack: List[Tuple[ast.AST, Node]]) -> Node:
        node = self._new_node(tree, inherited)
        stack.append((tree, node))
        return node

    def _dict_item(
        self,
        key: Optional[ast.AST],
        value: ast.AST,
        inherited: Span,
        stack: List[Tuple[ast.AST, Node]],
    ) -> Node:
        # One node per entry, like an ESTree Property; ``**spread`` entries have no key
        value_node = self._child(value, inherited, stack)
        item = Node(kind="DictItem", children={"value": value_node})
        if key is None:
            item.span = value_node.span
            return item
        key_node = self._child(key, inherited, stack)
        item.children = {"key": key_node, "value": value_node}
        start, end = key_node.span, value_node.span
        item.span = Span(start.start, end.end, start.line, start.column, end.end_line, end.end_column)
        return item

    def _span(self, tree: ast.AST) -> Optional[Span]:
        lineno = getattr(tree, "lineno", None)
        if lineno is None:
            return None
        col = getattr(tree, "col_offset", 0) or 0
        end_lineno = getattr(tree, "end_lineno", None) or lineno
        end_col = getattr(tree, "end_col_offset", None)
        if end_col is None:
            end_col = col
        return Span(
            start=self._offset(lineno, col),
            end=self._offset(end_lineno, end_col),
            line=lineno,
            column=self._char_column(lineno, col),
            end_line=end_lineno,
            end_column=self._char_column(end_lineno, end_col),
        )

    def _char_column(self, lineno: int, byte_col: int) -> int:
        # ast reports UTF-8 byte columns
        if not 0 < lineno <= len(self._lines):
            return byte_col
        encoded = self._lines[lineno - 1].encode("utf-8")
        return len(encoded[:byte_col].decode("utf-8", errors="ignore"))

    def _offset(self, lineno: int, byte_col: int) -> int:
        if not 0 < lineno <= len(self._lines):
            return self._line_starts[-1]
        return self._line_starts[lineno - 1] + self._char_column(lineno, byte_col)