"""Utility helpers for the linter."""

from .fileio import read_document, read_json_file, read_text_file, read_yaml_file
from .code import iter_code_files, load_units
from .estree import load_estree_file, unit_from_estree
from .python_ast import load_python_file, unit_from_python

__all__ = [
    "read_document",
    "read_json_file",
    "read_text_file",
    "read_yaml_file",
    "iter_code_files",
    "load_units",
    "load_estree_file",
    "unit_from_estree",
    "load_python_file",
    "unit_from_python",
]
