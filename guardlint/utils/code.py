"""Source discovery and ingestion helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Generator, Iterable, List, Tuple

from ..result import SkippedUnit
from ..source import SourceUnit
from .estree import load_estree_file
from .python_ast import load_python_file

LOGGER = logging.getLogger(__name__)

LOADERS = {
    ".py": load_python_file,
    ".estree.json": load_estree_file,
    ".ast.json": load_estree_file,
}
DEFAULT_EXTENSIONS = tuple(LOADERS)
EXCLUDED_DIRS = {".git", ".venv", "venv", "node_modules", "__pycache__"}


def iter_code_files(root_paths: Iterable[str], extensions: tuple[str, ...] = DEFAULT_EXTENSIONS) -> Generator[Path, None, None]:
    """Yield code files beneath the provided paths, sorted within each root."""

    for root in root_paths:
        path = Path(root)
        if path.is_file():
            if _matches(path, extensions):
                yield path
            continue
        for candidate in sorted(path.rglob("*")):
            if any(part in EXCLUDED_DIRS for part in candidate.parts):
                continue
            if _matches(candidate, extensions) and candidate.is_file():
                yield candidate


def load_units(root_paths: Iterable[str]) -> Tuple[List[SourceUnit], List[SkippedUnit]]:
    """Convert every supported file into a unit.

    Files that cannot be read or parsed are returned as skipped units instead
    of aborting the batch.
    """

    units: List[SourceUnit] = []
    skipped: List[SkippedUnit] = []
    for path in iter_code_files(root_paths):
        loader = next(LOADERS[ext] for ext in LOADERS if path.name.endswith(ext))
        try:
            units.append(loader(path))
        except (OSError, UnicodeDecodeError, SyntaxError, ValueError, RecursionError) as exc:
            # json.JSONDecodeError is a ValueError; ast.parse and json.load raise
            # RecursionError on very deeply nested input
            LOGGER.warning("Cannot load %s: %s", path, exc)
            skipped.append(SkippedUnit(unit_id=str(path), reason=f"{type(exc).__name__}: {exc}"))
    LOGGER.debug("Loaded %d unit(s), skipped %d", len(units), len(skipped))
    return units, skipped


def _matches(path: Path, extensions: tuple[str, ...]) -> bool:
    return any(path.name.endswith(ext) for ext in extensions)
