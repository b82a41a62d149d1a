"""Pattern-based static security linter for serverless handlers."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("serverless-guardlint")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0-dev"

__all__ = ["__version__"]
