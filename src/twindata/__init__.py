"""twindata - record stores, search indexes and LLM helpers for digital twin data."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("twindata")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
