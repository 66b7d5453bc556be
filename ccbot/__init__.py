"""ccbot package: the custom command template engine and its Discord cog."""

from . import engine, errors, models, store, utils  # noqa: F401
from .engine import resolve_template  # noqa: F401

__all__ = ["engine", "errors", "models", "resolve_template", "store", "utils"]
