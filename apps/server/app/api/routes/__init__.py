"""API route modules."""

from . import categories

__all__ = ["categories"]
