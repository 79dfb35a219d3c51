"""Storage backends points are written to."""

from .base import WriteAdapter

__all__ = ["WriteAdapter"]
