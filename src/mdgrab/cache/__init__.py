"""Per-session fetch caches for mdgrab."""

from .session import SessionCache

__all__ = ["SessionCache"]
