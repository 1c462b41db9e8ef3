"""Content resolution pipeline for mdgrab."""

from .base import ContentResolver, ResolutionState, ResolutionStrategy
from .strategies import (
    ApiFallbackStrategy,
    DomStrategy,
    EmbeddedStateStrategy,
    build_resolver,
    build_strategies,
)

__all__ = [
    "ApiFallbackStrategy",
    "ContentResolver",
    "DomStrategy",
    "EmbeddedStateStrategy",
    "ResolutionState",
    "ResolutionStrategy",
    "build_resolver",
    "build_strategies",
]
