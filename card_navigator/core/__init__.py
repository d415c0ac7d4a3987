"""Preset storage, matching, resolution and application."""

from card_navigator.core.applier import LiveConfiguration, PresetApplier
from card_navigator.core.engine import ContextChange, PresetEngine, Resolution
from card_navigator.core.mapping_index import MappingIndex, MappingMatch
from card_navigator.core.resolution_cache import CacheStats, ResolutionCache
from card_navigator.core.resolver import Decision, PriorityResolver, ResolverConfig
from card_navigator.core.store import PresetStore

__all__ = [
    "CacheStats",
    "ContextChange",
    "Decision",
    "LiveConfiguration",
    "MappingIndex",
    "MappingMatch",
    "PresetApplier",
    "PresetEngine",
    "PresetStore",
    "PriorityResolver",
    "ResolutionCache",
    "Resolution",
    "ResolverConfig",
]
