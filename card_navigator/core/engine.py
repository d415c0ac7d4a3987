"""Preset engine facade: resolution, application and preset management."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import Any, Optional

from card_navigator.constants import DEFAULT_CACHE_SIZE
from card_navigator.core.applier import LiveConfiguration, PresetApplier, RefreshCallback
from card_navigator.core.mapping_index import MappingIndex
from card_navigator.core.resolution_cache import CacheStats, ResolutionCache
from card_navigator.core.resolver import PriorityResolver, ResolverConfig
from card_navigator.core.store import PresetStore
from card_navigator.data_models import Context, Preset, PresetSettings
from card_navigator.errors import StaleReferenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Which preset a context resolved to, and why.

    ``revision`` is the store revision the decision was made against.
    """

    preset_id: str
    mapping_id: Optional[str]
    reason: str
    specificity: Optional[int]
    revision: int
    cache_hit: bool

    def as_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ContextChange:
    """Outcome of :meth:`PresetEngine.handle_context_change`."""

    resolution: Resolution
    applied: bool

    def as_payload(self) -> dict[str, Any]:
        return {"resolution": self.resolution.as_payload(), "applied": self.applied}


class PresetEngine:
    """Wire a :class:`PresetStore` to the index, resolver, cache and applier.

    The index and cache subscribe to the store, so every committed mutation
    invalidates both before the mutating call returns.
    """

    def __init__(
        self,
        store: PresetStore,
        applier: Optional[PresetApplier] = None,
        resolver_config: Optional[ResolverConfig] = None,
        cache_size: int = DEFAULT_CACHE_SIZE,
        auto_apply: bool = True,
    ) -> None:
        self.store = store
        self.index = MappingIndex(store.get_all_mappings)
        self.resolver = PriorityResolver(
            priority_list=store.get_priority_list,
            default_preset=lambda: store.default_preset_id,
            preset_exists=store.has_preset,
            config=resolver_config,
        )
        self.cache = ResolutionCache(self.index, max_entries=cache_size)
        self.applier = applier or PresetApplier(store)
        self.auto_apply = auto_apply
        self._applied_revision: Optional[int] = None
        store.subscribe(self.index.invalidate)
        store.subscribe(self.cache.clear)

    @classmethod
    def from_settings(
        cls,
        settings: PresetSettings,
        refresh_callbacks: Iterable[RefreshCallback] = (),
    ) -> "PresetEngine":
        """Build an engine (not yet loaded) from navigator.yaml settings."""
        store = PresetStore(settings.store_path)
        applier = PresetApplier(
            store,
            live=LiveConfiguration(settings.live_config),
            global_only_keys=settings.global_only_keys,
            refresh_callbacks=refresh_callbacks,
        )
        return cls(
            store,
            applier=applier,
            resolver_config=ResolverConfig(settings.mapping_priority_tiebreak),
            cache_size=settings.cache_size,
            auto_apply=settings.auto_apply,
        )

    async def load(self) -> None:
        await self.store.load()

    # ==========================================================================
    # RESOLUTION
    # ==========================================================================

    def resolve(self, context: Context) -> Resolution:
        """Resolve ``context`` to a single preset.

        Raises:
            InvariantViolationError: If nothing matches and the default preset
                has been deleted without a replacement.
        """
        decision, hit = self.cache.get_or_compute(
            context, lambda: self.resolver.resolve(self.index.match(context))
        )
        return Resolution(
            preset_id=decision.preset_id,
            mapping_id=decision.mapping_id,
            reason=decision.reason,
            specificity=decision.specificity,
            revision=self.store.revision,
            cache_hit=hit,
        )

    def resolve_preset_for_context(self, context: Context) -> str:
        return self.resolve(context).preset_id

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    def apply_preset(self, preset_id: str) -> dict[str, Any]:
        """Make ``preset_id`` the active configuration.

        Raises:
            NotFoundError: If ``preset_id`` is not a live preset.
        """
        live = self.applier.apply(preset_id)
        self._applied_revision = self.store.revision
        return live

    def apply_resolution(self, resolution: Resolution) -> dict[str, Any]:
        """Apply the preset chosen by an earlier :meth:`resolve` call.

        Raises:
            StaleReferenceError: If the preset was deleted after resolution.
        """
        if not self.store.has_preset(resolution.preset_id):
            logger.warning(
                "Resolved preset '%s' (revision %s) no longer exists at revision %s",
                resolution.preset_id,
                resolution.revision,
                self.store.revision,
            )
            raise StaleReferenceError(
                f"Preset '{resolution.preset_id}' was deleted after it was resolved; re-resolve the context."
            )
        return self.apply_preset(resolution.preset_id)

    @property
    def last_applied_preset_id(self) -> Optional[str]:
        return self.applier.live.last_active_preset_id

    def handle_context_change(self, context: Context) -> ContextChange:
        """React to the active note changing.

        The winning preset is applied when auto-apply is on, unless it is the
        preset applied last and the store has not changed since then.
        """
        resolution = self.resolve(context)
        if not self.auto_apply:
            return ContextChange(resolution, applied=False)
        if (
            resolution.preset_id == self.last_applied_preset_id
            and self._applied_revision == self.store.revision
        ):
            return ContextChange(resolution, applied=False)
        self.apply_resolution(resolution)
        return ContextChange(resolution, applied=True)

    # ==========================================================================
    # PRESET MANAGEMENT
    # ==========================================================================

    def get_all_presets(self) -> list[Preset]:
        return self.store.get_all_presets()

    def get_preset(self, preset_id: str) -> Optional[Preset]:
        return self.store.get_preset(preset_id)

    def get_priority_list(self) -> list[str]:
        return self.store.get_priority_list()

    async def create_preset(self, config: Any) -> Preset:
        return await self.store.create_preset(config)

    async def update_preset(self, preset: Any) -> None:
        await self.store.update_preset(preset)

    async def delete_preset(self, preset_id: str, new_default_id: Optional[str] = None) -> None:
        await self.store.delete_preset(preset_id, new_default_id)

    async def add_mapping(self, preset_id: str, mapping: Any) -> Any:
        return await self.store.add_mapping(preset_id, mapping)

    async def remove_mapping(self, mapping_id: str) -> None:
        await self.store.remove_mapping(mapping_id)

    async def update_priority_list(self, ordered_mapping_ids: Iterable[str]) -> list[str]:
        return await self.store.update_priority_list(ordered_mapping_ids)
