"""Authoritative preset storage backed by a JSON file.

All mutations run one at a time under an :class:`asyncio.Lock`. Each one
builds a candidate copy of the state, writes it to disk, and only then swaps
it in and notifies listeners (the mapping index and resolution cache) without
yielding to the event loop in between. A failed write therefore leaves the
committed state untouched, and no reader can observe a half-applied change.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from card_navigator.constants import DEFAULT_PRESET_DESCRIPTION, DEFAULT_PRESET_NAME
from card_navigator.data_models import (
    MAPPING_ADAPTER,
    MAPPING_FIELD_ALIASES,
    Preset,
    PresetStoreDocument,
    new_id,
)
from card_navigator.errors import NotFoundError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONFIG_BUNDLE: dict[str, Any] = {
    "cardSetConfig": {"type": "activeFolder", "includeSubfolders": False},
    "layoutConfig": {
        "type": "grid",
        "cardWidth": 300,
        "cardHeight": 200,
        "gap": 10,
        "padding": 10,
    },
    "cardRenderConfig": {
        "showFileName": True,
        "showFirstHeader": True,
        "showBody": True,
        "bodyLength": 200,
        "renderMarkdown": True,
    },
}


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def _parse_preset(payload: Any) -> Preset:
    """Validate ``payload`` (a dict or :class:`Preset`) into a fresh Preset.

    Raises:
        ValidationError: If the payload is structurally invalid.
    """
    if isinstance(payload, Preset):
        payload = payload.model_dump(by_alias=True)
    try:
        return Preset.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid preset: {exc}") from exc


def _parse_mapping(payload: Any) -> Any:
    """Validate ``payload`` (a dict or mapping model) into a fresh mapping.

    Raises:
        ValidationError: If the payload is not a valid folder, tag, date or
            property mapping.
    """
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump(by_alias=True)
    try:
        return MAPPING_ADAPTER.validate_python(payload)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid mapping: {exc}") from exc


def _aliased(changes: dict[str, Any]) -> dict[str, Any]:
    """Rename snake_case mapping fields in ``changes`` to their persisted names."""
    return {MAPPING_FIELD_ALIASES.get(key, key): value for key, value in changes.items()}


def _bind(mapping: Any, preset_id: str) -> Any:
    return mapping.model_copy(update={"preset_id": preset_id})


def _with_mappings(preset: Preset, mappings: list[Any]) -> Preset:
    return preset.model_copy(update={"mappings": [_bind(m, preset.id) for m in mappings]})


@dataclass
class _State:
    """Candidate copy of the store contents a mutation works on."""

    presets: dict[str, Preset]
    priority: list[str]
    default_preset_id: Optional[str]
    notes: list[str] = field(default_factory=list)

    def mapping_owner(self, mapping_id: str) -> Optional[Preset]:
        for preset in self.presets.values():
            if preset.get_mapping(mapping_id) is not None:
                return preset
        return None

    def mapping_ids(self, exclude_preset: Optional[str] = None) -> set[str]:
        return {
            mapping.id
            for preset in self.presets.values()
            if preset.id != exclude_preset
            for mapping in preset.mappings
        }

    def require_preset(self, preset_id: str) -> Preset:
        try:
            return self.presets[preset_id]
        except KeyError as exc:
            raise NotFoundError(f"Preset '{preset_id}' not found.") from exc

    def prune_priority(self) -> None:
        live = self.mapping_ids()
        self.priority = [mapping_id for mapping_id in self.priority if mapping_id in live]

    def to_document(self) -> PresetStoreDocument:
        return PresetStoreDocument(
            default_preset_id=self.default_preset_id,
            presets=list(self.presets.values()),
            priority=list(self.priority),
        )


# ==============================================================================
# STORE
# ==============================================================================


class PresetStore:
    """CRUD over presets, their mappings and the global priority list."""

    def __init__(
        self,
        path: Path,
        listeners: Iterable[Callable[[], None]] = (),
        default_bundle: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Args:
            path: Location of the JSON backing file.
            listeners: Callables run after every committed mutation, before
                the mutating call returns.
            default_bundle: Configuration bundle for a synthesized default
                preset. Defaults to :data:`DEFAULT_CONFIG_BUNDLE`.
        """
        self.path = Path(path)
        self._listeners: list[Callable[[], None]] = list(listeners)
        self._default_bundle = copy.deepcopy(default_bundle or DEFAULT_CONFIG_BUNDLE)
        self._presets: dict[str, Preset] = {}
        self._priority: list[str] = []
        self._default_preset_id: Optional[str] = None
        self._revision = 0
        self._lock = asyncio.Lock()

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Register a callable to run after every committed mutation."""
        self._listeners.append(listener)

    # ==========================================================================
    # READS
    # ==========================================================================

    @property
    def revision(self) -> int:
        """Counter bumped by every committed mutation (including loads)."""
        return self._revision

    @property
    def default_preset_id(self) -> Optional[str]:
        return self._default_preset_id

    def has_preset(self, preset_id: str) -> bool:
        return preset_id in self._presets

    def get_preset(self, preset_id: str) -> Optional[Preset]:
        preset = self._presets.get(preset_id)
        return preset.model_copy(deep=True) if preset is not None else None

    def get_all_presets(self) -> list[Preset]:
        return [preset.model_copy(deep=True) for preset in self._presets.values()]

    def get_priority_list(self) -> list[str]:
        return list(self._priority)

    def get_mapping(self, mapping_id: str) -> Optional[Any]:
        for preset in self._presets.values():
            mapping = preset.get_mapping(mapping_id)
            if mapping is not None:
                return mapping.model_copy(deep=True)
        return None

    def get_all_mappings(self) -> list[Any]:
        """Every mapping in global store order, bound to its owning preset."""
        return [mapping for preset in self._presets.values() for mapping in preset.mappings]

    def export_preset(self, preset_id: str) -> dict[str, Any]:
        """Return the persisted record of one preset.

        Raises:
            NotFoundError: If ``preset_id`` is unknown.
        """
        preset = self._presets.get(preset_id)
        if preset is None:
            raise NotFoundError(f"Preset '{preset_id}' not found.")
        return preset.as_record()

    def export_document(self) -> dict[str, Any]:
        """Return the whole store in its persisted JSON shape."""
        return self._snapshot().to_document().model_dump(mode="json", by_alias=True, exclude_none=True)

    # ==========================================================================
    # PERSISTENCE
    # ==========================================================================

    async def load(self) -> None:
        """Load the backing file, degrading to an empty store on any failure.

        A default preset is synthesized (and written back) when the file is
        missing, unreadable, or names no existing default. A file with invalid
        content is first moved aside to ``<name>.corrupt-<timestamp>``. A file
        that cannot be read at all is never overwritten; the seeded default
        then stays in memory.
        """
        async with self._lock:
            corrupt = False
            writable = True
            try:
                raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
                document = PresetStoreDocument.model_validate_json(raw)
            except FileNotFoundError:
                logger.info("No preset store at %s; starting with an empty store", self.path)
                document = PresetStoreDocument()
            except OSError as exc:
                logger.warning("Preset store at %s is unreadable, starting empty: %s", self.path, exc)
                document = PresetStoreDocument()
                writable = False
            except (UnicodeDecodeError, PydanticValidationError) as exc:
                logger.warning("Preset store at %s is unreadable, starting empty: %s", self.path, exc)
                document = PresetStoreDocument()
                corrupt = True

            state = _State(
                presets={preset.id: preset for preset in document.presets},
                priority=list(dict.fromkeys(document.priority)),
                default_preset_id=document.default_preset_id,
            )
            state.prune_priority()

            seeded = state.default_preset_id not in state.presets
            if seeded:
                default = self._synthesize_default()
                state.presets[default.id] = default
                state.default_preset_id = default.id
                logger.info("Seeded default preset '%s'", default.id)

            self._commit(state)

            if corrupt:
                try:
                    backup = await asyncio.to_thread(self._move_aside)
                except OSError as exc:
                    logger.warning("Could not move aside %s: %s", self.path, exc)
                    writable = False
                else:
                    logger.warning("Moved unreadable preset store to %s", backup)

            if seeded and not writable:
                logger.warning("Seeded default preset kept in memory only; %s was left untouched", self.path)
            elif seeded:
                try:
                    await self._write(state.to_document())
                except PersistenceError as exc:
                    logger.warning("Seeded default preset kept in memory only: %s", exc)

        logger.info("Loaded %s presets from %s", len(self._presets), self.path)

    def _synthesize_default(self) -> Preset:
        return Preset(
            name=DEFAULT_PRESET_NAME,
            description=DEFAULT_PRESET_DESCRIPTION,
            config_bundle=copy.deepcopy(self._default_bundle),
        )

    async def _write(self, document: PresetStoreDocument) -> None:
        payload = document.model_dump_json(by_alias=True, exclude_none=True, indent=2)
        try:
            await asyncio.to_thread(self._write_atomic, payload)
        except OSError as exc:
            logger.error("Failed to write preset store %s: %s", self.path, exc)
            raise PersistenceError(f"Could not write preset store at {self.path}: {exc}") from exc

    def _write_atomic(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(self.path)

    def _move_aside(self) -> Path:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        backup = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        self.path.replace(backup)
        return backup

    def _snapshot(self) -> _State:
        return _State(
            presets=dict(self._presets),
            priority=list(self._priority),
            default_preset_id=self._default_preset_id,
        )

    def _commit(self, state: _State) -> None:
        self._presets = state.presets
        self._priority = state.priority
        self._default_preset_id = state.default_preset_id
        self._revision += 1
        for listener in self._listeners:
            listener()

    async def _mutate(self, action: str, change: Callable[[_State], T]) -> T:
        """Apply ``change`` to a copy of the state, persist it, then commit.

        ``change`` raises to abort; nothing is written or committed then.
        """
        async with self._lock:
            state = self._snapshot()
            result = change(state)
            try:
                document = state.to_document()
            except PydanticValidationError as exc:
                raise ValidationError(f"Cannot {action}: {exc}") from exc
            await self._write(document)
            self._commit(state)
        logger.info("Preset store: %s (revision %s)", action, self._revision)
        for note in state.notes:
            logger.info("Preset store: %s", note)
        return result

    # ==========================================================================
    # PRESET MUTATIONS
    # ==========================================================================

    async def create_preset(self, config: Any) -> Preset:
        """Create a preset from ``config`` under a freshly allocated id.

        ``config`` carries ``name``, optional ``description``, the required
        ``configBundle`` and optionally initial ``mappings``.

        Raises:
            ValidationError: If ``config`` is structurally invalid or reuses a
                mapping id that already exists.
        """
        if isinstance(config, Preset):
            config = config.model_dump(by_alias=True)
        if not isinstance(config, dict):
            raise ValidationError("Preset configuration must be a mapping of fields.")
        preset = _parse_preset({**config, "id": new_id()})

        def change(state: _State) -> Preset:
            clashes = {m.id for m in preset.mappings} & state.mapping_ids()
            if clashes:
                raise ValidationError(f"Mapping ids already in use: {', '.join(sorted(clashes))}")
            state.presets[preset.id] = preset
            return preset.model_copy(deep=True)

        return await self._mutate(f"created preset '{preset.name}' ({preset.id})", change)

    async def update_preset(self, preset: Any) -> None:
        """Replace the stored preset with the same id.

        Mappings dropped by the update are pruned from the priority list.

        Raises:
            ValidationError: If ``preset`` is invalid or takes a mapping id
                owned by another preset.
            NotFoundError: If no preset has that id.
        """
        replacement = _parse_preset(preset)

        def change(state: _State) -> None:
            state.require_preset(replacement.id)
            clashes = {m.id for m in replacement.mappings} & state.mapping_ids(exclude_preset=replacement.id)
            if clashes:
                raise ValidationError(f"Mapping ids owned by other presets: {', '.join(sorted(clashes))}")
            state.presets[replacement.id] = replacement
            state.prune_priority()

        await self._mutate(f"updated preset '{replacement.name}' ({replacement.id})", change)

    async def delete_preset(self, preset_id: str, new_default_id: Optional[str] = None) -> None:
        """Remove a preset and all of its mappings.

        Deleting the default preset without ``new_default_id`` leaves the store
        without a default; resolutions that fall through to it fail with
        :class:`~card_navigator.errors.InvariantViolationError` until
        :meth:`set_default_preset` is called.

        Raises:
            NotFoundError: If ``preset_id`` (or ``new_default_id``) is unknown.
            ValidationError: If ``new_default_id`` is the preset being deleted.
        """

        def change(state: _State) -> None:
            state.require_preset(preset_id)
            if new_default_id is not None:
                if new_default_id == preset_id:
                    raise ValidationError("A preset cannot replace itself as the default.")
                state.require_preset(new_default_id)
            del state.presets[preset_id]
            state.prune_priority()
            if new_default_id is not None:
                state.default_preset_id = new_default_id
            elif state.default_preset_id == preset_id:
                state.notes.append(
                    f"default preset '{preset_id}' deleted; a new default must be assigned"
                )

        await self._mutate(f"deleted preset {preset_id}", change)
        if self._default_preset_id == preset_id:
            logger.warning("Default preset '%s' was deleted without a replacement", preset_id)

    async def set_default_preset(self, preset_id: str) -> None:
        """Designate the preset used when no mapping matches.

        Raises:
            NotFoundError: If ``preset_id`` is unknown.
        """

        def change(state: _State) -> None:
            state.require_preset(preset_id)
            state.default_preset_id = preset_id

        await self._mutate(f"default preset set to {preset_id}", change)

    async def duplicate_preset(self, preset_id: str, name: Optional[str] = None) -> Preset:
        """Copy a preset's bundle and mappings under new ids.

        Raises:
            NotFoundError: If ``preset_id`` is unknown.
        """

        def change(state: _State) -> Preset:
            source = state.require_preset(preset_id)
            duplicate_id = new_id()
            mappings = [
                m.model_copy(update={"id": new_id(), "preset_id": duplicate_id}, deep=True)
                for m in source.mappings
            ]
            duplicate = source.model_copy(
                update={
                    "id": duplicate_id,
                    "name": (name or "").strip() or f"{source.name} (copy)",
                    "mappings": mappings,
                },
                deep=True,
            )
            state.presets[duplicate.id] = duplicate
            return duplicate.model_copy(deep=True)

        return await self._mutate(f"duplicated preset {preset_id}", change)

    async def import_preset(self, payload: Any) -> Preset:
        """Add a preset from an exported record.

        The record's id is kept when free; otherwise a new one is allocated.
        Mapping ids that collide with existing mappings are re-issued.

        Raises:
            ValidationError: If the record is invalid.
        """
        imported = _parse_preset(payload)

        def change(state: _State) -> Preset:
            preset_id = imported.id if imported.id not in state.presets else new_id()
            taken = state.mapping_ids()
            mappings = [m if m.id not in taken else m.model_copy(update={"id": new_id()}) for m in imported.mappings]
            preset = _with_mappings(imported.model_copy(update={"id": preset_id}), mappings)
            state.presets[preset.id] = preset
            return preset.model_copy(deep=True)

        return await self._mutate(f"imported preset '{imported.name}'", change)

    async def import_document(self, payload: Any) -> None:
        """Replace the entire store with an exported document.

        Raises:
            ValidationError: If the document is invalid or its default preset
                is missing.
        """
        try:
            document = PresetStoreDocument.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid preset store document: {exc}") from exc
        presets = {preset.id: preset for preset in document.presets}
        if document.default_preset_id not in presets:
            raise ValidationError("Imported document must name an existing default preset.")

        def change(state: _State) -> None:
            state.presets = presets
            state.priority = list(dict.fromkeys(document.priority))
            state.default_preset_id = document.default_preset_id
            state.prune_priority()

        await self._mutate(f"imported {len(presets)} presets", change)

    # ==========================================================================
    # MAPPING MUTATIONS
    # ==========================================================================

    async def add_mapping(self, preset_id: str, mapping: Any) -> Any:
        """Attach a mapping to a preset and return it.

        Raises:
            ValidationError: If the mapping is invalid or its id is already
                used anywhere in the store.
            NotFoundError: If ``preset_id`` is unknown.
        """
        parsed = _parse_mapping(mapping)

        def change(state: _State) -> Any:
            preset = state.require_preset(preset_id)
            if parsed.id in state.mapping_ids():
                raise ValidationError(f"Mapping id '{parsed.id}' is already in use.")
            state.presets[preset_id] = _with_mappings(preset, [*preset.mappings, parsed])
            return _bind(parsed, preset_id)

        return await self._mutate(f"added {parsed.type} mapping {parsed.id} to preset {preset_id}", change)

    async def update_mapping(self, mapping_id: str, changes: dict[str, Any]) -> Any:
        """Merge ``changes`` into an existing mapping and return the result.

        Keys may use either the persisted names (``includeSubfolders``) or
        the Python field names (``include_subfolders``).

        The mapping keeps its id and owner; its position in the priority list
        is unchanged.

        Raises:
            NotFoundError: If ``mapping_id`` is unknown.
            ValidationError: If the merged mapping is invalid or ``changes``
                tries to alter the id.
        """
        changes = _aliased(changes)
        if "id" in changes and changes["id"] != mapping_id:
            raise ValidationError("A mapping's id cannot be changed.")

        def change(state: _State) -> Any:
            owner = state.mapping_owner(mapping_id)
            if owner is None:
                raise NotFoundError(f"Mapping '{mapping_id}' not found.")
            current = owner.get_mapping(mapping_id)
            merged = _parse_mapping({**current.model_dump(by_alias=True), **changes})
            mappings = [merged if m.id == mapping_id else m for m in owner.mappings]
            state.presets[owner.id] = _with_mappings(owner, mappings)
            return _bind(merged, owner.id)

        return await self._mutate(f"updated mapping {mapping_id}", change)

    async def remove_mapping(self, mapping_id: str) -> None:
        """Detach a mapping from its preset and drop it from the priority list.

        Raises:
            NotFoundError: If ``mapping_id`` is unknown.
        """

        def change(state: _State) -> None:
            owner = state.mapping_owner(mapping_id)
            if owner is None:
                raise NotFoundError(f"Mapping '{mapping_id}' not found.")
            state.presets[owner.id] = _with_mappings(
                owner, [m for m in owner.mappings if m.id != mapping_id]
            )
            state.prune_priority()

        await self._mutate(f"removed mapping {mapping_id}", change)

    async def update_priority_list(self, ordered_mapping_ids: Iterable[str]) -> list[str]:
        """Replace the global priority list and return what was kept.

        Ids without a live mapping, and repeats, are dropped silently.
        """
        requested = list(ordered_mapping_ids)

        def change(state: _State) -> list[str]:
            live = state.mapping_ids()
            kept = [mapping_id for mapping_id in dict.fromkeys(requested) if mapping_id in live]
            dropped = [mapping_id for mapping_id in requested if mapping_id not in live]
            if dropped:
                state.notes.append(f"dropped unknown mapping ids from priority list: {', '.join(dropped)}")
            state.priority = kept
            return list(kept)

        return await self._mutate(f"priority list set to {len(requested)} entries", change)
