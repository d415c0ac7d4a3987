"""Read-side index answering "which mappings match this context".

The index is pure derived state: it is rebuilt from the store's current
mapping set on the first query after :meth:`MappingIndex.invalidate` and is
never patched incrementally.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from card_navigator.constants import FOLDER_SPECIFICITY_BASE, NON_FOLDER_SPECIFICITY
from card_navigator.core.vault_operations import folder_ancestry, folder_segments
from card_navigator.data_models import (
    Context,
    DateMapping,
    FolderMapping,
    PropertyMapping,
    TagMapping,
)

logger = logging.getLogger(__name__)

DATE_GRANULARITY_NONE = "none"
DATE_GRANULARITY_DAY = "day"
DATE_GRANULARITY_EXACT = "exact"


@dataclass(frozen=True)
class MappingMatch:
    """A mapping that matched a context, with the data the resolver ranks on.

    ``order`` is the mapping's position in global store order (presets in
    creation order, mappings in the order they were added).
    """

    mapping: Any
    preset_id: str
    specificity: int
    order: int

    @property
    def mapping_id(self) -> str:
        return self.mapping.id

    @property
    def kind(self) -> str:
        return self.mapping.type


def folder_specificity(mapping: FolderMapping) -> int:
    """Deeper folder paths score higher; every folder outranks other kinds."""
    return FOLDER_SPECIFICITY_BASE + len(folder_segments(mapping.path))


class MappingIndex:
    """Lookup structures over every enabled mapping in the store."""

    def __init__(self, source: Callable[[], Iterable[Any]]) -> None:
        """
        Args:
            source: Callable returning all mappings in global store order, each
                bound to its owning preset through ``preset_id``.
        """
        self._source = source
        self._built = False
        self._folders: dict[tuple[str, ...], list[tuple[int, FolderMapping]]] = {}
        self._tags: dict[str, list[tuple[int, TagMapping]]] = {}
        self._dates: list[tuple[int, DateMapping]] = []
        self._properties: dict[tuple[str, str], list[tuple[int, PropertyMapping]]] = {}
        self._size = 0

    def invalidate(self) -> None:
        """Drop all derived state; the next query rebuilds it."""
        self._built = False
        self._folders = {}
        self._tags = {}
        self._dates = []
        self._properties = {}
        self._size = 0

    @property
    def is_built(self) -> bool:
        return self._built

    def __len__(self) -> int:
        self._ensure_built()
        return self._size

    def _ensure_built(self) -> None:
        if self._built:
            return

        folders: dict[tuple[str, ...], list[tuple[int, FolderMapping]]] = {}
        tags: dict[str, list[tuple[int, TagMapping]]] = {}
        dates: list[tuple[int, DateMapping]] = []
        properties: dict[tuple[str, str], list[tuple[int, PropertyMapping]]] = {}
        size = 0

        for order, mapping in enumerate(self._source()):
            if not mapping.enabled:
                continue
            size += 1
            if isinstance(mapping, FolderMapping):
                folders.setdefault(folder_segments(mapping.path), []).append((order, mapping))
            elif isinstance(mapping, TagMapping):
                tags.setdefault(mapping.value, []).append((order, mapping))
            elif isinstance(mapping, DateMapping):
                dates.append((order, mapping))
            elif isinstance(mapping, PropertyMapping):
                key = (mapping.match.name, mapping.match.value)
                properties.setdefault(key, []).append((order, mapping))

        self._folders = folders
        self._tags = tags
        self._dates = dates
        self._properties = properties
        self._size = size
        self._built = True
        logger.debug("Mapping index rebuilt with %s enabled mappings", size)

    # ==========================================================================
    # QUERIES
    # ==========================================================================

    def match_folder(self, context: Context) -> list[MappingMatch]:
        """Folder mappings on ``context.folder_path`` or, when they include
        subfolders, on one of its ancestors.
        """
        self._ensure_built()
        matches: list[MappingMatch] = []
        for index, ancestor in enumerate(folder_ancestry(context.folder_path)):
            exact = index == 0
            for order, mapping in self._folders.get(ancestor, ()):
                if exact or mapping.include_subfolders:
                    matches.append(
                        MappingMatch(mapping, mapping.preset_id, folder_specificity(mapping), order)
                    )
        return matches

    def match_tag(self, context: Context) -> list[MappingMatch]:
        """Tag mappings whose value is one of the context's tags.

        Mappings that include subtags also match nested tags (``a`` matches
        ``a/b``).
        """
        self._ensure_built()
        found: dict[int, TagMapping] = {}
        for tag in context.tags:
            for order, mapping in self._tags.get(tag, ()):
                found[order] = mapping
            parts = tag.split("/")
            for depth in range(1, len(parts)):
                for order, mapping in self._tags.get("/".join(parts[:depth]), ()):
                    if mapping.include_subtags:
                        found[order] = mapping
        return [
            MappingMatch(mapping, mapping.preset_id, NON_FOLDER_SPECIFICITY, order)
            for order, mapping in found.items()
        ]

    def match_date(self, context: Context) -> list[MappingMatch]:
        """Date mappings whose inclusive range holds the reference date."""
        self._ensure_built()
        if context.reference_date is None:
            return []
        return [
            MappingMatch(mapping, mapping.preset_id, NON_FOLDER_SPECIFICITY, order)
            for order, mapping in self._dates
            if mapping.date_range.contains(context.reference_date)
        ]

    def match_property(self, context: Context) -> list[MappingMatch]:
        """Property mappings whose name and value equal a context property.

        Only string property values can match; no coercion is attempted.
        """
        self._ensure_built()
        matches: list[MappingMatch] = []
        for name, value in context.properties.items():
            if not isinstance(value, str):
                continue
            for order, mapping in self._properties.get((name, value), ()):
                matches.append(
                    MappingMatch(mapping, mapping.preset_id, NON_FOLDER_SPECIFICITY, order)
                )
        return matches

    def match(self, context: Context) -> list[MappingMatch]:
        """Run all four queries and return the matches in store order."""
        matches = (
            self.match_folder(context)
            + self.match_tag(context)
            + self.match_date(context)
            + self.match_property(context)
        )
        matches.sort(key=lambda item: item.order)
        return matches

    # ==========================================================================
    # CACHE SUPPORT
    # ==========================================================================

    @property
    def property_names(self) -> frozenset[str]:
        """Names of frontmatter properties any enabled mapping looks at."""
        self._ensure_built()
        return frozenset(name for name, _ in self._properties)

    @property
    def date_granularity(self) -> str:
        """How finely reference dates must be distinguished.

        ``"none"`` without date mappings, ``"day"`` when every range is made of
        whole days, ``"exact"`` otherwise.
        """
        self._ensure_built()
        if not self._dates:
            return DATE_GRANULARITY_NONE
        if all(mapping.date_range.day_granular for _, mapping in self._dates):
            return DATE_GRANULARITY_DAY
        return DATE_GRANULARITY_EXACT
