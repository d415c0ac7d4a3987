"""Memoized resolution outcomes keyed by a context fingerprint."""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

from card_navigator.constants import DEFAULT_CACHE_SIZE
from card_navigator.core.mapping_index import (
    DATE_GRANULARITY_DAY,
    DATE_GRANULARITY_NONE,
    MappingIndex,
)
from card_navigator.core.vault_operations import folder_segments
from card_navigator.data_models import Context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheStats:
    size: int
    hits: int
    misses: int
    invalidations: int

    def as_payload(self) -> dict[str, int]:
        return {
            "size": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "invalidations": self.invalidations,
        }


def context_fingerprint(context: Context, index: MappingIndex) -> Hashable:
    """Reduce ``context`` to the parts the current rule set can distinguish.

    The folder path and the sorted tag list are always included. The
    reference date is bucketed to the granularity date mappings need (left
    out when there are none), and only the properties some mapping looks at
    are kept.
    """
    granularity = index.date_granularity
    moment = context.reference_date
    if granularity == DATE_GRANULARITY_NONE or moment is None:
        date_key: Any = None
    elif granularity == DATE_GRANULARITY_DAY:
        date_key = moment.date()
    else:
        date_key = moment

    names = index.property_names
    properties = tuple(
        sorted(
            (name, value)
            for name, value in context.properties.items()
            if name in names and isinstance(value, str)
        )
    )
    return (
        folder_segments(context.folder_path),
        tuple(sorted(context.tags)),
        date_key,
        properties,
    )


class ResolutionCache:
    """Bounded LRU map from context fingerprint to a resolution decision.

    The whole cache is cleared on any store mutation; entries are never
    pruned selectively.
    """

    def __init__(self, index: MappingIndex, max_entries: int = DEFAULT_CACHE_SIZE) -> None:
        if max_entries < 1:
            raise ValueError("Resolution cache needs room for at least one entry.")
        self._index = index
        self._max_entries = max_entries
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def clear(self) -> None:
        self._entries.clear()
        self._invalidations += 1

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_compute(self, context: Context, compute: Callable[[], Any]) -> tuple[Any, bool]:
        """Return ``(decision, cache_hit)``, computing and storing on a miss."""
        key = context_fingerprint(context, self._index)
        decision = self._entries.get(key)
        if decision is not None:
            self._entries.move_to_end(key)
            self._hits += 1
            logger.debug("Resolution cache hit for folder '%s'", context.folder_path)
            return decision, True

        self._misses += 1
        decision = compute()
        self._entries[key] = decision
        if len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
        logger.debug("Resolution cache miss for folder '%s'", context.folder_path)
        return decision, False

    def stats(self) -> CacheStats:
        return CacheStats(len(self._entries), self._hits, self._misses, self._invalidations)
