"""Pick the single winning preset from a set of matching mappings."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Optional

from card_navigator.core.mapping_index import MappingMatch
from card_navigator.errors import InvariantViolationError

logger = logging.getLogger(__name__)

REASON_PRIORITY = "priority"
REASON_SPECIFICITY = "specificity"
REASON_DEFAULT = "default"


@dataclass(frozen=True)
class ResolverConfig:
    """Tunable parts of the resolution rules.

    Attributes:
        mapping_priority_tiebreak: When two unprioritized matches tie on
            specificity, prefer the lower ``mapping.priority`` number (mappings
            without one come after those with one) before falling back to
            store order.
    """

    mapping_priority_tiebreak: bool = True


@dataclass(frozen=True)
class Decision:
    """Outcome of a resolution."""

    preset_id: str
    mapping_id: Optional[str]
    reason: str
    specificity: Optional[int] = None


class PriorityResolver:
    """Apply explicit priority, then specificity, then the default preset.

    1. Matches whose mapping id is in the global priority list win outright;
       the lowest list index wins.
    2. Otherwise the highest specificity wins (deeper folders beat shallower
       folders, any folder beats tag/date/property).
    3. Ties are broken by explicit mapping priority (see
       :class:`ResolverConfig`), then by store order.
    4. No matches: the default preset.
    """

    def __init__(
        self,
        priority_list: Callable[[], Sequence[str]],
        default_preset: Callable[[], Optional[str]],
        preset_exists: Callable[[str], bool],
        config: Optional[ResolverConfig] = None,
    ) -> None:
        self._priority_list = priority_list
        self._default_preset = default_preset
        self._preset_exists = preset_exists
        self.config = config or ResolverConfig()

    def resolve(self, matches: Sequence[MappingMatch]) -> Decision:
        """Return the winning decision for ``matches``.

        Raises:
            InvariantViolationError: If ``matches`` is empty and the default
                preset is unset or no longer exists.
        """
        if not matches:
            return self._default_decision()

        ranks = {mapping_id: rank for rank, mapping_id in enumerate(self._priority_list())}
        prioritized = [match for match in matches if match.mapping_id in ranks]
        if prioritized:
            winner = min(prioritized, key=lambda match: ranks[match.mapping_id])
            return Decision(winner.preset_id, winner.mapping_id, REASON_PRIORITY, winner.specificity)

        winner = min(matches, key=self._specificity_key)
        return Decision(winner.preset_id, winner.mapping_id, REASON_SPECIFICITY, winner.specificity)

    def _specificity_key(self, match: MappingMatch) -> tuple[int, int, int, int]:
        explicit = match.mapping.priority if self.config.mapping_priority_tiebreak else None
        return (
            -match.specificity,
            0 if explicit is not None else 1,
            explicit if explicit is not None else 0,
            match.order,
        )

    def _default_decision(self) -> Decision:
        default_id = self._default_preset()
        if not default_id or not self._preset_exists(default_id):
            logger.error("Default preset '%s' does not exist; resolution cannot fall back", default_id)
            raise InvariantViolationError(
                f"Default preset '{default_id}' does not exist. "
                "Assign a new default preset before resolving unmatched notes."
            )
        return Decision(default_id, None, REASON_DEFAULT)
