"""Redundancy policy — maps a redundancy level to its write quorum.

``minimum_required < required_providers`` for dual/triple/maximum trades
strict all-backend durability for availability: a write is accepted once
enough copies exist, not once every attempted copy exists.
"""

from __future__ import annotations

from collections.abc import Mapping

from multistore.domain.enums import RedundancyLevel
from multistore.shared.providers.types import RedundancyRequirement

DEFAULT_REQUIREMENTS: Mapping[RedundancyLevel, RedundancyRequirement] = {
    RedundancyLevel.SINGLE: RedundancyRequirement(required_providers=1, minimum_required=1),
    RedundancyLevel.DUAL: RedundancyRequirement(required_providers=2, minimum_required=1),
    RedundancyLevel.TRIPLE: RedundancyRequirement(required_providers=3, minimum_required=2),
    RedundancyLevel.MAXIMUM: RedundancyRequirement(required_providers=4, minimum_required=2),
}


class RedundancyPolicy:
    """Pure lookup table: level → (required providers, minimum successes).

    The table is configuration data.  Overrides are merged over the defaults
    and validated by ``RedundancyRequirement`` itself.
    """

    def __init__(
        self,
        overrides: Mapping[RedundancyLevel, RedundancyRequirement | tuple[int, int]] | None = None,
    ) -> None:
        table = dict(DEFAULT_REQUIREMENTS)
        for level, value in (overrides or {}).items():
            if not isinstance(value, RedundancyRequirement):
                required, minimum = value
                value = RedundancyRequirement(required_providers=required, minimum_required=minimum)
            table[RedundancyLevel.parse(level)] = value
        self._table = table

    @property
    def levels(self) -> tuple[RedundancyLevel, ...]:
        return tuple(self._table)

    def requirement_for(self, level: RedundancyLevel) -> RedundancyRequirement:
        return self._table[level]

    def plan_for(self, level: RedundancyLevel, registered: int) -> RedundancyRequirement:
        """Requirement with ``required_providers`` capped at the registered count.

        ``minimum_required`` is never lowered: a registry with fewer backends
        than the quorum fails the pre-flight check instead.
        """
        requirement = self._table[level]
        if registered >= requirement.required_providers:
            return requirement
        capped = max(registered, requirement.minimum_required)
        return RedundancyRequirement(
            required_providers=capped,
            minimum_required=requirement.minimum_required,
        )
