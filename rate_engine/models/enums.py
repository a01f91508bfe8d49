from enum import Enum


class PincodeTier(str, Enum):
    TIER_1 = "tier_1"  # metro
    TIER_2 = "tier_2"  # city
    TIER_3 = "tier_3"  # rural


class CompletionSlab(str, Enum):
    WITHIN_24H = "within_24h"
    WITHIN_48H = "within_48h"
    WITHIN_72H = "within_72h"
    WITHIN_1W = "within_1w"

    @property
    def urgency_rank(self) -> int:
        """0 is the most urgent slab."""
        return list(CompletionSlab).index(self)

    @property
    def max_hours(self) -> int:
        return _SLAB_MAX_HOURS[self]


_SLAB_MAX_HOURS = {
    CompletionSlab.WITHIN_24H: 24,
    CompletionSlab.WITHIN_48H: 48,
    CompletionSlab.WITHIN_72H: 72,
    CompletionSlab.WITHIN_1W: 168,
}


class DynamicFactor(str, Enum):
    QUALITY = "quality"
    DEMAND = "demand"
    DISTANCE = "distance"
