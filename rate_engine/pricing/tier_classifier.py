"""
Tier Classifier — maps a pincode to its geographic tier.

Unknown pincodes resolve to the configured default tier (tier_2). Pricing
must never fail just because a pincode has not been classified yet.
"""

from __future__ import annotations

import logging

from rate_engine.models.enums import PincodeTier
from rate_engine.pricing.rate_config import RateCardConfig

logger = logging.getLogger(__name__)


class TierClassifier:
    """Membership lookup over the tier map of one config snapshot."""

    def __init__(self, config: RateCardConfig):
        self.config = config
        self.default_tier = config.default_tier
        # Fixed precedence: tier_1, tier_2, tier_3; first match wins.
        self._tiers: list[tuple[PincodeTier, frozenset[str]]] = [
            (tier, frozenset(config.pincode_tiers[tier].pincodes))
            for tier in PincodeTier
            if tier in config.pincode_tiers
        ]

    def resolve_tier(self, pincode: str) -> PincodeTier:
        code = str(pincode).strip()
        for tier, codes in self._tiers:
            if code in codes:
                return tier
        logger.debug(f"Pincode {code!r} not in any tier, defaulting to {self.default_tier.value}")
        return self.default_tier

    def pincode_count(self) -> dict[str, int]:
        return {tier.value: len(codes) for tier, codes in self._tiers}
