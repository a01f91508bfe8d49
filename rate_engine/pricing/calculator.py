"""
Rate Calculator — prices a single case for a field worker.

Steps, applied in order to a running `rate` (each multiplier composes on the
result of the previous one, not on the original base):

  1. pincode -> tier (unknown pincodes default to tier_2)
  2. (tier, slab[, client]) -> active rate card, or PolicyNotFoundError
  3. rate = base_rate_override if given, else card.base_rate
  4. rate *= tier multiplier
  5. rate *= slab multiplier
  6. rate *= 1 + quality term + demand term + distance term   (if enabled)
  7. travel_allowance = card.travel_allowance
  8. bonus = card.bonus + rate * slab.bonus_percentage
  9. total = rate + travel_allowance + bonus
 10. rate, bonus, total rounded half-up to 2 decimals

Dynamic terms only ever add to the multiplier. A score below its threshold,
a distance beyond max_km, or a missing input contributes nothing.

Scores and distances are not range-checked; callers must pass values in
their documented ranges (scores in [0, 1], distance >= 0).
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Protocol

from rate_engine.config import Settings, get_settings
from rate_engine.exceptions import PolicyNotFoundError
from rate_engine.models.enums import CompletionSlab, PincodeTier
from rate_engine.models.schemas import RateBreakdown, RateCalculation, RateCard
from rate_engine.pricing.rate_config import DynamicPricingConfig, RateCardConfig
from rate_engine.pricing.tier_classifier import TierClassifier

logger = logging.getLogger(__name__)


class ConfigProvider(Protocol):
    def get_config(self) -> RateCardConfig: ...


class RateCardLookup(Protocol):
    def find_active(
        self,
        tier: PincodeTier,
        slab: CompletionSlab,
        client_id: Optional[str] = None,
    ) -> Optional[RateCard]: ...


def round_currency(value: float) -> float:
    """Round half-up to 2 decimals."""
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_number(value: float, places: int = 2) -> str:
    """Fixed-point with trailing zeros stripped: 500.0 -> "500", 1.2480 -> "1.248"."""
    text = f"{value:.{places}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def dynamic_multiplier(
    dynamic: DynamicPricingConfig,
    quality_score: Optional[float] = None,
    demand_level: Optional[float] = None,
    distance_km: Optional[float] = None,
) -> tuple[float, list[str]]:
    """
    Composite dynamic multiplier and one adjustment line per applied term,
    in the order quality, demand, distance. Returns (1.0, []) when disabled.
    """
    if not dynamic.enabled:
        return 1.0, []

    factors = dynamic.factors
    multiplier = 1.0
    adjustments: list[str] = []

    if quality_score is not None and quality_score >= factors.quality.threshold:
        quality_bonus = (quality_score - factors.quality.threshold) * factors.quality.weight
        multiplier += quality_bonus
        adjustments.append(f"Quality bonus: +{quality_bonus * 100:.1f}%")

    if demand_level is not None and demand_level >= factors.demand.threshold:
        demand_bonus = (demand_level - factors.demand.threshold) * factors.demand.weight
        multiplier += demand_bonus
        adjustments.append(f"Demand bonus: +{demand_bonus * 100:.1f}%")

    if distance_km is not None and distance_km <= factors.distance.max_km:
        distance_bonus = (1 - distance_km / factors.distance.max_km) * factors.distance.weight
        multiplier += distance_bonus
        adjustments.append(f"Distance bonus: +{distance_bonus * 100:.1f}%")

    return multiplier, adjustments


class RateCalculator:
    """
    Produces RateCalculation results from a config provider and a rate card
    lookup. Holds no per-call state; each call reads one config snapshot.
    """

    def __init__(
        self,
        config_provider: ConfigProvider,
        rate_cards: RateCardLookup,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._config_provider = config_provider
        self._rate_cards = rate_cards
        self._classifier: Optional[TierClassifier] = None

    def classifier(self, config: Optional[RateCardConfig] = None) -> TierClassifier:
        """Tier classifier for `config`, rebuilt only when the config object changes."""
        if config is None:
            config = self._config_provider.get_config()
        classifier = self._classifier
        if classifier is None or classifier.config is not config:
            classifier = TierClassifier(config)
            self._classifier = classifier
        return classifier

    def resolve_tier(self, pincode: str) -> PincodeTier:
        return self.classifier().resolve_tier(pincode)

    def _lookup(
        self,
        tier: PincodeTier,
        slab: CompletionSlab,
        client_id: Optional[str],
    ) -> RateCard:
        card = None
        if client_id:
            card = self._rate_cards.find_active(tier, slab, client_id)
        if card is None:
            card = self._rate_cards.find_active(tier, slab, None)
        if card is None:
            logger.warning(
                f"No rate card for {tier.value}/{slab.value}"
                + (f" client={client_id}" if client_id else "")
            )
            raise PolicyNotFoundError(tier.value, slab.value, client_id)
        return card

    def calculate(
        self,
        pincode: str,
        slab: CompletionSlab | str,
        base_rate_override: Optional[float] = None,
        quality_score: Optional[float] = None,
        demand_level: Optional[float] = None,
        distance_km: Optional[float] = None,
        client_id: Optional[str] = None,
    ) -> RateCalculation:
        """Price one case. All-or-nothing: any failure raises, nothing partial is returned."""
        slab = CompletionSlab(slab)
        config = self._config_provider.get_config()

        tier = self.classifier(config).resolve_tier(pincode)
        card = self._lookup(tier, slab, client_id)

        starting_rate = base_rate_override if base_rate_override is not None else card.base_rate
        tier_mult = config.tier_multiplier(tier)
        slab_cfg = config.slab(slab)

        adjustments = [
            f"Pincode tier ({config.tier_name(tier)}): {tier_mult * 100:.0f}%",
            f"Completion slab ({slab.value}): {slab_cfg.multiplier * 100:.0f}%",
        ]

        rate = starting_rate
        rate *= tier_mult
        rate *= slab_cfg.multiplier

        dyn_mult, dyn_adjustments = dynamic_multiplier(
            config.dynamic_pricing,
            quality_score=quality_score,
            demand_level=demand_level,
            distance_km=distance_km,
        )
        rate *= dyn_mult
        adjustments.extend(dyn_adjustments)

        travel_allowance = card.travel_allowance

        bonus = card.bonus + rate * slab_cfg.bonus_percentage
        if slab_cfg.bonus_percentage > 0:
            adjustments.append(f"Completion bonus: {slab_cfg.bonus_percentage * 100:.1f}%")

        total = rate + travel_allowance + bonus

        combined = tier_mult * slab_cfg.multiplier * dyn_mult
        symbol = self.settings.currency_symbol
        base_calculation = (
            f"{symbol}{format_number(starting_rate)} × {format_number(combined, 4)} = {symbol}{rate:.2f}"
        )

        result = RateCalculation(
            base_rate=round_currency(rate),
            travel_allowance=travel_allowance,
            bonus=round_currency(bonus),
            total_rate=round_currency(total),
            breakdown=RateBreakdown(
                pincode_tier=tier,
                completion_slab=slab,
                base_calculation=base_calculation,
                adjustments=adjustments,
                rate_card_id=card.id,
            ),
        )
        logger.info(
            f"Rate for {pincode} ({tier.value}/{slab.value}): "
            f"{symbol}{result.total_rate:,.2f} [{base_calculation}]"
        )
        logger.debug(f"Adjustments: {adjustments}")
        return result
