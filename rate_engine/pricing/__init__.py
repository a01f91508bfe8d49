"""Pricing — tier classification, slab resolution, config store and rate calculation."""

from rate_engine.pricing.calculator import RateCalculator, round_currency
from rate_engine.pricing.rate_config import RateCardConfig, RateConfigStore
from rate_engine.pricing.slab_resolver import resolve_slab
from rate_engine.pricing.tier_classifier import TierClassifier

__all__ = [
    "RateCalculator",
    "RateCardConfig",
    "RateConfigStore",
    "TierClassifier",
    "resolve_slab",
    "round_currency",
]
