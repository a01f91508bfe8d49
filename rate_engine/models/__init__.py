"""Models — enums and pydantic schemas shared across the engine."""

from rate_engine.models.enums import CompletionSlab, DynamicFactor, PincodeTier
from rate_engine.models.schemas import (
    RateBreakdown,
    RateCalculation,
    RateCard,
    RateCardCreate,
    RateCardUpdate,
)

__all__ = [
    "CompletionSlab",
    "DynamicFactor",
    "PincodeTier",
    "RateBreakdown",
    "RateCalculation",
    "RateCard",
    "RateCardCreate",
    "RateCardUpdate",
]
