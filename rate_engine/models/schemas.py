"""
Data schemas for rate cards and rate calculations.

RateCard is the persisted pricing row; RateCalculation is the ephemeral,
itemised result of pricing a single case and is never stored by the engine.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from .enums import CompletionSlab, PincodeTier


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_card_id() -> str:
    return f"RC-{uuid.uuid4().hex[:12].upper()}"


# ── Rate cards ───────────────────────────────────────────


class RateCard(BaseModel):
    """A stored pricing row for one (tier, slab[, client]) combination."""
    id: str = Field(default_factory=_new_card_id)
    name: str = ""
    pincode_tier: PincodeTier
    completion_slab: CompletionSlab
    client_id: Optional[str] = None  # None = global row
    base_rate: float = Field(gt=0)
    travel_allowance: float = Field(default=0.0, ge=0)
    bonus: float = Field(default=0.0, ge=0)
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    created_by: str = ""
    updated_by: str = ""

    @property
    def key(self) -> tuple[str, str, Optional[str]]:
        return (self.pincode_tier.value, self.completion_slab.value, self.client_id)


class RateCardCreate(BaseModel):
    """Admin payload for a new rate card."""
    name: str = ""
    pincode_tier: PincodeTier
    completion_slab: CompletionSlab
    client_id: Optional[str] = None
    base_rate: float = Field(gt=0)
    travel_allowance: float = Field(default=0.0, ge=0)
    bonus: float = Field(default=0.0, ge=0)


class RateCardUpdate(BaseModel):
    """Partial update; fields left as None are not touched."""
    name: Optional[str] = None
    pincode_tier: Optional[PincodeTier] = None
    completion_slab: Optional[CompletionSlab] = None
    client_id: Optional[str] = None
    base_rate: Optional[float] = Field(default=None, gt=0)
    travel_allowance: Optional[float] = Field(default=None, ge=0)
    bonus: Optional[float] = Field(default=None, ge=0)


# ── Calculation result ───────────────────────────────────


class RateBreakdown(BaseModel):
    pincode_tier: PincodeTier
    completion_slab: CompletionSlab
    base_calculation: str  # "₹500 × 1.248 = ₹624.00"
    adjustments: list[str] = []
    rate_card_id: str = ""


class RateCalculation(BaseModel):
    """Itemised payable amount for one case."""
    base_rate: float
    travel_allowance: float
    bonus: float
    total_rate: float
    breakdown: RateBreakdown
