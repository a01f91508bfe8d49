"""
Rate Card Service — high-level facade over config, rate cards and pricing.
Coordinates RateConfigStore, the rate card repository, RateCalculator and
AuditService for the operations callers and the API need.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from rate_engine.config import Settings, get_settings
from rate_engine.models.enums import CompletionSlab, PincodeTier
from rate_engine.models.schemas import RateCalculation, RateCard, RateCardCreate, RateCardUpdate
from rate_engine.persistence.mongo_client import MongoClient
from rate_engine.persistence.rate_card_repository import (
    BaseRateCardRepository,
    get_rate_card_repository,
    seed_demo_rate_cards,
)
from rate_engine.pricing.calculator import RateCalculator
from rate_engine.pricing.rate_config import CONFIG_KEY, RateCardConfig, RateConfigStore
from rate_engine.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class RateCardService:
    """Public surface of the rate engine."""

    def __init__(
        self,
        config_store: RateConfigStore,
        rate_cards: BaseRateCardRepository,
        audit: Optional[AuditService] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.config_store = config_store
        self.rate_cards = rate_cards
        self.audit = audit or AuditService()
        self.calculator = RateCalculator(config_store, rate_cards, settings=self.settings)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RateCardService":
        """
        Wire the service against MongoDB. In mock mode storage is in-memory and
        seeded with demo rate cards so quotes work out of the box.
        """
        settings = settings or get_settings()
        db = MongoClient(settings).get_database()
        rate_cards = get_rate_card_repository(db)
        if settings.mock_mode:
            seed_demo_rate_cards(rate_cards)
        return cls(
            config_store=RateConfigStore(db=db, settings=settings),
            rate_cards=rate_cards,
            audit=AuditService(db=db),
            settings=settings,
        )

    # ── Pricing ──────────────────────────────────────────

    def get_pincode_tier(self, pincode: str) -> PincodeTier:
        return self.calculator.resolve_tier(pincode)

    def calculate_rate(
        self,
        pincode: str,
        completion_slab: CompletionSlab | str,
        base_rate: Optional[float] = None,
        quality_score: Optional[float] = None,
        demand_level: Optional[float] = None,
        distance_km: Optional[float] = None,
        client_id: Optional[str] = None,
    ) -> RateCalculation:
        return self.calculator.calculate(
            pincode,
            completion_slab,
            base_rate_override=base_rate,
            quality_score=quality_score,
            demand_level=demand_level,
            distance_km=distance_km,
            client_id=client_id,
        )

    def get_rate_card_suggestions(
        self,
        pincode: str,
        completion_slab: CompletionSlab | str | None = None,
    ) -> list[RateCard]:
        """Active rows for the pincode's tier, cheapest first."""
        tier = self.get_pincode_tier(pincode)
        rows = self.rate_cards.list_for_tier(tier)
        logger.debug(
            f"{len(rows)} rate card suggestions for {pincode} ({tier.value}, "
            f"requested slab {completion_slab})"
        )
        return rows

    # ── Rate cards ───────────────────────────────────────

    def get_rate_cards(self) -> list[RateCard]:
        return self.rate_cards.list_active()

    def create_rate_card(self, payload: RateCardCreate, actor: str = "") -> RateCard:
        card = RateCard(**payload.model_dump(), created_by=actor, updated_by=actor)
        card = self.rate_cards.insert(card)
        self.audit.record(card.id, actor, "rate_card_created", _describe(card))
        return card

    def bulk_create_rate_cards(self, payloads: list[RateCardCreate], actor: str = "") -> list[RateCard]:
        now = datetime.now(timezone.utc)
        cards = [
            RateCard(
                **p.model_dump(),
                created_by=actor,
                updated_by=actor,
                created_at=now,
                updated_at=now,
            )
            for p in payloads
        ]
        cards = self.rate_cards.insert_many(cards)
        for card in cards:
            self.audit.record(card.id, actor, "rate_card_created", _describe(card))
        return cards

    def update_rate_card(self, card_id: str, updates: RateCardUpdate, actor: str = "") -> RateCard:
        current = self.rate_cards.get(card_id)
        changes = updates.model_dump(exclude_unset=True)
        card = current.model_copy(update={
            **changes,
            "updated_by": actor,
            "updated_at": datetime.now(timezone.utc),
        })
        # model_copy skips validation
        card = RateCard.model_validate(card.model_dump())
        card = self.rate_cards.save(card)
        self.audit.record(card.id, actor, "rate_card_updated", f"changed {sorted(changes)}")
        return card

    def deactivate_rate_card(self, card_id: str, actor: str = "") -> RateCard:
        card = self.rate_cards.deactivate(card_id, updated_by=actor)
        self.audit.record(card.id, actor, "rate_card_deactivated", _describe(card))
        return card

    # ── Config ───────────────────────────────────────────

    def get_config(self) -> RateCardConfig:
        return self.config_store.get_config()

    def update_config(self, config: RateCardConfig | dict[str, Any], actor: str = "") -> RateCardConfig:
        config = self.config_store.upsert_config(config, updated_by=actor)
        self.audit.record(CONFIG_KEY, actor, "config_updated")
        return config

    def assign_pincodes(self, tier: PincodeTier, pincodes: list[str], actor: str = "") -> RateCardConfig:
        config = self.config_store.assign_pincodes(tier, pincodes, updated_by=actor)
        self.audit.record(CONFIG_KEY, actor, "pincodes_assigned", f"{len(pincodes)} → {tier.value}")
        return config

    def reload(self) -> RateCardConfig:
        """Refresh config (and with it the tier map) from storage."""
        return self.config_store.reload()


def _describe(card: RateCard) -> str:
    scope = f" client={card.client_id}" if card.client_id else ""
    return (
        f"{card.pincode_tier.value}/{card.completion_slab.value}{scope} "
        f"base={card.base_rate} travel={card.travel_allowance} bonus={card.bonus}"
    )
