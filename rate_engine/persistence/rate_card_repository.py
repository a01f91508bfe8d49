"""
Rate Card Repository — persistence layer for rate card rows.

Two backends share the same interface:
  - InMemoryRateCardRepository (mock mode, tests)
  - MongoRateCardRepository (`rate_cards` collection)

Rows are never hard-deleted; `deactivate` flips `is_active` so payouts that
were already computed from a row keep their audit trail.
"""

from __future__ import annotations

import logging
import threading
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from pymongo import ASCENDING
from pymongo.errors import BulkWriteError, DuplicateKeyError

from rate_engine.exceptions import RateCardConflictError, RateCardNotFoundError
from rate_engine.models.enums import CompletionSlab, PincodeTier
from rate_engine.models.schemas import RateCard

logger = logging.getLogger(__name__)

ACTIVE_KEY_INDEX = "uniq_active_tier_slab_client"
DUPLICATE_KEY_CODE = 11000


def _sort_key(card: RateCard) -> tuple:
    return (card.pincode_tier.value, card.completion_slab.urgency_rank, card.client_id or "")


class BaseRateCardRepository:
    """Query/conflict logic shared by both backends.

    Conflict checks and the write that follows run under one lock, so two
    creates in this process cannot both claim the same active key.
    """

    def __init__(self):
        self._write_lock = threading.Lock()

    # ── backend hooks ────────────────────────────────────

    def _find(self, query: dict[str, Any]) -> list[RateCard]:
        raise NotImplementedError

    def _get(self, card_id: str) -> Optional[RateCard]:
        raise NotImplementedError

    def _put(self, card: RateCard) -> None:
        raise NotImplementedError

    def _put_many(self, cards: list[RateCard]) -> None:
        for card in cards:
            self._put(card)

    # ── queries ──────────────────────────────────────────

    def list_active(self) -> list[RateCard]:
        """All active rows ordered by (tier, slab)."""
        return sorted(self._find({"is_active": True}), key=_sort_key)

    def list_for_tier(self, tier: PincodeTier) -> list[RateCard]:
        """Active rows of one tier, cheapest base rate first."""
        rows = self._find({"pincode_tier": PincodeTier(tier).value, "is_active": True})
        return sorted(rows, key=lambda c: (c.base_rate, _sort_key(c)))

    def get(self, card_id: str) -> RateCard:
        card = self._get(card_id)
        if card is None:
            raise RateCardNotFoundError(card_id)
        return card

    def find_active(
        self,
        tier: PincodeTier,
        slab: CompletionSlab,
        client_id: Optional[str] = None,
    ) -> Optional[RateCard]:
        """The single active row for exactly this (tier, slab, client) key, if any."""
        rows = self._find({
            "pincode_tier": PincodeTier(tier).value,
            "completion_slab": CompletionSlab(slab).value,
            "client_id": client_id,
            "is_active": True,
        })
        return rows[0] if rows else None

    # ── writes ───────────────────────────────────────────

    def _check_conflict(self, card: RateCard, pending: Iterable[RateCard] = ()) -> None:
        if not card.is_active:
            return
        existing = self.find_active(card.pincode_tier, card.completion_slab, card.client_id)
        if existing is not None and existing.id != card.id:
            raise RateCardConflictError(*card.key)
        for other in pending:
            if other.is_active and other.key == card.key and other.id != card.id:
                raise RateCardConflictError(*card.key)

    def insert(self, card: RateCard) -> RateCard:
        with self._write_lock:
            self._check_conflict(card)
            self._put(card)
        logger.info(f"Created rate card {card.id} ({card.pincode_tier.value}/{card.completion_slab.value})")
        return card

    def insert_many(self, cards: list[RateCard]) -> list[RateCard]:
        """All-or-nothing: every row is checked before any is written."""
        with self._write_lock:
            for i, card in enumerate(cards):
                self._check_conflict(card, pending=cards[:i])
            self._put_many(cards)
        logger.info(f"Bulk created {len(cards)} rate cards")
        return cards

    def save(self, card: RateCard) -> RateCard:
        """Replace an existing row."""
        with self._write_lock:
            self.get(card.id)
            self._check_conflict(card)
            self._put(card)
        logger.info(f"Updated rate card {card.id}")
        return card

    def deactivate(self, card_id: str, updated_by: str = "") -> RateCard:
        with self._write_lock:
            card = self.get(card_id)
            card = card.model_copy(update={
                "is_active": False,
                "updated_by": updated_by,
                "updated_at": datetime.now(timezone.utc),
            })
            self._put(card)
        logger.info(f"Deactivated rate card {card_id}")
        return card


class InMemoryRateCardRepository(BaseRateCardRepository):
    """Dict-backed store used in mock mode."""

    def __init__(self):
        super().__init__()
        self._rows: dict[str, RateCard] = {}

    def _find(self, query: dict[str, Any]) -> list[RateCard]:
        return [
            deepcopy(card)
            for card in self._rows.values()
            if all(getattr(card, field) == value for field, value in query.items())
        ]

    def _get(self, card_id: str) -> Optional[RateCard]:
        card = self._rows.get(card_id)
        return deepcopy(card) if card is not None else None

    def _put(self, card: RateCard) -> None:
        self._rows[card.id] = deepcopy(card)


class MongoRateCardRepository(BaseRateCardRepository):
    """
    Rows stored in the `rate_cards` collection, `_id` = card id.

    A unique partial index on the active key backs the in-process lock, so
    writers in other processes also get `RateCardConflictError`.
    """

    def __init__(self, db: Any):
        super().__init__()
        self._collection = db.rate_cards
        self._collection.create_index(
            [("pincode_tier", ASCENDING), ("completion_slab", ASCENDING), ("client_id", ASCENDING)],
            name=ACTIVE_KEY_INDEX,
            unique=True,
            partialFilterExpression={"is_active": True},
        )

    @staticmethod
    def _to_doc(card: RateCard) -> dict[str, Any]:
        doc = card.model_dump()
        doc["pincode_tier"] = card.pincode_tier.value
        doc["completion_slab"] = card.completion_slab.value
        doc["_id"] = doc.pop("id")
        return doc

    @staticmethod
    def _from_doc(doc: dict[str, Any]) -> RateCard:
        data = dict(doc)
        data["id"] = data.pop("_id")
        return RateCard.model_validate(data)

    def _find(self, query: dict[str, Any]) -> list[RateCard]:
        return [self._from_doc(doc) for doc in self._collection.find(query)]

    def _get(self, card_id: str) -> Optional[RateCard]:
        doc = self._collection.find_one({"_id": card_id})
        return self._from_doc(doc) if doc else None

    def _put(self, card: RateCard) -> None:
        try:
            self._collection.replace_one({"_id": card.id}, self._to_doc(card), upsert=True)
        except DuplicateKeyError as e:
            raise RateCardConflictError(*card.key) from e

    def _put_many(self, cards: list[RateCard]) -> None:
        if not cards:
            return
        try:
            self._collection.insert_many([self._to_doc(c) for c in cards])
        except BulkWriteError as e:
            dup = next(
                (err for err in e.details.get("writeErrors", []) if err.get("code") == DUPLICATE_KEY_CODE),
                None,
            )
            if dup is None:
                raise
            raise RateCardConflictError(*cards[dup.get("index", 0)].key) from e


def get_rate_card_repository(db: Any = None) -> BaseRateCardRepository:
    """MongoDB-backed repository when a database handle is given, in-memory otherwise."""
    if db is None:
        logger.info("[MOCK] Using in-memory rate card repository")
        return InMemoryRateCardRepository()
    return MongoRateCardRepository(db)


# ── Mock-mode demo data ──────────────────────────────────

# (tier, base_rate, travel_allowance); every slab gets the same base rate,
# speed is priced by the slab multiplier
DEMO_TIER_RATES = [
    (PincodeTier.TIER_1, 500.0, 50.0),
    (PincodeTier.TIER_2, 400.0, 40.0),
    (PincodeTier.TIER_3, 300.0, 30.0),
]


def seed_demo_rate_cards(repo: BaseRateCardRepository, actor: str = "demo") -> list[RateCard]:
    """Fill an empty repository with one global row per (tier, slab)."""
    if repo.list_active():
        return []
    now = datetime.now(timezone.utc)
    cards = [
        RateCard(
            name=f"Demo {tier.value} / {slab.value}",
            pincode_tier=tier,
            completion_slab=slab,
            base_rate=base_rate,
            travel_allowance=travel,
            created_at=now,
            updated_at=now,
            created_by=actor,
            updated_by=actor,
        )
        for tier, base_rate, travel in DEMO_TIER_RATES
        for slab in CompletionSlab
    ]
    repo.insert_many(cards)
    logger.info(f"[MOCK] Seeded {len(cards)} demo rate cards")
    return cards
