"""Shared fixtures: a mock-mode service with a tunable config and seeded rows."""

from __future__ import annotations

import threading
import time
from typing import Any, Optional

import pytest
from pymongo.errors import BulkWriteError, DuplicateKeyError

from rate_engine.config import Settings
from rate_engine.models.enums import CompletionSlab, PincodeTier
from rate_engine.models.schemas import RateCardCreate
from rate_engine.persistence.rate_card_repository import InMemoryRateCardRepository
from rate_engine.pricing.rate_config import RateCardConfig, RateConfigStore, SlabConfig
from rate_engine.services.audit_service import AuditService
from rate_engine.services.rate_card_service import RateCardService


# ── Fake MongoDB ─────────────────────────────────────────

def _matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    return all(doc.get(k) == v for k, v in query.items())


class FakeCursor(list):
    def sort(self, key, direction=1):
        return FakeCursor(sorted(self, key=lambda d: d.get(key), reverse=direction < 0))


class FakeCollection:
    """Just enough of a pymongo collection for the repositories and stores."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.docs: list[dict[str, Any]] = []
        self.fail_with = fail_with
        self.find_one_calls = 0
        self.indexes: dict[str, dict[str, Any]] = {}
        # seconds to stall in find() and update_one(), to widen race windows
        self.delay = 0.0
        self._lock = threading.Lock()

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def _stall(self):
        if self.delay:
            time.sleep(self.delay)

    def _check_unique(self, new: dict[str, Any]):
        for name, index in self.indexes.items():
            if not index.get("unique") or not _matches(new, index.get("partialFilterExpression", {})):
                continue
            key = {field: new.get(field) for field, _ in index["keys"]}
            for doc in self.docs:
                if doc.get("_id") != new.get("_id") and _matches(doc, key) \
                        and _matches(doc, index.get("partialFilterExpression", {})):
                    raise DuplicateKeyError(f"E11000 duplicate key error index: {name}")

    def create_index(self, keys, name=None, **kwargs):
        self.indexes[name] = {"keys": list(keys), **kwargs}
        return name

    def find_one(self, query, projection=None):
        self.find_one_calls += 1
        self._maybe_fail()
        for doc in self.docs:
            if _matches(doc, query):
                return dict(doc)
        return None

    def find(self, query, projection=None):
        self._maybe_fail()
        rows = [dict(doc) for doc in self.docs if _matches(doc, query)]
        self._stall()
        if projection and projection.get("_id") == 0:
            for row in rows:
                row.pop("_id", None)
        return FakeCursor(rows)

    def update_one(self, query, update, upsert=False):
        self._maybe_fail()
        self._stall()
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(update["$set"])
                return
        if upsert:
            self.docs.append(dict(update["$set"]))

    def replace_one(self, query, replacement, upsert=False):
        self._maybe_fail()
        with self._lock:
            self._check_unique(replacement)
            for i, doc in enumerate(self.docs):
                if _matches(doc, query):
                    self.docs[i] = dict(replacement)
                    return
            if upsert:
                self.docs.append(dict(replacement))

    def insert_one(self, doc):
        self._maybe_fail()
        with self._lock:
            self._check_unique(doc)
            self.docs.append(dict(doc))

    def insert_many(self, docs):
        self._maybe_fail()
        with self._lock:
            for i, doc in enumerate(docs):
                try:
                    self._check_unique(doc)
                except DuplicateKeyError as e:
                    raise BulkWriteError({"writeErrors": [{"index": i, "code": 11000, "errmsg": str(e)}]})
                self.docs.append(dict(doc))


class FakeDatabase:
    def __init__(self, fail_with: Optional[Exception] = None):
        self.system_config = FakeCollection(fail_with)
        self.rate_cards = FakeCollection(fail_with)
        self.audit_log = FakeCollection(fail_with)


# ── Config / service fixtures ────────────────────────────

def make_config(
    slab_24h: SlabConfig = SlabConfig(multiplier=1.2, bonus_percentage=0.0),
    dynamic_enabled: bool = True,
) -> RateCardConfig:
    """Default config with an overridable within_24h slab and dynamic switch."""
    base = RateCardConfig()
    slabs = dict(base.completion_slabs)
    slabs[CompletionSlab.WITHIN_24H] = slab_24h
    dynamic = base.dynamic_pricing.model_copy(update={"enabled": dynamic_enabled})
    return base.model_copy(update={"completion_slabs": slabs, "dynamic_pricing": dynamic})


@pytest.fixture
def settings() -> Settings:
    return Settings(mock_mode=True, config_fallback_enabled=True)


@pytest.fixture
def config_store(settings) -> RateConfigStore:
    store = RateConfigStore(settings=settings)
    store.upsert_config(make_config(), updated_by="test")
    return store


@pytest.fixture
def service(settings, config_store) -> RateCardService:
    return RateCardService(
        config_store=config_store,
        rate_cards=InMemoryRateCardRepository(),
        audit=AuditService(),
        settings=settings,
    )


@pytest.fixture
def metro_card(service):
    """tier_1 / within_24h: base 500, travel 50, bonus 0."""
    return service.create_rate_card(
        RateCardCreate(
            name="Metro express",
            pincode_tier=PincodeTier.TIER_1,
            completion_slab=CompletionSlab.WITHIN_24H,
            base_rate=500,
            travel_allowance=50,
            bonus=0,
        ),
        actor="admin-1",
    )


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def broken_db() -> FakeDatabase:
    from pymongo.errors import ServerSelectionTimeoutError

    return FakeDatabase(fail_with=ServerSelectionTimeoutError("localhost:27017: timed out"))
