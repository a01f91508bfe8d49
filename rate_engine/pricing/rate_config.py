"""
Rate Config Store — loads/saves the rate card configuration from MongoDB.

Company-level setting: the pincode tier map, completion slabs and dynamic
pricing factors are configured once by an admin and cached. Falls back to
the built-in defaults if MongoDB is empty (first run) or unreachable.

Config objects are frozen. An update builds a new object and swaps the
cached reference, so a calculation holding the old snapshot never sees a
mix of old and new weights.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from rate_engine.config import Settings, get_settings
from rate_engine.exceptions import ConfigLoadError, ConfigPersistError
from rate_engine.models.enums import CompletionSlab, PincodeTier

logger = logging.getLogger(__name__)

CONFIG_KEY = "rate_card_config"


# ── Config models ────────────────────────────────────────

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TierConfig(_Frozen):
    """One geographic tier and the pincodes that belong to it."""
    name: str
    pincodes: tuple[str, ...] = ()
    multiplier: float = 1.0


class SlabConfig(_Frozen):
    """Speed multiplier and completion bonus for one completion slab."""
    multiplier: float = 1.0
    bonus_percentage: float = Field(default=0.0, ge=0)


class ThresholdFactor(_Frozen):
    """Quality/demand factor: contributes (value - threshold) * weight at or above threshold."""
    weight: float = Field(ge=0, le=1)
    threshold: float


class DistanceFactor(_Frozen):
    """Distance factor: contributes (1 - km / max_km) * weight up to max_km."""
    weight: float = Field(ge=0, le=1)
    max_km: float = Field(gt=0)


class DynamicFactors(_Frozen):
    quality: ThresholdFactor = ThresholdFactor(weight=0.4, threshold=0.85)
    demand: ThresholdFactor = ThresholdFactor(weight=0.3, threshold=0.8)
    distance: DistanceFactor = DistanceFactor(weight=0.3, max_km=50)


class DynamicPricingConfig(_Frozen):
    enabled: bool = True
    factors: DynamicFactors = DynamicFactors()


def _default_tiers() -> dict[PincodeTier, TierConfig]:
    return {
        PincodeTier.TIER_1: TierConfig(
            name="Metro Cities",
            pincodes=tuple(str(400001 + i) for i in range(10)),
            multiplier=1.0,
        ),
        PincodeTier.TIER_2: TierConfig(
            name="Tier-2 Cities",
            pincodes=tuple(str(110001 + i) for i in range(5)),
            multiplier=0.8,
        ),
        PincodeTier.TIER_3: TierConfig(
            name="Rural Areas",
            pincodes=tuple(str(123456 + i) for i in range(5)),
            multiplier=0.6,
        ),
    }


def _default_slabs() -> dict[CompletionSlab, SlabConfig]:
    return {
        CompletionSlab.WITHIN_24H: SlabConfig(multiplier=1.2, bonus_percentage=0.1),
        CompletionSlab.WITHIN_48H: SlabConfig(multiplier=1.0, bonus_percentage=0.05),
        CompletionSlab.WITHIN_72H: SlabConfig(multiplier=0.9, bonus_percentage=0.0),
        CompletionSlab.WITHIN_1W: SlabConfig(multiplier=0.8, bonus_percentage=0.0),
    }


class RateCardConfig(_Frozen):
    """Full rate card configuration as stored under the `rate_card_config` key."""
    pincode_tiers: dict[PincodeTier, TierConfig] = Field(default_factory=_default_tiers)
    completion_slabs: dict[CompletionSlab, SlabConfig] = Field(default_factory=_default_slabs)
    dynamic_pricing: DynamicPricingConfig = DynamicPricingConfig()
    default_tier: PincodeTier = PincodeTier.TIER_2

    def tier_multiplier(self, tier: PincodeTier) -> float:
        tier_cfg = self.pincode_tiers.get(tier)
        return tier_cfg.multiplier if tier_cfg else 1.0

    def tier_name(self, tier: PincodeTier) -> str:
        tier_cfg = self.pincode_tiers.get(tier)
        return tier_cfg.name if tier_cfg else tier.value

    def slab(self, slab: CompletionSlab) -> SlabConfig:
        slab_cfg = self.completion_slabs.get(slab)
        return slab_cfg if slab_cfg is not None else SlabConfig()


def check_slab_ordering(config: RateCardConfig) -> list[str]:
    """
    Return one message per pair of adjacent slabs where the faster slab pays
    a lower multiplier than the slower one. Empty list = ordering holds.
    """
    problems: list[str] = []
    slabs = sorted(config.completion_slabs, key=lambda s: s.urgency_rank)
    for faster, slower in zip(slabs, slabs[1:]):
        fast_mult = config.completion_slabs[faster].multiplier
        slow_mult = config.completion_slabs[slower].multiplier
        if fast_mult < slow_mult:
            problems.append(
                f"{faster.value} multiplier {fast_mult} is below "
                f"{slower.value} multiplier {slow_mult}"
            )
    return problems


def reassign_pincodes(
    config: RateCardConfig,
    tier: PincodeTier,
    pincodes: list[str],
) -> RateCardConfig:
    """
    Return a copy of `config` with `pincodes` moved into `tier`.
    Codes are removed from every other tier so each belongs to at most one.
    """
    moving = {p.strip() for p in pincodes if p and p.strip()}
    new_tiers: dict[PincodeTier, TierConfig] = {}
    for t, tier_cfg in config.pincode_tiers.items():
        kept = [p for p in tier_cfg.pincodes if p not in moving]
        if t == tier:
            kept.extend(sorted(moving - set(kept)))
        new_tiers[t] = tier_cfg.model_copy(update={"pincodes": tuple(kept)})
    if tier not in new_tiers:
        new_tiers[tier] = TierConfig(name=tier.value, pincodes=tuple(sorted(moving)))
    return config.model_copy(update={"pincode_tiers": new_tiers})


# ── Store class ──────────────────────────────────────────

class RateConfigStore:
    """
    Loads the rate card config from MongoDB. Falls back to defaults on first
    run or when storage is unreachable. Cached after first load until
    `reload()` or `upsert_config()`.
    """

    def __init__(self, db: Any = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._db = db
        self._cache: Optional[RateCardConfig] = None
        self._from_storage = False
        self._lock = threading.Lock()

    @property
    def loaded_from_storage(self) -> bool:
        """False while the cached config is the built-in default."""
        return self._from_storage

    def _fetch(self) -> Optional[RateCardConfig]:
        """Read the stored config. None = nothing stored yet."""
        if self._db is None:
            return None
        try:
            doc = self._db.system_config.find_one({"config_key": CONFIG_KEY})
        except Exception as e:
            raise ConfigLoadError(f"Failed loading {CONFIG_KEY} from MongoDB: {e}") from e
        if not doc or "config_value" not in doc:
            return None
        try:
            return RateCardConfig.model_validate(doc["config_value"])
        except ValueError as e:
            raise ConfigLoadError(f"Stored {CONFIG_KEY} is invalid: {e}") from e

    def _load(self) -> RateCardConfig:
        try:
            config = self._fetch()
        except ConfigLoadError as e:
            if not self.settings.config_fallback_enabled:
                raise
            logger.warning(f"{e}; using default rate card config")
            self._from_storage = False
            return RateCardConfig()

        if config is None:
            logger.info("No stored rate card config, using defaults")
            self._from_storage = False
            return RateCardConfig()

        logger.info("Loaded rate card config from MongoDB")
        self._from_storage = True
        return config

    def get_config(self) -> RateCardConfig:
        """Return the cached config, loading it on first use."""
        config = self._cache
        if config is not None:
            return config
        with self._lock:
            if self._cache is None:
                self._cache = self._load()
            return self._cache

    def reload(self) -> RateCardConfig:
        """Drop the cache and load again from storage."""
        with self._lock:
            self._cache = self._load()
            return self._cache

    def upsert_config(
        self,
        config: RateCardConfig | dict[str, Any],
        updated_by: str = "",
    ) -> RateCardConfig:
        """
        Admin: replace the whole config. Persisted first, then swapped into the
        cache; on a storage failure the cache keeps the previous config.
        """
        if not isinstance(config, RateCardConfig):
            config = RateCardConfig.model_validate(config)

        for problem in check_slab_ordering(config):
            logger.warning(f"Slab ordering: {problem}")

        with self._lock:
            self._upsert_locked(config, updated_by)

        logger.info(f"Updated rate card config (by {updated_by or 'unknown'})")
        return config

    def _upsert_locked(self, config: RateCardConfig, updated_by: str) -> None:
        """Persist then swap the cache. Caller holds `self._lock`."""
        if self._db is not None:
            try:
                self._db.system_config.update_one(
                    {"config_key": CONFIG_KEY},
                    {"$set": {
                        "config_key": CONFIG_KEY,
                        "config_value": config.model_dump(mode="json"),
                        "updated_by": updated_by,
                        "updated_at": datetime.now(timezone.utc),
                    }},
                    upsert=True,
                )
            except Exception as e:
                raise ConfigPersistError(f"Failed saving {CONFIG_KEY} to MongoDB: {e}") from e
            self._from_storage = True
        self._cache = config

    def assign_pincodes(
        self,
        tier: PincodeTier,
        pincodes: list[str],
        updated_by: str = "",
    ) -> RateCardConfig:
        """
        Admin: move pincodes into a tier and persist the resulting config.
        Read, reassign and write happen under one lock so concurrent
        assignments never start from the same snapshot.
        """
        with self._lock:
            if self._cache is None:
                self._cache = self._load()
            new_config = reassign_pincodes(self._cache, tier, pincodes)
            self._upsert_locked(new_config, updated_by)

        logger.info(
            f"Assigned {len(pincodes)} pincodes to {PincodeTier(tier).value} "
            f"(by {updated_by or 'unknown'})"
        )
        return new_config
