"""
Error taxonomy for the rate engine.

Tier classification never raises (unknown pincodes fall back to the default
tier); rate card lookup always does.
"""

from __future__ import annotations


class RateEngineError(Exception):
    """Base class for every error raised by the rate engine."""


class PolicyNotFoundError(RateEngineError):
    """No active rate card exists for the resolved (tier, slab) pair."""

    def __init__(self, tier: str, slab: str, client_id: str | None = None):
        self.tier = tier
        self.slab = slab
        self.client_id = client_id
        scope = f" (client {client_id})" if client_id else ""
        super().__init__(f"No active rate card found for {tier} / {slab}{scope}")


class ConfigLoadError(RateEngineError):
    """Reading the rate card configuration from storage failed."""


class ConfigPersistError(RateEngineError):
    """Writing the rate card configuration to storage failed."""


class RateCardNotFoundError(RateEngineError):
    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Rate card {card_id} not found")


class RateCardConflictError(RateEngineError):
    """A second active rate card would exist for the same (tier, slab, client)."""

    def __init__(self, tier: str, slab: str, client_id: str | None = None):
        self.tier = tier
        self.slab = slab
        self.client_id = client_id
        scope = f"client {client_id}" if client_id else "global"
        super().__init__(f"An active {scope} rate card already exists for {tier} / {slab}")
