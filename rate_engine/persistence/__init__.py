"""Persistence — MongoClient, rate card repositories."""

from rate_engine.persistence.mongo_client import MongoClient
from rate_engine.persistence.rate_card_repository import (
    InMemoryRateCardRepository,
    MongoRateCardRepository,
    get_rate_card_repository,
    seed_demo_rate_cards,
)

__all__ = [
    "MongoClient",
    "InMemoryRateCardRepository",
    "MongoRateCardRepository",
    "get_rate_card_repository",
    "seed_demo_rate_cards",
]
