"""
API routes — thin HTTP layer that delegates to RateCardService.

Routes:
  GET    /health                         → API health check
  POST   /api/rates/calculate            → Price one case
  GET    /api/rates/tier/{pincode}       → Resolve a pincode's tier
  GET    /api/rates/suggestions          → Active rate cards for a pincode's tier
  GET    /api/rate-cards                 → List active rate cards
  POST   /api/rate-cards                 → Create a rate card
  POST   /api/rate-cards/bulk            → Create many rate cards (all-or-nothing)
  PATCH  /api/rate-cards/{card_id}       → Update a rate card
  DELETE /api/rate-cards/{card_id}       → Deactivate a rate card
  GET    /api/rate-config                → Current rate card config
  PUT    /api/rate-config                → Replace the rate card config
  POST   /api/rate-config/reload         → Reload config from storage
  POST   /api/rate-config/pincodes       → Move pincodes into a tier
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

from rate_engine.exceptions import (
    ConfigLoadError,
    ConfigPersistError,
    PolicyNotFoundError,
    RateCardConflictError,
    RateCardNotFoundError,
    RateEngineError,
)
from rate_engine.models.enums import CompletionSlab, PincodeTier
from rate_engine.models.schemas import RateCalculation, RateCard, RateCardCreate, RateCardUpdate
from rate_engine.pricing.rate_config import RateCardConfig
from rate_engine.services.rate_card_service import RateCardService

logger = logging.getLogger(__name__)

# ── Routers ──────────────────────────────────────────────
health_router = APIRouter()
rates_router = APIRouter()
rate_cards_router = APIRouter()
config_router = APIRouter()


@lru_cache()
def get_rate_card_service() -> RateCardService:
    """Process-wide service instance (overridden in tests)."""
    return RateCardService.from_settings()


def _http_error(e: RateEngineError) -> HTTPException:
    if isinstance(e, (PolicyNotFoundError, RateCardNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, RateCardConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, (ConfigLoadError, ConfigPersistError)):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ── Request / response schemas ───────────────────────────
class CalculateRequest(BaseModel):
    pincode: str
    completion_slab: CompletionSlab
    base_rate: Optional[float] = None
    quality_score: Optional[float] = None
    demand_level: Optional[float] = None
    distance_km: Optional[float] = None
    client_id: Optional[str] = None


class TierResponse(BaseModel):
    pincode: str
    pincode_tier: PincodeTier


class PincodeAssignment(BaseModel):
    tier: PincodeTier
    pincodes: list[str]


# ── Health ───────────────────────────────────────────────

@health_router.get("/health")
async def health_check(service: RateCardService = Depends(get_rate_card_service)):
    return {
        "status": "ok",
        "config_source": "storage" if service.config_store.loaded_from_storage else "defaults",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── Pricing ──────────────────────────────────────────────

@rates_router.post("/calculate", response_model=RateCalculation)
def calculate_rate(body: CalculateRequest, service: RateCardService = Depends(get_rate_card_service)):
    try:
        return service.calculate_rate(
            body.pincode,
            body.completion_slab,
            base_rate=body.base_rate,
            quality_score=body.quality_score,
            demand_level=body.demand_level,
            distance_km=body.distance_km,
            client_id=body.client_id,
        )
    except RateEngineError as e:
        raise _http_error(e)


@rates_router.get("/tier/{pincode}", response_model=TierResponse)
def get_tier(pincode: str, service: RateCardService = Depends(get_rate_card_service)):
    return TierResponse(pincode=pincode, pincode_tier=service.get_pincode_tier(pincode))


@rates_router.get("/suggestions", response_model=list[RateCard])
def get_suggestions(
    pincode: str,
    completion_slab: Optional[CompletionSlab] = None,
    service: RateCardService = Depends(get_rate_card_service),
):
    return service.get_rate_card_suggestions(pincode, completion_slab)


# ── Rate cards ───────────────────────────────────────────

@rate_cards_router.get("", response_model=list[RateCard])
def list_rate_cards(service: RateCardService = Depends(get_rate_card_service)):
    return service.get_rate_cards()


@rate_cards_router.post("", response_model=RateCard, status_code=201)
def create_rate_card(
    body: RateCardCreate,
    x_actor: str = Header(default=""),
    service: RateCardService = Depends(get_rate_card_service),
):
    try:
        return service.create_rate_card(body, actor=x_actor)
    except RateEngineError as e:
        raise _http_error(e)


@rate_cards_router.post("/bulk", response_model=list[RateCard], status_code=201)
def bulk_create_rate_cards(
    body: list[RateCardCreate],
    x_actor: str = Header(default=""),
    service: RateCardService = Depends(get_rate_card_service),
):
    try:
        return service.bulk_create_rate_cards(body, actor=x_actor)
    except RateEngineError as e:
        raise _http_error(e)


@rate_cards_router.patch("/{card_id}", response_model=RateCard)
def update_rate_card(
    card_id: str,
    body: RateCardUpdate,
    x_actor: str = Header(default=""),
    service: RateCardService = Depends(get_rate_card_service),
):
    try:
        return service.update_rate_card(card_id, body, actor=x_actor)
    except RateEngineError as e:
        raise _http_error(e)


@rate_cards_router.delete("/{card_id}", response_model=RateCard)
def deactivate_rate_card(
    card_id: str,
    x_actor: str = Header(default=""),
    service: RateCardService = Depends(get_rate_card_service),
):
    try:
        return service.deactivate_rate_card(card_id, actor=x_actor)
    except RateEngineError as e:
        raise _http_error(e)


# ── Config ───────────────────────────────────────────────

@config_router.get("", response_model=RateCardConfig)
def get_config(service: RateCardService = Depends(get_rate_card_service)):
    try:
        return service.get_config()
    except RateEngineError as e:
        raise _http_error(e)


@config_router.put("", response_model=RateCardConfig)
def put_config(
    body: RateCardConfig,
    x_actor: str = Header(default=""),
    service: RateCardService = Depends(get_rate_card_service),
):
    try:
        return service.update_config(body, actor=x_actor)
    except RateEngineError as e:
        raise _http_error(e)


@config_router.post("/reload", response_model=RateCardConfig)
def reload_config(service: RateCardService = Depends(get_rate_card_service)):
    try:
        return service.reload()
    except RateEngineError as e:
        raise _http_error(e)


@config_router.post("/pincodes", response_model=RateCardConfig)
def assign_pincodes(
    body: PincodeAssignment,
    x_actor: str = Header(default=""),
    service: RateCardService = Depends(get_rate_card_service),
):
    logger.info(f"Assigning {len(body.pincodes)} pincodes to {body.tier.value} (by {x_actor or 'unknown'})")
    try:
        return service.assign_pincodes(body.tier, body.pincodes, actor=x_actor)
    except RateEngineError as e:
        raise _http_error(e)
