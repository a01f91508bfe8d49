"""
Rate Engine — Main Entry Point

Price a case directly (CLI):
    python -m rate_engine 400001 within_24h --quality 0.95

In mock mode (the default) rates come from a seeded demo set: one global
row per tier and slab, base 500 / 400 / 300 for tier_1 / tier_2 / tier_3.

Run as an API server:
    python -m rate_engine --serve
    # or: uvicorn rate_engine.api:app --reload --port 8000

Or import and run programmatically:
    from rate_engine.main import run
    result = run("400001", "within_24h")
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from rate_engine.config import get_settings
from rate_engine.exceptions import RateEngineError
from rate_engine.models.enums import CompletionSlab
from rate_engine.models.schemas import RateCalculation
from rate_engine.services.rate_card_service import RateCardService
from rate_engine.utils.logger import setup_logging


def run(
    pincode: str,
    completion_slab: str,
    base_rate: Optional[float] = None,
    quality_score: Optional[float] = None,
    demand_level: Optional[float] = None,
    distance_km: Optional[float] = None,
    client_id: Optional[str] = None,
    service: Optional[RateCardService] = None,
) -> RateCalculation:
    """Price one case and log an itemised summary."""
    settings = get_settings()
    setup_logging(settings.log_level)

    service = service or RateCardService.from_settings(settings)
    result = service.calculate_rate(
        pincode,
        completion_slab,
        base_rate=base_rate,
        quality_score=quality_score,
        demand_level=demand_level,
        distance_km=distance_km,
        client_id=client_id,
    )
    _print_summary(pincode, result)
    return result


def _print_summary(pincode: str, result: RateCalculation) -> None:
    """Print a human-readable breakdown of the calculation."""
    logger = logging.getLogger(__name__)
    symbol = get_settings().currency_symbol
    breakdown = result.breakdown

    logger.info("-" * 60)
    logger.info("  RATE CALCULATION")
    logger.info("-" * 60)
    logger.info(f"  Pincode:          {pincode}")
    logger.info(f"  Tier:             {breakdown.pincode_tier.value}")
    logger.info(f"  Completion slab:  {breakdown.completion_slab.value}")
    logger.info(f"  Calculation:      {breakdown.base_calculation}")
    for line in breakdown.adjustments:
        logger.info(f"    - {line}")
    logger.info(f"  Base rate:        {symbol}{result.base_rate:,.2f}")
    logger.info(f"  Travel allowance: {symbol}{result.travel_allowance:,.2f}")
    logger.info(f"  Bonus:            {symbol}{result.bonus:,.2f}")
    logger.info(f"  Total:            {symbol}{result.total_rate:,.2f}")
    logger.info("-" * 60)


def serve(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Start the FastAPI server."""
    import uvicorn

    setup_logging(get_settings().log_level)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run("rate_engine.api:app", host=host, port=port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rate_engine", description="Price a field verification case")
    parser.add_argument("pincode", nargs="?")
    parser.add_argument("completion_slab", nargs="?", choices=[s.value for s in CompletionSlab])
    parser.add_argument("--base-rate", type=float)
    parser.add_argument("--quality", type=float)
    parser.add_argument("--demand", type=float)
    parser.add_argument("--distance", type=float)
    parser.add_argument("--client")
    parser.add_argument("--serve", action="store_true", help="start the API server instead")
    parser.add_argument("--port", type=int, default=8000)
    return parser


def cli(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.serve:
        serve(port=args.port)
        return
    if not args.pincode or not args.completion_slab:
        parser.error("pincode and completion_slab are required unless --serve is given")
    try:
        run(
            args.pincode,
            args.completion_slab,
            base_rate=args.base_rate,
            quality_score=args.quality,
            demand_level=args.demand,
            distance_km=args.distance,
            client_id=args.client,
        )
    except RateEngineError as e:
        parser.exit(1, f"error: {e}\n")


if __name__ == "__main__":
    cli()
