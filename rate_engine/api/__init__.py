"""
FastAPI application factory and API package.

Run with:
    uvicorn rate_engine.api:app --reload --port 8000

Or via main.py:
    python -m rate_engine --serve
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rate_engine import __version__
from rate_engine.config import get_settings
from rate_engine.api.routes import config_router, health_router, rate_cards_router, rates_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Application factory — create and configure the FastAPI instance."""
    settings = get_settings()

    application = FastAPI(
        title=f"{settings.app_name} API",
        description="Rate card administration and case pricing for field workers",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS — allow the admin frontend (adjust origins in production)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(health_router, tags=["Health"])
    application.include_router(rates_router, prefix="/api/rates", tags=["Pricing"])
    application.include_router(rate_cards_router, prefix="/api/rate-cards", tags=["Rate Cards"])
    application.include_router(config_router, prefix="/api/rate-config", tags=["Config"])

    logger.info(f"Created {settings.app_name} API (mock_mode={settings.mock_mode})")
    return application


# Module-level instance for `uvicorn rate_engine.api:app`
app = create_app()
