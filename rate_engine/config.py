"""
Application configuration using Pydantic Settings.
All environment-specific values are centralized here.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── App ──────────────────────────────────────────────
    app_name: str = "Field Verification Rate Engine"
    debug: bool = False
    mock_mode: bool = True  # When True, storage is in-memory and MongoDB is never contacted

    # ── MongoDB ──────────────────────────────────────────
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "rate_engine"
    mongodb_timeout_ms: int = 5000

    # ── Pricing ──────────────────────────────────────────
    currency: str = "INR"
    currency_symbol: str = "₹"
    config_fallback_enabled: bool = True  # serve default config when storage is unreachable

    # ── Logging ──────────────────────────────────────────
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings (singleton)."""
    return Settings()
