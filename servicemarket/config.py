# servicemarket/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


# tunable lifecycle defaults; servicemarket.lifecycle.constants re-exports these
DEFAULT_CURRENCY = "AED"
MAX_QUOTES_PER_REQUEST = 5
LEAD_MAX_AGE_HOURS = 24.0
STALE_REQUEST_HOURS = 24.0
MAX_CAS_ATTEMPTS = 5

DEFAULT_DATABASE_URL = "sqlite:///./servicemarket.db"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    store_backend: str = "sql"  # sql / memory

    google_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL

    one_quote_per_provider: bool = False
    max_cas_attempts: int = MAX_CAS_ATTEMPTS
    max_quotes_per_request: int = MAX_QUOTES_PER_REQUEST
    lead_max_age_hours: float = LEAD_MAX_AGE_HOURS
    stale_request_hours: float = STALE_REQUEST_HOURS
    default_currency: str = DEFAULT_CURRENCY

    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


def get_settings() -> Settings:
    """
    Build settings from the environment (a local .env is loaded first).
    Unset or malformed values keep the defaults.
    """
    load_dotenv()

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        store_backend=os.getenv("SERVICEMARKET_STORE", "sql").strip().lower(),
        google_api_key=os.getenv("GOOGLE_API_KEY") or None,
        gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
        one_quote_per_provider=_env_bool("SERVICEMARKET_ONE_QUOTE_PER_PROVIDER", False),
        max_cas_attempts=max(1, _env_int("SERVICEMARKET_MAX_CAS_ATTEMPTS", MAX_CAS_ATTEMPTS)),
        max_quotes_per_request=_env_int("SERVICEMARKET_MAX_QUOTES_PER_REQUEST", MAX_QUOTES_PER_REQUEST),
        lead_max_age_hours=_env_float("SERVICEMARKET_LEAD_MAX_AGE_HOURS", LEAD_MAX_AGE_HOURS),
        stale_request_hours=_env_float("SERVICEMARKET_STALE_REQUEST_HOURS", STALE_REQUEST_HOURS),
        default_currency=os.getenv("SERVICEMARKET_CURRENCY", DEFAULT_CURRENCY),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=origins or ["*"],
    )
