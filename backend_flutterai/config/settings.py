"""
Application settings and environment configuration.

Typed settings for the API server, storage, AI interpretation step and the
analysis queue. Values come from environment variables (and .env via
load_flutterai_env); malformed numeric values fall back to defaults.
"""

from __future__ import annotations

import functools
import os
from dataclasses import dataclass

from backend_flutterai.config.env import (
    DEFAULT_LLM_BASE_URL,
    DEFAULT_LLM_MODEL,
    env_bool,
    env_str,
    get_database_url,
    get_llm_api_key,
    load_flutterai_env,
)
from backend_flutterai.flutterai_logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_PORT = 8000
DEFAULT_LLM_TIMEOUT_SEC = 30.0
DEFAULT_AI_CACHE_TTL_SEC = 900.0
DEFAULT_AI_RISK_OVERRIDE_CONFIDENCE = 0.7
DEFAULT_QUEUE_MAX_ATTEMPTS = 3
DEFAULT_QUEUE_BATCH_SIZE = 10
DEFAULT_QUEUE_INTERVAL_SEC = 60.0
DEFAULT_QUEUE_STALE_AFTER_SEC = 600.0
DEFAULT_BATCH_ANALYZE_CHUNK_SIZE = 5
DEFAULT_BATCH_ANALYZE_PAUSE_SEC = 1.0
DEFAULT_MAX_BATCH_ANALYZE_WALLETS = 100
DEFAULT_MAX_CSV_BYTES = 5 * 1024 * 1024


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("settings_invalid_number", name=name, value=raw, default=default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("settings_invalid_number", name=name, value=raw, default=default)
        return default


@dataclass(frozen=True)
class Settings:
    """Service configuration. Build with Settings.from_env() or get_settings()."""

    database_url: str
    api_host: str = "0.0.0.0"
    api_port: int = DEFAULT_API_PORT
    log_level: str = "INFO"
    log_format: str = "json"

    llm_api_key: str = ""
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    llm_model: str = DEFAULT_LLM_MODEL
    llm_timeout_sec: float = DEFAULT_LLM_TIMEOUT_SEC
    ai_cache_ttl_sec: float = DEFAULT_AI_CACHE_TTL_SEC
    ai_risk_override_confidence: float = DEFAULT_AI_RISK_OVERRIDE_CONFIDENCE

    queue_max_attempts: int = DEFAULT_QUEUE_MAX_ATTEMPTS
    queue_batch_size: int = DEFAULT_QUEUE_BATCH_SIZE
    queue_worker_enabled: bool = False
    queue_interval_sec: float = DEFAULT_QUEUE_INTERVAL_SEC
    queue_stale_after_sec: float = DEFAULT_QUEUE_STALE_AFTER_SEC

    batch_analyze_chunk_size: int = DEFAULT_BATCH_ANALYZE_CHUNK_SIZE
    batch_analyze_pause_sec: float = DEFAULT_BATCH_ANALYZE_PAUSE_SEC
    max_batch_analyze_wallets: int = DEFAULT_MAX_BATCH_ANALYZE_WALLETS
    max_csv_bytes: int = DEFAULT_MAX_CSV_BYTES

    @classmethod
    def from_env(cls) -> "Settings":
        load_flutterai_env()
        return cls(
            database_url=get_database_url(),
            api_host=env_str("API_HOST", default="0.0.0.0"),
            api_port=_env_int("API_PORT", DEFAULT_API_PORT),
            log_level=env_str("LOG_LEVEL", default="INFO").upper(),
            log_format=env_str("LOG_FORMAT", default="json").lower(),
            llm_api_key=get_llm_api_key(),
            llm_base_url=env_str("FLUTTERAI_LLM_BASE_URL", default=DEFAULT_LLM_BASE_URL),
            llm_model=env_str("FLUTTERAI_LLM_MODEL", default=DEFAULT_LLM_MODEL),
            llm_timeout_sec=_env_float("FLUTTERAI_LLM_TIMEOUT_SEC", DEFAULT_LLM_TIMEOUT_SEC),
            ai_cache_ttl_sec=_env_float("FLUTTERAI_AI_CACHE_TTL_SEC", DEFAULT_AI_CACHE_TTL_SEC),
            ai_risk_override_confidence=_env_float(
                "FLUTTERAI_AI_RISK_OVERRIDE_CONFIDENCE", DEFAULT_AI_RISK_OVERRIDE_CONFIDENCE
            ),
            queue_max_attempts=max(1, _env_int("FLUTTERAI_QUEUE_MAX_ATTEMPTS", DEFAULT_QUEUE_MAX_ATTEMPTS)),
            queue_batch_size=max(1, _env_int("FLUTTERAI_QUEUE_BATCH_SIZE", DEFAULT_QUEUE_BATCH_SIZE)),
            queue_worker_enabled=env_bool("FLUTTERAI_QUEUE_WORKER", default=False),
            queue_interval_sec=_env_float("FLUTTERAI_QUEUE_INTERVAL_SEC", DEFAULT_QUEUE_INTERVAL_SEC),
            queue_stale_after_sec=_env_float("FLUTTERAI_QUEUE_STALE_SEC", DEFAULT_QUEUE_STALE_AFTER_SEC),
            batch_analyze_chunk_size=max(
                1, _env_int("FLUTTERAI_BATCH_ANALYZE_CHUNK_SIZE", DEFAULT_BATCH_ANALYZE_CHUNK_SIZE)
            ),
            batch_analyze_pause_sec=_env_float(
                "FLUTTERAI_BATCH_ANALYZE_PAUSE_SEC", DEFAULT_BATCH_ANALYZE_PAUSE_SEC
            ),
            max_batch_analyze_wallets=_env_int(
                "FLUTTERAI_MAX_BATCH_ANALYZE_WALLETS", DEFAULT_MAX_BATCH_ANALYZE_WALLETS
            ),
            max_csv_bytes=_env_int("FLUTTERAI_MAX_CSV_BYTES", DEFAULT_MAX_CSV_BYTES),
        )


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read from env on first call."""
    return Settings.from_env()


def reset_settings_cache() -> None:
    """Forget cached settings. For tests that change env between cases."""
    get_settings.cache_clear()
