"""
Environment variable loading for FlutterAI.

- FLUTTERAI_DB_URL / DATABASE_URL: SQLAlchemy URL (PostgreSQL or SQLite)
- FLUTTERAI_DB_PATH: SQLite file used when no URL is set
- FLUTTERAI_LLM_API_KEY / OPENAI_API_KEY: text-generation API key
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is backend_flutterai/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_SQLITE_PATH = "flutterai.db"
DEFAULT_LLM_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LLM_MODEL = "gpt-4o-mini"

_TRUE_VALUES = ("1", "true", "yes", "on")


def load_flutterai_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides real env."""
    from dotenv import load_dotenv

    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def env_str(*names: str, default: str = "") -> str:
    """Return the first non-empty env value among names, stripped."""
    for name in names:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return default


def env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in _TRUE_VALUES


def get_database_url() -> str:
    """
    Resolve the database URL.
    Order: FLUTTERAI_DB_URL > DATABASE_URL > sqlite:///FLUTTERAI_DB_PATH (default flutterai.db).
    """
    load_flutterai_env()
    url = env_str("FLUTTERAI_DB_URL", "DATABASE_URL")
    if url:
        return url
    path = env_str("FLUTTERAI_DB_PATH", default=DEFAULT_SQLITE_PATH)
    return f"sqlite:///{path}"


def get_llm_api_key() -> str:
    load_flutterai_env()
    return env_str("FLUTTERAI_LLM_API_KEY", "OPENAI_API_KEY")


def mask_database_url(url: str) -> str:
    """Drop credentials and query string so the URL can be logged."""
    base = url.split("?")[0]
    if "@" in base:
        scheme, _, rest = base.partition("://")
        return f"{scheme}://***@{rest.split('@', 1)[1]}"
    return base
