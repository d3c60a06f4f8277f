"""
Centralised settings for the sentiment pipeline (env-first, code-light).

API keys and endpoints follow the OpenAI-compatible env naming so deployments
can point the completion client at any compatible provider.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

PACKAGE_ROOT = Path(__file__).resolve().parent
DEFAULT_DB_PATH = PACKAGE_ROOT.parent / "data" / "pulse.db"
DEFAULT_QUERIES_PATH = PACKAGE_ROOT / "search_queries.yaml"


@dataclass
class PulseSettings:
    database_url: str
    queries_path: Path
    cron_secret: Optional[str]
    cron_interval_hours: int
    run_stale_after_minutes: int
    cache_ttl_seconds: int
    search_api_key: Optional[str]
    search_endpoint: str
    completion_api_key: Optional[str]
    completion_base_url: str
    completion_model: str
    completion_fast_model: str
    chat_api_key: Optional[str]
    chat_base_url: str
    chat_model: str
    engagement_api_key: Optional[str]
    engagement_endpoint: str
    search_workers: int


def _int_from_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except Exception:
        logger.warning("Invalid int value for %s=%s; using default %s", key, raw, default)
        return default


def _str_from_env(key: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def load_settings() -> PulseSettings:
    queries_env = os.getenv("PULSE_QUERIES_PATH")
    completion_key = _str_from_env("OPENAI_API_KEY")
    completion_base = _str_from_env("OPENAI_BASE_URL", "https://api.openai.com/v1")
    return PulseSettings(
        database_url=_str_from_env("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}"),
        queries_path=Path(queries_env) if queries_env else DEFAULT_QUERIES_PATH,
        cron_secret=_str_from_env("CRON_SECRET"),
        cron_interval_hours=_int_from_env("PULSE_CRON_INTERVAL_HOURS", 3),
        run_stale_after_minutes=_int_from_env("PULSE_RUN_STALE_MINUTES", 15),
        cache_ttl_seconds=_int_from_env("PULSE_CACHE_TTL", 90),
        search_api_key=_str_from_env("EXA_API_KEY"),
        search_endpoint=_str_from_env("EXA_ENDPOINT", "https://api.exa.ai/search"),
        completion_api_key=completion_key,
        completion_base_url=completion_base,
        completion_model=_str_from_env("PULSE_CLUSTER_MODEL", "gpt-4o"),
        completion_fast_model=_str_from_env("PULSE_FAST_MODEL", "gpt-4o-mini"),
        # Chat can run on a separate OpenAI-compatible router; it falls back to the main key.
        chat_api_key=_str_from_env("OPEN_ROUTER_KEY", completion_key),
        chat_base_url=_str_from_env("CHAT_BASE_URL", "https://openrouter.ai/api/v1" if os.getenv("OPEN_ROUTER_KEY") else completion_base),
        chat_model=_str_from_env("PULSE_CHAT_MODEL", "google/gemini-2.5-flash" if os.getenv("OPEN_ROUTER_KEY") else "gpt-4o-mini"),
        engagement_api_key=_str_from_env("TWITTER_API_KEY"),
        engagement_endpoint=_str_from_env("TWITTER_API_ENDPOINT", "https://api.twitterapi.io/twitter/tweets"),
        search_workers=_int_from_env("PULSE_SEARCH_WORKERS", 8),
    )
