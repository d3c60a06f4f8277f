"""
Status/health helpers for the sentiment pipeline.

The output is designed for API/UI consumption: the monitor payload drives the
"next refresh" countdown, the health payload reports which services are
configured without exposing any secret values.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from pulse.models import Run
from pulse.settings import PulseSettings
from pulse.timeutil import parse_iso, to_iso, utc_now
from utils.security import is_configured_key


def countdown_text(remaining: timedelta) -> str:
    total_minutes = int(remaining.total_seconds() // 60)
    if total_minutes <= 0:
        return "very soon"
    hours, minutes = divmod(total_minutes, 60)
    if hours and minutes:
        return f"in {hours}h {minutes}m"
    if hours:
        return f"in {hours}h"
    if minutes > 1:
        return f"in {minutes} minutes"
    return "very soon"


def next_run_time(last_run_at: Optional[str], interval_hours: int, now: datetime) -> datetime:
    """A run that never happened is due now."""
    last = parse_iso(last_run_at) if last_run_at else None
    if last is None:
        return now
    return last + timedelta(hours=interval_hours)


def build_monitor(last_run: Optional[Run], interval_hours: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utc_now()
    last_run_at = last_run.completed_at if last_run else None
    next_run_at = next_run_time(last_run_at, interval_hours, now)
    remaining = next_run_at - now
    return {
        "last_run_at": last_run_at,
        "interval_hours": interval_hours,
        "next_run_at": to_iso(next_run_at),
        "is_overdue": remaining <= timedelta(0),
        "relative_text": countdown_text(remaining),
        "last_run": last_run.to_dict() if last_run else None,
        "status": "active" if last_run else "never_run",
    }


def build_health(settings: PulseSettings, cache_snapshot: Dict[str, Any], last_run: Optional[Run] = None) -> Dict[str, Any]:
    return {
        "status": "ok",
        "generated_at": to_iso(utc_now()),
        "services": {
            "search": is_configured_key(settings.search_api_key),
            "completion": is_configured_key(settings.completion_api_key),
            "chat": is_configured_key(settings.chat_api_key),
            "engagement": is_configured_key(settings.engagement_api_key),
            "cron_secret": bool(settings.cron_secret),
        },
        "last_run": last_run.to_dict() if last_run else None,
        "cache": cache_snapshot,
        "config": {
            "cron_interval_hours": settings.cron_interval_hours,
            "run_stale_after_minutes": settings.run_stale_after_minutes,
            "cache_ttl_seconds": settings.cache_ttl_seconds,
            "completion_model": settings.completion_model,
            "completion_fast_model": settings.completion_fast_model,
            "chat_model": settings.chat_model,
        },
    }
