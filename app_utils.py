"""Utility functions and classes for the AI Pulse web app."""
from __future__ import annotations

import logging
import os
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger("pulse.web")


class SmartCache:
    """Simple thread-safe TTL cache used for read endpoints backed by the database."""

    def __init__(self, ttl_seconds: int = 60):
        self.ttl = ttl_seconds
        self._store: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any:
        with self._lock:
            item = self._store.get(key)
            if not item:
                self._misses += 1
                return None
            ts, value = item
            if time.time() - ts > self.ttl:
                del self._store[key]
                self._misses += 1
                return None
            self._hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._store[key] = (time.time(), value)

    def get_or_set(self, key: str, factory: Callable[[], Any]) -> Any:
        value = self.get(key)
        if value is None:
            value = factory()
            self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "entries": len(self._store),
                "ttl_seconds": self.ttl,
                "hits": self._hits,
                "misses": self._misses,
            }


def get_env(name: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """Get environment variable with optional validation.

    Args:
        name: Environment variable name.
        default: Default value if variable is not set.
        required: Whether the variable is required.

    Returns:
        The environment variable value or default.
    """
    env_value = os.getenv(name, default)
    if required and (not env_value or env_value.startswith("YOUR_")):
        logger.warning("Environment variable %s missing; related features are disabled", name)
        return None
    return env_value
