"""
Load the search query battery from YAML with optional env overrides.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)


def load_queries_config(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        logger.info("Query config not found at %s; using built-in battery", config_path)
        return {}
    raw = config_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        logger.error("Failed to parse %s: %s", config_path, exc)
        return {}
    if not isinstance(data, dict):
        logger.error("Query config %s must be a mapping, got %s", config_path, type(data).__name__)
        return {}
    return _expand_env(data)


def _expand_env(data: Dict[str, Any]) -> Dict[str, Any]:
    def replace(value: Any) -> Any:
        if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            env_key = value[2:-1]
            return os.getenv(env_key, "")
        if isinstance(value, dict):
            return {k: replace(v) for k, v in value.items()}
        if isinstance(value, list):
            return [replace(item) for item in value]
        return value

    return replace(data)  # type: ignore[return-value]
