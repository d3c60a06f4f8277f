"""Main application module for the AI Pulse dashboard."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from app_utils import SmartCache

PROJECT_ROOT = Path(__file__).resolve().parent
LOG_DIR = PROJECT_ROOT / "logs"

# Configure logging
LOG_DIR.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOG_DIR / 'pulse.log'),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger("pulse.web")

# Load environment variables before any settings are read
load_dotenv(os.getenv("PULSE_DOTENV", ".env"))

from api_routes import register_routes  # noqa: E402
from pulse import Services, build_chat, build_pipeline, get_services  # noqa: E402
from pulse.sentiment import BiasClassifier  # noqa: E402
from pulse.summary import EditorialSummarizer  # noqa: E402


def create_app(services: Optional[Services] = None) -> Flask:
    """Build the Flask app around one set of service clients."""
    services = services or get_services()
    settings = services.settings

    flask_app = Flask(__name__, template_folder=str(PROJECT_ROOT / 'templates'))
    CORS(flask_app)

    cache = SmartCache(ttl_seconds=settings.cache_ttl_seconds)
    fast_model = settings.completion_fast_model
    register_routes(
        flask_app,
        cache,
        settings,
        services.store,
        lambda: build_pipeline(services),
        EditorialSummarizer(services.completion, model=fast_model),
        BiasClassifier(services.completion, model=fast_model),
        build_chat(services),
    )

    for name, configured in (
        ("search", services.search.configured),
        ("completion", services.completion.configured),
        ("chat", services.chat_completion.configured),
        ("engagement", services.engagement.configured),
    ):
        if configured:
            logger.info("OK: %s service configured", name)
        else:
            logger.warning("%s service not configured; related stages will fall back", name)
    return flask_app


app = create_app()

__all__ = ["app", "create_app"]
