"""
Public API for the sentiment pipeline.

Service clients are built once here and handed to every stage that needs them.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from pulse.chat import ChatSession
from pulse.clients import CompletionClient, ExaSearchClient, TwitterEngagementClient
from pulse.clustering import TopicClusterer
from pulse.discovery import Discovery, load_queries
from pulse.engagement import EngagementEnricher
from pulse.pipeline import PulsePipeline
from pulse.scoring import ImportanceScorer
from pulse.sentiment import BiasClassifier, SentimentClassifier
from pulse.settings import PulseSettings, load_settings
from pulse.store import Store
from pulse.summary import EditorialSummarizer
from pulse.takes import TakeDistiller


@dataclass
class Services:
    settings: PulseSettings
    store: Store
    search: ExaSearchClient
    completion: CompletionClient
    chat_completion: CompletionClient
    engagement: TwitterEngagementClient


def build_services(settings: Optional[PulseSettings] = None) -> Services:
    settings = settings or load_settings()
    return Services(
        settings=settings,
        store=Store(settings.database_url, run_stale_after_minutes=settings.run_stale_after_minutes),
        search=ExaSearchClient(settings.search_api_key, settings.search_endpoint),
        completion=CompletionClient(
            settings.completion_api_key,
            settings.completion_base_url,
            model=settings.completion_fast_model,
        ),
        chat_completion=CompletionClient(settings.chat_api_key, settings.chat_base_url, model=settings.chat_model),
        engagement=TwitterEngagementClient(settings.engagement_api_key, settings.engagement_endpoint),
    )


def build_pipeline(services: Services) -> PulsePipeline:
    """Wire every stage; clustering gets the stronger model, the rest use the fast one."""
    settings = services.settings
    fast = settings.completion_fast_model
    return PulsePipeline(
        store=services.store,
        discovery=Discovery(
            services.search,
            load_queries(settings.queries_path),
            max_workers=settings.search_workers,
        ),
        enricher=EngagementEnricher(services.store, services.engagement),
        scorer=ImportanceScorer(services.store, services.completion, model=fast),
        distiller=TakeDistiller(services.store, services.completion, model=fast),
        sentiment=SentimentClassifier(services.completion, model=fast),
        clusterer=TopicClusterer(services.completion, model=settings.completion_model),
        bias=BiasClassifier(services.completion, model=fast),
        summarizer=EditorialSummarizer(services.completion, model=fast),
    )


def build_chat(services: Services) -> ChatSession:
    return ChatSession(services.chat_completion, services.search)


_services: Optional[Services] = None
_services_lock = threading.Lock()


def get_services() -> Services:
    """Process-wide services, built on first use so env files are loaded beforehand."""
    global _services
    with _services_lock:
        if _services is None:
            _services = build_services()
        return _services


__all__ = [
    "Services",
    "build_chat",
    "build_pipeline",
    "build_services",
    "get_services",
]
