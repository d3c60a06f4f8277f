"""
Clients for the three hosted services the pipeline depends on.
"""
from pulse.clients.base import CompletionService, EngagementService, SearchService
from pulse.clients.completion import CompletionClient
from pulse.clients.engagement import TwitterEngagementClient
from pulse.clients.search import ExaSearchClient

__all__ = [
    "CompletionClient",
    "CompletionService",
    "EngagementService",
    "ExaSearchClient",
    "SearchService",
    "TwitterEngagementClient",
]
