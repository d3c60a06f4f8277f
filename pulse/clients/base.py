"""
Service protocols so pipeline stages can be handed real clients or test fakes.
"""
from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

from pulse.models import Citation


class SearchService(Protocol):
    configured: bool

    def search(
        self,
        query: str,
        *,
        num_results: int,
        category: Optional[str] = None,
        include_domains: Optional[Sequence[str]] = None,
        start_published_date: Optional[str] = None,
        max_chars: int = 500,
    ) -> List[Citation]:
        ...


class CompletionService(Protocol):
    configured: bool

    def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> Dict[str, Any]:
        ...

    def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Iterator[Dict[str, Any]]:
        ...


class EngagementService(Protocol):
    configured: bool

    def lookup(self, tweet_ids: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        ...
