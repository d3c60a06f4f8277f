"""
Client for the Exa web-search API.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from pulse.errors import ServiceError
from pulse.http_client import HttpClient
from pulse.models import Citation

logger = logging.getLogger(__name__)


class ExaSearchClient:
    def __init__(self, api_key: Optional[str], endpoint: str = "https://api.exa.ai/search", timeout: int = 45) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.http = HttpClient(
            timeout=timeout,
            max_retries=0,
            headers={"x-api-key": api_key} if api_key else None,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

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
        if not self.configured:
            raise ServiceError("Search service API key missing")
        payload: Dict[str, Any] = {
            "query": query,
            "numResults": num_results,
            "type": "auto",
            "contents": {"text": True},
        }
        if category:
            payload["category"] = category
        if include_domains:
            payload["includeDomains"] = list(include_domains)
        if start_published_date:
            payload["startPublishedDate"] = start_published_date

        data = self.http.post_json(self.endpoint, payload)
        citations: List[Citation] = []
        for result in data.get("results") or []:
            url = result.get("url")
            if not url:
                continue
            citations.append(
                Citation(
                    url=url,
                    title=result.get("title") or "",
                    snippet=(result.get("text") or "")[:max_chars],
                    published_date=result.get("publishedDate"),
                    author=result.get("author"),
                    image=result.get("image") or None,
                )
            )
        return citations
