"""
Client for the TwitterAPI.io batch tweet lookup.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from pulse.errors import ServiceError
from pulse.http_client import HttpClient

logger = logging.getLogger(__name__)


class TwitterEngagementClient:
    def __init__(
        self,
        api_key: Optional[str],
        endpoint: str = "https://api.twitterapi.io/twitter/tweets",
        timeout: int = 30,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.http = HttpClient(
            timeout=timeout,
            max_retries=0,
            headers={"X-API-Key": api_key} if api_key else None,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def lookup(self, tweet_ids: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        """Return raw tweet payloads keyed by tweet id; unknown ids are simply absent."""
        if not self.configured:
            raise ServiceError("TWITTER_API_KEY not set")
        data = self.http.get_json(self.endpoint, params={"tweet_ids": ",".join(tweet_ids)})
        tweets = data.get("tweets") or []
        return {str(tweet["id"]): tweet for tweet in tweets if isinstance(tweet, dict) and tweet.get("id")}
