"""
Engagement enrichment: attach like/repost/view counts and a preview image to
stored tweets. Every tweet handed in ends up "checked" (engagement_fetched_at
set) unless the service is not configured at all, so dead links are not
retried on every run.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from pulse.clients.base import EngagementService
from pulse.errors import ServiceError
from pulse.models import Engagement, Item
from pulse.text import host_matches

logger = logging.getLogger(__name__)

BATCH_SIZE = 100
TWEET_HOSTS = ["twitter.com", "x.com"]
_STATUS_RE = re.compile(r"/status(?:es)?/(\d+)")


@dataclass
class EngagementStats:
    fetched: int = 0
    skipped: int = 0
    failed: int = 0


def extract_tweet_id(url: str) -> Optional[str]:
    if not url:
        return None
    normalized = url if url.startswith("http") else f"https://{url}"
    try:
        parts = urlsplit(normalized)
    except ValueError:
        return None
    hostname = (parts.hostname or "").lower()
    if not host_matches(hostname, TWEET_HOSTS):
        return None
    match = _STATUS_RE.search(parts.path)
    return match.group(1) if match else None


def format_count(value: Optional[int]) -> str:
    if not value:
        return "0"
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}k"
    return str(value)


def format_engagement_for_prompt(item: Item) -> str:
    """'1.2k likes, 30 RTs, 5.0M views'; empty when nothing was fetched."""
    if item.likes is None and item.views is None:
        return ""
    parts = []
    if item.likes:
        parts.append(f"{format_count(item.likes)} likes")
    if item.reshares:
        parts.append(f"{format_count(item.reshares)} RTs")
    if item.views:
        parts.append(f"{format_count(item.views)} views")
    return ", ".join(parts)


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def engagement_from_tweet(tweet: Dict[str, Any]) -> Engagement:
    media = tweet.get("media") or (tweet.get("extendedEntities") or {}).get("media") or []
    image_url = None
    for entry in media:
        if isinstance(entry, dict) and entry.get("media_url_https"):
            image_url = entry["media_url_https"]
            break
    return Engagement(
        likes=_as_int(tweet.get("likeCount")),
        reshares=_as_int(tweet.get("retweetCount")),
        replies=_as_int(tweet.get("replyCount")),
        views=_as_int(tweet.get("viewCount")),
        quotes=_as_int(tweet.get("quoteCount")),
        bookmarks=_as_int(tweet.get("bookmarkCount")),
        image_url=image_url,
    )


class EngagementEnricher:
    def __init__(self, store, service: EngagementService, batch_size: int = BATCH_SIZE) -> None:
        self.store = store
        self.service = service
        self.batch_size = batch_size

    def enrich(self, items: Sequence[Item]) -> EngagementStats:
        stats = EngagementStats()
        if not items:
            return stats
        if not self.service.configured:
            logger.warning("Engagement lookup not configured; skipping %s tweets", len(items))
            stats.skipped = len(items)
            return stats

        fetchable: List[Tuple[Item, str]] = []
        for item in items:
            tweet_id = extract_tweet_id(item.url)
            if tweet_id:
                fetchable.append((item, tweet_id))
            else:
                self.store.mark_engagement_checked(item.id)
                stats.skipped += 1
        logger.info("Engagement: %s tweets to fetch, %s without a tweet id", len(fetchable), stats.skipped)

        for start in range(0, len(fetchable), self.batch_size):
            batch = fetchable[start:start + self.batch_size]
            try:
                found = self.service.lookup([tweet_id for _, tweet_id in batch])
            except ServiceError as exc:
                logger.error("Engagement batch %s failed: %s", start // self.batch_size + 1, exc)
                for item, _ in batch:
                    self.store.mark_engagement_checked(item.id)
                stats.failed += len(batch)
                continue
            for item, tweet_id in batch:
                tweet = found.get(tweet_id)
                if tweet is None:
                    self.store.mark_engagement_checked(item.id)
                    stats.skipped += 1
                    continue
                self.store.update_engagement(item.id, engagement_from_tweet(tweet))
                stats.fetched += 1

        logger.info("Engagement done: %s fetched, %s skipped, %s failed", stats.fetched, stats.skipped, stats.failed)
        return stats
