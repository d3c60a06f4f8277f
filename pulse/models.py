"""
Core data structures shared by the sentiment pipeline, the store and the web layer.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SourceType(str, Enum):
    TWITTER = "twitter"
    REDDIT = "reddit"
    FORUM = "forum"
    BLOG = "blog"
    NEWS = "news"


class Subject(str, Enum):
    CLAUDE = "claude"
    OPENAI = "openai"
    BOTH = "both"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Bias(str, Enum):
    CLAUDE = "claude"
    OPENAI = "openai"
    NEUTRAL = "neutral"


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FeedFilter(str, Enum):
    ALL = "all"
    CLAUDE = "claude"
    OPENAI = "openai"
    POLARIZED = "polarized"


@dataclass
class Citation:
    """
    A single search hit, before it is persisted as an item.
    """

    url: str
    title: str = ""
    snippet: str = ""
    published_date: Optional[str] = None
    author: Optional[str] = None
    image: Optional[str] = None


@dataclass
class Item:
    """
    Persisted unit: one discovered post or article plus everything later stages attach to it.
    """

    id: str
    url: str
    source_type: SourceType
    subject: Subject
    discovered_at: str
    run_id: str
    title: Optional[str] = None
    snippet: Optional[str] = None
    sentiment: Sentiment = Sentiment.NEUTRAL
    sentiment_score: Optional[int] = None
    published_at: Optional[str] = None
    author: Optional[str] = None
    importance_score: int = 0
    take: Optional[str] = None
    image_url: Optional[str] = None
    likes: Optional[int] = None
    reshares: Optional[int] = None
    replies: Optional[int] = None
    views: Optional[int] = None
    quotes: Optional[int] = None
    bookmarks: Optional[int] = None
    engagement_fetched_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["source_type"] = self.source_type.value
        payload["subject"] = self.subject.value
        payload["sentiment"] = self.sentiment.value
        return payload


@dataclass
class Engagement:
    likes: int = 0
    reshares: int = 0
    replies: int = 0
    views: int = 0
    quotes: int = 0
    bookmarks: int = 0
    image_url: Optional[str] = None


@dataclass
class Run:
    id: str
    started_at: str
    status: RunStatus = RunStatus.RUNNING
    completed_at: Optional[str] = None
    items_found: int = 0
    items_new: int = 0
    summary: Optional[str] = None
    claude_score: Optional[int] = None
    openai_score: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload

    def summary_blob(self) -> Dict[str, Any]:
        """Parsed run summary; an empty dict when missing or unreadable."""
        if not self.summary:
            return {}
        try:
            data = json.loads(self.summary)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}


@dataclass
class Metric:
    id: int
    subject: Subject
    computed_at: str
    total_items: int
    positive_count: int
    negative_count: int
    neutral_count: int
    sentiment_score: int
    trend: Trend

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["subject"] = self.subject.value
        payload["trend"] = self.trend.value
        return payload


@dataclass
class Source:
    """One member of a cluster, shaped for display."""

    url: str
    title: str
    snippet: str = ""
    author: str = ""
    domain: str = ""
    image_url: Optional[str] = None


@dataclass
class Cluster:
    headline: str
    subheadline: str
    sources: List[Source] = field(default_factory=list)
    image_url: Optional[str] = None


@dataclass
class AnalysisResult:
    clusters: List[Cluster]
    total_analyzed: int
    total_kept: int


@dataclass
class SentimentResult:
    item_id: str
    sentiment: Sentiment
    sentiment_score: int


@dataclass
class BiasEntry:
    id: str
    text: str


@dataclass
class BiasResult:
    items: List[Dict[str, str]]
    summary: Dict[str, int]
    failed: bool = False

    @classmethod
    def empty(cls) -> "BiasResult":
        return cls(items=[], summary={bias.value: 0 for bias in Bias})


@dataclass
class RunStats:
    run_id: str
    total_searched: int
    unique_citations: int
    items_new: int
    takes_generated: int
    clusters_created: int
    sources_used: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
