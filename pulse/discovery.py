"""
Discovery stage: run the search battery in parallel and collapse the results
into one deduplicated list of citations.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pulse.clients.base import SearchService
from pulse.config_loader import load_queries_config
from pulse.dedupe import dedupe_by_key, normalize_url
from pulse.models import Citation
from pulse.timeutil import start_of_yesterday, to_iso, utc_now

logger = logging.getLogger(__name__)

TWITTER_DOMAINS = ["twitter.com", "x.com"]
REDDIT_DOMAINS = ["reddit.com", "old.reddit.com"]
HN_DOMAINS = ["news.ycombinator.com"]

# Aggregators, SEO farms and tool directories that never carry real opinions.
EXCLUDED_URL_PATTERNS = [
    "composio.dev",
    "toolify.ai",
    "theresanaiforthat.com",
    "aimodels.fyi",
    "gptstore.ai",
    "opentools.ai",
    "aiparabellum.com",
    "marktechpost.com",
    "analyticsinsight.net",
    "decrypt.co",
    "yahoo.com/lifestyle",
    "medium.com/@",
    "aiskill.market",
    "claudefa.st",
    "datacamp.com",
    "geeksforgeeks.org",
    "zapier.com/blog",
]


@dataclass
class SearchQuery:
    query: str
    num_results: int
    category: Optional[str] = None
    include_domains: Optional[List[str]] = None
    start_published_date: Optional[str] = None


@dataclass
class DiscoveryResult:
    citations: List[Citation] = field(default_factory=list)
    total_searched: int = 0
    failed_queries: int = 0


def _tweets(query: str, num_results: int) -> SearchQuery:
    return SearchQuery(query, num_results, category="tweet")


def _on(domains: Sequence[str], query: str, num_results: int) -> SearchQuery:
    return SearchQuery(query, num_results, include_domains=list(domains))


def default_queries(now: Optional[datetime] = None) -> List[SearchQuery]:
    """Fixed battery: heavy on tweets, plus Reddit, Hacker News and long-form articles."""
    queries = [
        # Claude / Anthropic tweets
        _tweets("Claude Opus model", 30),
        _tweets("Claude Sonnet impressions", 30),
        _tweets("Claude coding benchmark performance", 25),
        _tweets("Claude vs GPT comparison", 25),
        _tweets("Claude Code agentic", 25),
        _tweets("Anthropic Claude new model today", 25),
        _tweets("Claude best model ever", 20),
        _tweets("Claude disappointing mid overrated", 20),
        _tweets("Claude upgrade experience developer", 20),
        _tweets("Anthropic Claude benchmark SWE-bench", 20),
        _tweets("Claude coding agent terminal", 20),
        _tweets("Claude reasoning thinking model", 15),
        _tweets("Anthropic Claude beats OpenAI", 15),
        _tweets("Claude Code review first impressions engineer", 15),
        # OpenAI / Codex / GPT tweets
        _tweets("OpenAI Codex release agent", 30),
        _tweets("Codex coding agent cloud", 25),
        _tweets("OpenAI Codex impressions review", 25),
        _tweets("Codex vs Claude Code comparison", 25),
        _tweets("OpenAI Codex benchmark performance", 20),
        _tweets("GPT o3 o4-mini model", 20),
        _tweets("OpenAI Codex disappointing underwhelming", 20),
        _tweets("OpenAI Codex amazing impressive", 20),
        _tweets("Codex agent sandbox environment coding", 15),
        _tweets("OpenAI developer tools API launch", 15),
        _tweets("Sam Altman Codex announcement", 15),
        # Head-to-head
        _tweets("Claude vs Codex which is better", 25),
        _tweets("Claude vs ChatGPT coding", 20),
        _tweets("Claude Code vs Cursor vs Copilot", 20),
        _tweets("Anthropic vs OpenAI AI models", 15),
        _tweets("best AI coding model right now", 15),
        # Twitter domain backup for what the tweet category misses
        _on(TWITTER_DOMAINS, "Claude Opus Anthropic", 20),
        _on(TWITTER_DOMAINS, "Codex OpenAI agent", 20),
        _on(TWITTER_DOMAINS, "Claude Code developer", 15),
        _on(TWITTER_DOMAINS, "AI coding model comparison today", 15),
        # Reddit
        _on(REDDIT_DOMAINS, "Claude Opus review impressions", 20),
        _on(REDDIT_DOMAINS, "OpenAI Codex review impressions agent", 20),
        _on(REDDIT_DOMAINS, "Claude Code vs Cursor vs Copilot", 15),
        _on(REDDIT_DOMAINS, "Codex vs Claude Code comparison", 15),
        _on(REDDIT_DOMAINS, "best AI coding model 2025", 10),
        _on(REDDIT_DOMAINS, "Anthropic OpenAI announcement today", 10),
        # Hacker News
        _on(HN_DOMAINS, "Claude Opus Anthropic", 15),
        _on(HN_DOMAINS, "OpenAI Codex agent coding", 15),
        # Long-form web
        SearchQuery("Claude Opus release review technical analysis", 15),
        SearchQuery("OpenAI Codex launch review hands-on developer", 15),
        SearchQuery("Anthropic Claude Code developer tools launch", 10),
        SearchQuery("Claude vs OpenAI comparison benchmark analysis", 10),
    ]
    window_start = to_iso(start_of_yesterday(now or utc_now()))
    for query in queries:
        query.start_published_date = window_start
    return queries


def queries_from_config(config: Dict[str, Any], now: Optional[datetime] = None) -> List[SearchQuery]:
    """
    Build the battery from a parsed YAML mapping:

        domain_sets:
          twitter: [twitter.com, x.com]
        queries:
          - {query: "Claude Opus model", num_results: 30, category: tweet}
          - {query: "Claude Opus Anthropic", num_results: 20, include_domains: twitter}

    `include_domains` may be a list or the name of a domain set.
    """
    domain_sets = config.get("domain_sets") if isinstance(config.get("domain_sets"), dict) else {}
    window_start = to_iso(start_of_yesterday(now or utc_now()))
    queries: List[SearchQuery] = []
    for entry in config.get("queries") or []:
        if not isinstance(entry, dict) or not isinstance(entry.get("query"), str):
            logger.warning("Skipping malformed query entry: %s", entry)
            continue
        domains = entry.get("include_domains")
        if isinstance(domains, str):
            domains = domain_sets.get(domains) or [domains]
        try:
            num_results = int(entry.get("num_results", 10))
        except (TypeError, ValueError):
            logger.warning("Invalid num_results for %r; using 10", entry["query"])
            num_results = 10
        queries.append(
            SearchQuery(
                query=entry["query"],
                num_results=num_results,
                category=entry.get("category"),
                include_domains=[d for d in domains if isinstance(d, str)] if domains else None,
                start_published_date=window_start,
            )
        )
    return queries


def load_queries(config_path: Path, now: Optional[datetime] = None) -> List[SearchQuery]:
    config = load_queries_config(config_path)
    queries = queries_from_config(config, now) if config else []
    if queries:
        logger.info("Loaded %s search queries from %s", len(queries), config_path)
        return queries
    return default_queries(now)


def is_excluded_url(url: str, patterns: Sequence[str] = EXCLUDED_URL_PATTERNS) -> bool:
    lowered = url.lower()
    return any(pattern in lowered for pattern in patterns)


class Discovery:
    def __init__(
        self,
        search: SearchService,
        queries: Optional[Sequence[SearchQuery]] = None,
        *,
        max_workers: int = 8,
        excluded_patterns: Sequence[str] = EXCLUDED_URL_PATTERNS,
    ) -> None:
        self.search = search
        self.queries = list(queries) if queries is not None else default_queries()
        self.max_workers = max_workers
        self.excluded_patterns = list(excluded_patterns)

    def _run_query(self, query: SearchQuery) -> List[Citation]:
        return self.search.search(
            query.query,
            num_results=query.num_results,
            category=query.category,
            include_domains=query.include_domains,
            start_published_date=query.start_published_date,
        )

    def discover(self, now: Optional[datetime] = None) -> DiscoveryResult:
        result = DiscoveryResult()
        if not self.queries:
            return result
        # The rolling window moves with every run, even when the battery was built long ago.
        window_start = to_iso(start_of_yesterday(now or utc_now()))
        queries = [replace(query, start_published_date=window_start) for query in self.queries]
        raw: List[Citation] = []
        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(queries)))) as executor:
            future_map = {executor.submit(self._run_query, query): query for query in queries}
            for future in as_completed(future_map):
                query = future_map[future]
                try:
                    citations = future.result()
                except Exception as exc:
                    logger.error("Search failed for %r: %s", query.query, exc)
                    result.failed_queries += 1
                    continue
                raw.extend(citations)

        result.total_searched = len(raw)
        kept = [c for c in raw if c.url and not is_excluded_url(c.url, self.excluded_patterns)]
        result.citations = dedupe_by_key(kept, lambda c: normalize_url(c.url))
        logger.info(
            "Discovery: %s raw results from %s queries (%s failed), %s unique citations",
            result.total_searched,
            len(self.queries),
            result.failed_queries,
            len(result.citations),
        )
        return result
