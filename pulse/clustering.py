"""
Topic clustering of distilled tweets and articles into headline stories.

The completion model proposes clusters; its index lists are then sanitised so
that every input lands in exactly one cluster. Indices the model leaves out
are placed by word overlap with each cluster's headline.
"""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pulse.clients.base import CompletionService
from pulse.errors import PulseError
from pulse.llm_output import ClusterDraft, validate_entries
from pulse.models import AnalysisResult, Citation, Cluster, Item, Source
from pulse.text import clean_handle, extract_domain, format_handle

logger = logging.getLogger(__name__)

MAX_TWEETS = 200
MAX_ARTICLES = 50
FALLBACK_SIZE = 50
ARTICLE_SNIPPET_CHARS = 200
MIN_CLUSTERS = 10
MAX_CLUSTERS = 15
FALLBACK_HEADLINE = "Today's Coverage of Claude vs OpenAI"
FALLBACK_SUBHEADLINE = "All sources from the latest scan."

SYSTEM_PROMPT = """You are a sharp tech editor writing for Hacker News readers about Claude vs OpenAI. Style rules:
- NEVER use: "game-changer", "turning point", "landscape", "empowers", "showcases", "demonstrates", "highlights", "positions", "marks a significant", "fierce competition", "enhancing capabilities"
- Write like a developer talking to developers, not a press release
- Lead with the SPECIFIC thing that happened
- In subheadlines, say what SPECIFIC PEOPLE found, not what "is noted"
- Every claim must trace to source data. Never fabricate.
Return valid JSON."""

USER_PROMPT = """You have {n} curated sources (indices 0 through {last}) about Claude and OpenAI from the last 24 hours. Cluster ALL of them into {k} distinct headlines.

We care about Claude (Opus, Sonnet, Haiku, Claude Code, Anthropic) and OpenAI (GPT, Codex, ChatGPT, o-series): any recent models, products, or developer tools.

ASSIGNMENT RULE (MOST IMPORTANT): You MUST assign ALL {n} sources. Every index from 0 to {last} must appear in exactly one cluster's source_indices array. I will verify programmatically.

For each cluster, output:
1. "headline": 8-16 words with a SPECIFIC claim, opinion, or finding. Use real @handles when available.
2. "subheadline": 2-3 sentences with real substance from the actual sources.
3. "source_indices": array of source indices for this cluster.

PRIORITIZE: contrarian or surprising results, first-hand experience, concrete head-to-head comparisons, notable engineers taking clear stances, concrete new capabilities with evidence.

BANNED: "Game-Changer", "Turning Point", "New Era", "Reshaping the Landscape", "A Competitive Showdown", "Enhances/Empowers/Boosts/Showcases", "Enhanced Capabilities", any headline that could apply to any product launch.

RULES:
- {k} clusters. ALL {n} sources assigned.
- Average {avg} sources per cluster. Group related topics aggressively.
- Order by most interesting first.
- Mix Claude and OpenAI coverage.

Sources:

{sources}

Return JSON: {{"clusters": [{{"headline": "...", "subheadline": "...", "source_indices": [0, 3, 7, ...]}}]}}"""


def target_cluster_count(n: int) -> int:
    return max(MIN_CLUSTERS, min(MAX_CLUSTERS, n // 6))


@dataclass
class ClusterAssignment:
    headline: str
    subheadline: str
    indices: List[int] = field(default_factory=list)


def _as_index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def sanitize_assignments(drafts: Iterable[ClusterDraft], size: int) -> List[ClusterAssignment]:
    """Drop out-of-range and repeated indices; the first cluster to claim an index keeps it."""
    claimed = set()
    assignments = []
    for draft in drafts:
        indices = []
        for raw in draft.source_indices:
            index = _as_index(raw)
            if index is None or not 0 <= index < size or index in claimed:
                continue
            claimed.add(index)
            indices.append(index)
        assignments.append(ClusterAssignment(draft.headline, draft.subheadline, indices))
    return assignments


def significant_words(text: str) -> List[str]:
    return [word for word in text.lower().split() if len(word) > 3]


def reassign_unassigned(assignments: List[ClusterAssignment], texts: Sequence[str]) -> List[ClusterAssignment]:
    """
    Place every index in [0, len(texts)) that no cluster claimed.

    Each candidate cluster scores the number of its headline/subheadline words
    found in the item text, minus 3 when it already holds more than twice the
    average cluster size, or minus 1 when it holds more than the average. The
    best score wins; ties go to the earlier cluster. Mutates and returns
    `assignments`.
    """
    if not assignments:
        return assignments
    assigned = {index for a in assignments for index in a.indices}
    unassigned = [i for i in range(len(texts)) if i not in assigned]
    if not unassigned:
        return assignments
    logger.info("%s sources unassigned by the model, redistributing", len(unassigned))

    average = math.ceil(len(texts) / len(assignments))
    vocab = [significant_words(f"{a.headline} {a.subheadline}") for a in assignments]
    for index in unassigned:
        text = texts[index].lower()
        best, best_score = 0, -math.inf
        for position, assignment in enumerate(assignments):
            score = sum(1 for word in vocab[position] if word in text)
            current = len(assignment.indices)
            if current > average * 2:
                score -= 3
            elif current > average:
                score -= 1
            if score > best_score:
                best, best_score = position, score
        assignments[best].indices.append(index)
    return assignments


def source_from_tweet(item: Item) -> Source:
    # The take stands in for the title; it already carries the claim.
    return Source(
        url=item.url,
        title=item.take or "",
        snippet="",
        author=clean_handle(item.author),
        domain=extract_domain(item.url),
        image_url=item.image_url or None,
    )


def source_from_citation(citation: Citation) -> Source:
    return Source(
        url=citation.url,
        title=citation.title or "Untitled",
        snippet=citation.snippet or "",
        author=citation.author or "",
        domain=extract_domain(citation.url),
        image_url=citation.image or None,
    )


def build_clusters(assignments: Sequence[ClusterAssignment], sources: Sequence[Source]) -> List[Cluster]:
    clusters = []
    for assignment in assignments:
        members = [sources[i] for i in assignment.indices]
        if not members:
            continue
        hero = next((s.image_url for s in members if s.image_url), None)
        clusters.append(Cluster(assignment.headline, assignment.subheadline, members, hero))
    return clusters


def cluster_to_dict(cluster: Cluster) -> Dict[str, Any]:
    return asdict(cluster)


def cluster_from_dict(data: Dict[str, Any]) -> Cluster:
    sources = [
        Source(**{key: source.get(key) for key in ("url", "title", "snippet", "author", "domain", "image_url")})
        for source in data.get("sources") or []
        if isinstance(source, dict) and source.get("url")
    ]
    return Cluster(
        headline=data.get("headline") or "",
        subheadline=data.get("subheadline") or "",
        sources=sources,
        image_url=data.get("image_url"),
    )


def hydrate_cluster_images(clusters: List[Cluster], images: Dict[str, str]) -> List[Cluster]:
    """Fill missing source and hero images from stored image URLs (keyed by source URL)."""
    for cluster in clusters:
        for source in cluster.sources:
            if not source.image_url and source.url in images:
                source.image_url = images[source.url]
        if not cluster.image_url:
            cluster.image_url = next((s.image_url for s in cluster.sources if s.image_url), None)
    return clusters


class TopicClusterer:
    def __init__(self, completion: CompletionService, model: Optional[str] = None) -> None:
        self.completion = completion
        self.model = model

    def analyze(self, tweets: Sequence[Item], articles: Sequence[Citation]) -> AnalysisResult:
        total_input = len(tweets) + len(articles)
        sources = [source_from_tweet(t) for t in tweets[:MAX_TWEETS]]
        sources += [source_from_citation(c) for c in articles[:MAX_ARTICLES]]
        logger.info("Clustering %s tweets + %s articles", min(len(tweets), MAX_TWEETS), min(len(articles), MAX_ARTICLES))
        clusters = self.cluster(sources)
        logger.info("Created %s clusters", len(clusters))
        return AnalysisResult(clusters=clusters, total_analyzed=total_input, total_kept=len(sources))

    def cluster(self, sources: Sequence[Source]) -> List[Cluster]:
        if not sources:
            return []
        try:
            drafts = self._request_drafts(sources)
        except PulseError as exc:
            logger.error("Clustering failed, using a single fallback cluster: %s", exc)
            return [Cluster(FALLBACK_HEADLINE, FALLBACK_SUBHEADLINE, list(sources[:FALLBACK_SIZE]))]

        assignments = sanitize_assignments(drafts, len(sources))
        if not assignments:
            logger.warning("Model returned no clusters for %s sources", len(sources))
            assignments = [ClusterAssignment(FALLBACK_HEADLINE, FALLBACK_SUBHEADLINE)]
        texts = [f"{s.title} {s.snippet}" for s in sources]
        reassign_unassigned(assignments, texts)
        return build_clusters(assignments, sources)

    def _request_drafts(self, sources: Sequence[Source]) -> List[ClusterDraft]:
        n = len(sources)
        k = target_cluster_count(n)
        listing = "\n\n".join(self._source_line(i, s) for i, s in enumerate(sources))
        payload = self.completion.complete_json(
            SYSTEM_PROMPT,
            USER_PROMPT.format(n=n, last=n - 1, k=k, avg=round(n / k), sources=listing),
            model=self.model,
            temperature=0.3,
            max_tokens=12000,
        )
        return validate_entries(payload, ClusterDraft, ["clusters"])

    @staticmethod
    def _source_line(index: int, source: Source) -> str:
        head = f"[{index}] {source.domain} | {format_handle(source.author)}\n{source.title}"
        if source.snippet:
            return f"{head}\n{source.snippet[:ARTICLE_SNIPPET_CHARS]}"
        return head
