"""
End-to-end orchestration of one sentiment run.

Stages run strictly in sequence: discover, persist, enrich, score, distill,
classify, compute metrics, cluster, then cache bias and summary in the run
record. Each stage handles its own service failures; anything else fails the
run and propagates.
"""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from pulse.clustering import TopicClusterer, cluster_to_dict
from pulse.discovery import Discovery
from pulse.engagement import EngagementEnricher
from pulse.models import AnalysisResult, BiasEntry, BiasResult, Cluster, Item, RunStats, Subject
from pulse.scoring import ImportanceScorer
from pulse.sentiment import BiasClassifier, SentimentClassifier
from pulse.store import Store
from pulse.summary import EditorialSummarizer
from pulse.takes import TakeDistiller
from pulse.text import is_social_url
from pulse.timeutil import to_iso, utc_now

logger = logging.getLogger(__name__)

ENGAGEMENT_LIMIT = 500
SCORING_LIMIT = 1000
TAKES_LIMIT = 500
CLUSTER_TWEETS_LIMIT = 200
DISPLAYED_TWEETS = 30


def bias_entries_for(clusters: List[Cluster], tweets: List[Item]) -> List[BiasEntry]:
    """Bias inputs for the page: every cluster headline plus the displayed tweets."""
    entries = [BiasEntry(f"cluster-{i}", f"{c.headline}. {c.subheadline}") for i, c in enumerate(clusters)]
    entries += [BiasEntry(f"tweet-{t.id}", f"{t.author or ''}: {t.snippet or ''}") for t in tweets]
    return entries


def run_summary_blob(
    analysis: AnalysisResult,
    total_searched: int,
    bias: BiasResult,
    summary: Optional[str],
) -> Dict[str, Any]:
    return {
        "clusters": [cluster_to_dict(c) for c in analysis.clusters],
        "total_analyzed": total_searched,
        "total_kept": analysis.total_kept,
        "generated_at": to_iso(utc_now()),
        "cached_bias": {"items": bias.items, "summary": bias.summary},
        "cached_summary": summary,
    }


class PulsePipeline:
    def __init__(
        self,
        store: Store,
        discovery: Discovery,
        enricher: EngagementEnricher,
        scorer: ImportanceScorer,
        distiller: TakeDistiller,
        sentiment: SentimentClassifier,
        clusterer: TopicClusterer,
        bias: BiasClassifier,
        summarizer: EditorialSummarizer,
    ) -> None:
        self.store = store
        self.discovery = discovery
        self.enricher = enricher
        self.scorer = scorer
        self.distiller = distiller
        self.sentiment = sentiment
        self.clusterer = clusterer
        self.bias = bias
        self.summarizer = summarizer

    def run(self, run_id: Optional[str] = None) -> RunStats:
        """Execute one run. Raises RunInProgressError if another run holds the claim."""
        run_id = run_id or uuid.uuid4().hex
        self.store.claim_run(run_id)
        logger.info("Starting run %s", run_id)
        try:
            stats = self._execute(run_id)
        except Exception as exc:
            logger.exception("Run %s failed", run_id)
            self.store.fail_run(run_id, str(exc))
            raise
        logger.info(
            "Run %s completed: %s clusters from %s sources",
            run_id,
            stats.clusters_created,
            stats.sources_used,
        )
        return stats

    def _execute(self, run_id: str) -> RunStats:
        discovered = self.discovery.discover()
        citations = discovered.citations

        persisted = self.store.persist_citations(citations, run_id)

        pending_engagement = self.store.tweets_without_engagement(ENGAGEMENT_LIMIT)
        if pending_engagement:
            self.enricher.enrich(pending_engagement)

        unscored = self.store.unscored_tweets(SCORING_LIMIT)
        if unscored:
            logger.info("Scoring %s unscored tweets", len(unscored))
            self.scorer.score(unscored)

        needing_takes = self.store.tweets_without_takes(TAKES_LIMIT)
        takes_generated = self.distiller.distill(needing_takes) if needing_takes else 0

        new_items = self.store.get_items(persisted.new_ids)
        for result in self.sentiment.classify(new_items):
            self.store.update_sentiment(result.item_id, result.sentiment, result.sentiment_score)
        metrics = {subject: self.store.compute_and_store_metrics(subject) for subject in (Subject.CLAUDE, Subject.OPENAI)}

        top_tweets = self.store.top_tweets_with_takes(CLUSTER_TWEETS_LIMIT)
        articles = [c for c in citations if not is_social_url(c.url)]
        analysis = self.clusterer.analyze(top_tweets, articles)

        displayed = self.store.recent_tweets(DISPLAYED_TWEETS)
        bias = self.bias.classify(bias_entries_for(analysis.clusters, displayed))
        summary = self.summarizer.summarize(self.store.tweets_for_summary())

        blob = run_summary_blob(analysis, discovered.total_searched, bias, summary)
        self.store.complete_run(
            run_id,
            items_found=discovered.total_searched,
            items_new=persisted.new,
            summary=json.dumps(blob),
            claude_score=metrics[Subject.CLAUDE].sentiment_score,
            openai_score=metrics[Subject.OPENAI].sentiment_score,
        )
        return RunStats(
            run_id=run_id,
            total_searched=discovered.total_searched,
            unique_citations=len(citations),
            items_new=persisted.new,
            takes_generated=takes_generated,
            clusters_created=len(analysis.clusters),
            sources_used=analysis.total_kept,
        )
