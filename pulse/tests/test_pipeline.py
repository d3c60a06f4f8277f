import tempfile
import unittest
from pathlib import Path

from pulse.discovery import DiscoveryResult
from pulse.errors import RunInProgressError
from pulse.models import (
    AnalysisResult,
    BiasResult,
    Citation,
    Cluster,
    Engagement,
    RunStatus,
    Sentiment,
    SentimentResult,
    Source,
    Subject,
)
from pulse.pipeline import PulsePipeline, bias_entries_for
from pulse.store import Store


class _FakeDiscovery:
    def __init__(self, citations, error=None):
        self.citations = citations
        self.error = error

    def discover(self):
        if self.error:
            raise self.error
        return DiscoveryResult(citations=list(self.citations), total_searched=len(self.citations) + 2)


class _FakeEnricher:
    def __init__(self, store):
        self.store = store
        self.seen = []

    def enrich(self, items):
        self.seen.extend(i.id for i in items)
        for item in items:
            self.store.update_engagement(item.id, Engagement(likes=400, views=20000))


class _FakeScorer:
    def __init__(self, store):
        self.store = store

    def score(self, tweets):
        for tweet in tweets:
            self.store.update_importance_score(tweet.id, 8)


class _FakeDistiller:
    def __init__(self, store):
        self.store = store

    def distill(self, tweets):
        for tweet in tweets:
            self.store.update_take(tweet.id, f"take for {tweet.author}")
        return len(tweets)


class _FakeSentiment:
    def classify(self, items):
        return [SentimentResult(item.id, Sentiment.POSITIVE, 40) for item in items]


class _FakeClusterer:
    def __init__(self):
        self.inputs = None

    def analyze(self, tweets, articles):
        self.inputs = (list(tweets), list(articles))
        sources = [Source(url=t.url, title=t.take or "") for t in tweets]
        sources += [Source(url=a.url, title=a.title) for a in articles]
        return AnalysisResult([Cluster("Claude refactors", "Engineers agree.", sources)], len(sources), len(sources))


class _FakeBias:
    def __init__(self):
        self.entries = None

    def classify(self, entries):
        self.entries = list(entries)
        result = BiasResult.empty()
        for entry in entries:
            result.items.append({"id": entry.id, "bias": "claude"})
            result.summary["claude"] += 1
        return result


class _FakeSummarizer:
    def summarize(self, items):
        return f"{len(items)} tweets read"


CITATIONS = [
    Citation(url="https://x.com/karpathy/status/1", title="Claude Code nailed it", snippet="Claude Code nailed it", author="karpathy"),
    Citation(url="https://x.com/dev/status/2", title="ChatGPT got slower", snippet="ChatGPT got slower", author="dev"),
    Citation(url="https://www.theverge.com/anthropic-claude", title="Anthropic ships Claude update", snippet="Claude update"),
]


class PipelineTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = Store(f"sqlite:///{Path(self._tmp.name) / 'pulse.db'}")
        self.clusterer = _FakeClusterer()
        self.bias = _FakeBias()

    def tearDown(self) -> None:
        self.store.engine.dispose()
        self._tmp.cleanup()

    def _pipeline(self, discovery) -> PulsePipeline:
        return PulsePipeline(
            store=self.store,
            discovery=discovery,
            enricher=_FakeEnricher(self.store),
            scorer=_FakeScorer(self.store),
            distiller=_FakeDistiller(self.store),
            sentiment=_FakeSentiment(),
            clusterer=self.clusterer,
            bias=self.bias,
            summarizer=_FakeSummarizer(),
        )

    def test_full_run_completes_and_caches_blob(self):
        stats = self._pipeline(_FakeDiscovery(CITATIONS)).run("run-1")

        self.assertEqual(stats.total_searched, 5)
        self.assertEqual(stats.unique_citations, 3)
        self.assertEqual(stats.items_new, 3)
        self.assertEqual(stats.takes_generated, 2)
        self.assertEqual(stats.clusters_created, 1)
        self.assertEqual(stats.sources_used, 3)

        tweets, articles = self.clusterer.inputs
        self.assertEqual(len(tweets), 2)
        self.assertEqual([a.url for a in articles], ["https://www.theverge.com/anthropic-claude"])

        run = self.store.get_run("run-1")
        self.assertEqual(run.status, RunStatus.COMPLETED)
        self.assertEqual(run.items_found, 5)
        self.assertEqual(run.claude_score, 40)
        blob = run.summary_blob()
        self.assertEqual(blob["clusters"][0]["headline"], "Claude refactors")
        self.assertEqual(blob["total_kept"], 3)
        self.assertEqual(blob["cached_summary"], "2 tweets read")
        self.assertEqual(blob["cached_bias"]["summary"]["claude"], len(self.bias.entries))
        self.assertEqual(self.bias.entries[0].id, "cluster-0")

        metric = self.store.latest_metric(Subject.CLAUDE)
        self.assertEqual(metric.positive_count, 2)

    def test_second_run_finds_nothing_new(self):
        self._pipeline(_FakeDiscovery(CITATIONS)).run("run-1")
        stats = self._pipeline(_FakeDiscovery(CITATIONS)).run("run-2")
        self.assertEqual(stats.items_new, 0)
        self.assertEqual(stats.takes_generated, 0)
        self.assertEqual(self.store.total_items(), 3)

    def test_unexpected_error_fails_run_and_propagates(self):
        with self.assertRaises(RuntimeError):
            self._pipeline(_FakeDiscovery([], error=RuntimeError("search exploded"))).run("run-1")
        run = self.store.get_run("run-1")
        self.assertEqual(run.status, RunStatus.FAILED)
        self.assertEqual(run.error, "search exploded")

    def test_overlapping_run_is_rejected(self):
        self.store.claim_run("holder")
        with self.assertRaises(RunInProgressError):
            self._pipeline(_FakeDiscovery(CITATIONS)).run("run-1")
        self.assertEqual(self.store.get_run("holder").status, RunStatus.RUNNING)
        self.assertEqual(self.store.total_items(), 0)

    def test_bias_entries_cover_clusters_and_tweets(self):
        self.store.persist_citations(CITATIONS[:1], "run-0")
        tweets = self.store.tweets_for_summary()
        entries = bias_entries_for([Cluster("h", "s")], tweets)
        self.assertEqual([e.id for e in entries], ["cluster-0", f"tweet-{tweets[0].id}"])
        self.assertEqual(entries[0].text, "h. s")


if __name__ == "__main__":
    unittest.main()
