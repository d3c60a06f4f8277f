import json
import tempfile
import unittest
from pathlib import Path

from flask import Flask

from api_routes import register_routes
from app_utils import SmartCache
from pulse.errors import RunInProgressError, ServiceError
from pulse.models import AnalysisResult, BiasResult, Citation, Cluster, Engagement, RunStats, Sentiment, Source, Subject
from pulse.pipeline import run_summary_blob
from pulse.settings import load_settings
from pulse.store import Store
from pulse.summary import SummaryReport

TEMPLATES = Path(__file__).resolve().parents[2] / "templates"


class _FakePipeline:
    def __init__(self, outcome):
        self.outcome = outcome
        self.runs = 0

    def run(self):
        self.runs += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class _FakeSummarizer:
    def __init__(self, error=None):
        self.error = error

    def generate(self, items):
        if self.error:
            raise self.error
        return SummaryReport("Mood favours Claude.", len(items), len(items), 0)


class _FakeBias:
    def __init__(self, failed=False):
        self.failed = failed
        self.entries = None

    def classify(self, entries):
        self.entries = list(entries)
        result = BiasResult.empty()
        for entry in entries:
            result.items.append({"id": entry.id, "bias": "openai"})
            result.summary["openai"] += 1
        result.failed = self.failed
        return result


class _FakeChat:
    def __init__(self):
        self.calls = []

    def stream(self, message, history=None):
        self.calls.append((message, history))
        yield 'event: content\ndata: {"content": "hi"}\n\n'
        yield 'event: done\ndata: {"exaUsed": false}\n\n'


STATS = RunStats("run-9", 40, 30, 12, 5, 3, 25)


class ApiRoutesTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = Store(f"sqlite:///{Path(self._tmp.name) / 'pulse.db'}")
        self.settings = load_settings()
        self.settings.cron_secret = "s3cret"
        self.cache = SmartCache(ttl_seconds=60)
        self.pipeline = _FakePipeline(STATS)
        self.summarizer = _FakeSummarizer()
        self.bias = _FakeBias()
        self.chat = _FakeChat()
        self.client = self._client()

    def tearDown(self) -> None:
        self.store.engine.dispose()
        self._tmp.cleanup()

    def _client(self):
        app = Flask(__name__, template_folder=str(TEMPLATES))
        register_routes(
            app,
            self.cache,
            self.settings,
            self.store,
            lambda: self.pipeline,
            self.summarizer,
            self.bias,
            self.chat,
        )
        app.testing = True
        return app.test_client()

    def _seed(self):
        citations = [
            Citation(url=f"https://x.com/dev{n}/status/{n}", snippet=f"Claude Code tested vs Codex, run {n}", author=f"dev{n}")
            for n in range(3)
        ]
        self.store.persist_citations(citations, "seed")
        for item in self.store.tweets_for_summary():
            self.store.update_engagement(item.id, Engagement(likes=500, views=10000))
            self.store.update_sentiment(item.id, Sentiment.POSITIVE, 70)
        return citations

    # ---- cron --------------------------------------------------------------

    def test_cron_requires_secret(self):
        self.assertEqual(self.client.post("/api/cron").status_code, 401)
        self.assertEqual(self.client.post("/api/cron", headers={"x-cron-secret": "nope"}).status_code, 401)
        self.assertEqual(self.pipeline.runs, 0)

    def test_cron_without_configured_secret_rejects_everything(self):
        self.settings.cron_secret = None
        self.assertEqual(self.client.post("/api/cron?secret=").status_code, 401)

    def test_cron_runs_pipeline(self):
        self.cache.set("api:metrics", {"stale": True})
        response = self.client.post("/api/cron?secret=s3cret")
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertTrue(body["success"])
        self.assertEqual(body["run_id"], "run-9")
        self.assertEqual(body["clusters_created"], 3)
        self.assertIsNone(self.cache.get("api:metrics"))

    def test_cron_conflict_and_failure(self):
        self.pipeline.outcome = RunInProgressError("other")
        response = self.client.post("/api/cron", headers={"x-cron-secret": "s3cret"})
        self.assertEqual(response.status_code, 409)

        self.pipeline.outcome = RuntimeError("db locked, api_key=abc123")
        response = self.client.post("/api/cron", headers={"x-cron-secret": "s3cret"})
        self.assertEqual(response.status_code, 500)
        body = response.get_json()
        self.assertEqual(body["error"], "Cron run failed")
        self.assertIn("db locked", body["details"])
        self.assertNotIn("abc123", body["details"])

    # ---- feed / metrics / monitor -------------------------------------------

    def test_feed_filters_and_pagination(self):
        self._seed()
        body = self.client.get("/api/feed?filter=claude&limit=2").get_json()
        self.assertEqual(len(body["items"]), 2)
        self.assertEqual(body["total"], 3)
        self.assertTrue(body["has_more"])
        self.assertEqual(body["items"][0]["source_type"], "twitter")

        body = self.client.get("/api/feed?limit=500&offset=2").get_json()
        self.assertEqual(len(body["items"]), 1)
        self.assertFalse(body["has_more"])

    def test_feed_rejects_unknown_filter(self):
        response = self.client.get("/api/feed?filter=gemini")
        self.assertEqual(response.status_code, 400)
        self.assertIn("polarized", response.get_json()["allowed"])

    def test_metrics_are_cached(self):
        self._seed()
        self.store.compute_and_store_metrics(Subject.CLAUDE)
        first = self.client.get("/api/metrics").get_json()
        self.assertEqual(first["claude"]["sentiment_score"], 70)
        self.assertIsNone(first["openai"])

        self.store.compute_and_store_metrics(Subject.OPENAI)
        second = self.client.get("/api/metrics").get_json()
        self.assertIsNone(second["openai"])

    def test_monitor_before_and_after_a_run(self):
        body = self.client.get("/api/monitor").get_json()
        self.assertEqual(body["status"], "never_run")
        self.assertTrue(body["is_overdue"])

        self.store.claim_run("r1")
        self.store.complete_run("r1", items_found=1, items_new=1, summary="{}")
        body = self.client.get("/api/monitor").get_json()
        self.assertEqual(body["status"], "active")
        self.assertEqual(body["last_run"]["id"], "r1")
        self.assertFalse(body["is_overdue"])

    # ---- summary / bias / chat / health -------------------------------------

    def test_summary_success_and_failure(self):
        self._seed()
        body = self.client.get("/api/summary").get_json()
        self.assertEqual(body["summary"], "Mood favours Claude.")
        self.assertEqual(body["tweet_count"], 3)

        self.summarizer.error = ServiceError("down")
        response = self.client.get("/api/summary")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {"summary": None})

    def test_bias_validates_items(self):
        payload = {"items": [{"id": "a", "text": "Codex wins"}, {"text": "no id"}, "junk"]}
        body = self.client.post("/api/bias", json=payload).get_json()
        self.assertEqual(body["items"], [{"id": "a", "bias": "openai"}])
        self.assertEqual(body["summary"]["openai"], 1)

    def test_bias_failure_returns_empty_500(self):
        self.bias.failed = True
        response = self.client.post("/api/bias", json={"items": [{"id": "a", "text": "x"}]})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {"items": [], "summary": {"claude": 0, "openai": 0, "neutral": 0}})

    def test_chat_streams_events(self):
        response = self.client.post("/api/chat", json={"message": " hello ", "history": [{"role": "user", "content": "x"}]})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.mimetype.startswith("text/event-stream"))
        self.assertEqual(response.headers["Cache-Control"], "no-cache")
        text = response.get_data(as_text=True)
        self.assertIn("event: content", text)
        self.assertIn("event: done", text)
        self.assertEqual(self.chat.calls[0][0], "hello")

    def test_chat_requires_message(self):
        self.assertEqual(self.client.post("/api/chat", json={}).status_code, 400)

    def test_health_hides_secrets(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertTrue(body["services"]["cron_secret"])
        self.assertNotIn("s3cret", json.dumps(body))
        self.assertIn("ttl_seconds", body["cache"])

    # ---- page ---------------------------------------------------------------

    def test_index_renders_cached_run(self):
        citations = self._seed()
        self.store.update_image_url(self.store.tweets_for_summary()[0].id, "https://img.example/hero.jpg")
        analysis = AnalysisResult(
            [Cluster("Claude Code beats Codex on refactors", "Three engineers compared.", [Source(url=c.url, title="t") for c in citations])],
            3,
            3,
        )
        bias = BiasResult.empty()
        bias.items.append({"id": "cluster-0", "bias": "claude"})
        bias.summary["claude"] = 1
        blob = run_summary_blob(analysis, 40, bias, "Engineers are leaning Claude this week.")
        self.store.claim_run("r1")
        self.store.complete_run("r1", items_found=40, items_new=3, summary=json.dumps(blob))

        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        html = response.get_data(as_text=True)
        self.assertIn("Claude Code beats Codex on refactors", html)
        self.assertIn("Engineers are leaning Claude this week.", html)
        self.assertIn("https://img.example/hero.jpg", html)

    def test_index_renders_without_runs(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertIn("No stories yet", response.get_data(as_text=True))


if __name__ == "__main__":
    unittest.main()
