import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from pulse.discovery import (
    Discovery,
    SearchQuery,
    default_queries,
    is_excluded_url,
    load_queries,
    queries_from_config,
)
from pulse.errors import ServiceError
from pulse.models import Citation
from pulse.timeutil import to_iso

NOW = datetime(2025, 3, 2, 15, 30, tzinfo=timezone.utc)


class _FakeSearch:
    configured = True

    def __init__(self, results, failing=()):
        self.results = results
        self.failing = set(failing)
        self.calls = []

    def search(self, query, *, num_results, category=None, include_domains=None, start_published_date=None, max_chars=500):
        self.calls.append((query, start_published_date))
        if query in self.failing:
            raise ServiceError(f"search failed for {query}")
        return list(self.results.get(query, []))


class DiscoveryTests(unittest.TestCase):
    def test_merges_filters_and_dedupes(self):
        search = _FakeSearch(
            {
                "claude": [
                    Citation(url="https://x.com/a/status/1", title="one"),
                    Citation(url="https://www.marktechpost.com/claude-news", title="farm"),
                ],
                "codex": [
                    Citation(url="https://X.com/a/status/1/", title="dup"),
                    Citation(url="https://x.com/b/status/2", title="two"),
                ],
            },
            failing=["broken"],
        )
        queries = [SearchQuery("claude", 10), SearchQuery("codex", 10), SearchQuery("broken", 10)]
        result = Discovery(search, queries, max_workers=2).discover(now=NOW)

        self.assertEqual(result.total_searched, 4)
        self.assertEqual(result.failed_queries, 1)
        self.assertEqual(sorted(c.url.lower().rstrip("/") for c in result.citations), [
            "https://x.com/a/status/1",
            "https://x.com/b/status/2",
        ])

    def test_window_is_restamped_per_run(self):
        search = _FakeSearch({})
        queries = [SearchQuery("claude", 10, start_published_date="2020-01-01T00:00:00.000Z")]
        Discovery(search, queries).discover(now=NOW)
        self.assertEqual(search.calls, [("claude", to_iso(datetime(2025, 3, 1, tzinfo=timezone.utc)))])

    def test_no_queries_means_empty_result(self):
        result = Discovery(_FakeSearch({}), []).discover(now=NOW)
        self.assertEqual(result.citations, [])
        self.assertEqual(result.total_searched, 0)


class QueryBatteryTests(unittest.TestCase):
    def test_default_battery_mixes_tweets_and_domains(self):
        queries = default_queries(NOW)
        self.assertTrue(any(q.category == "tweet" for q in queries))
        self.assertTrue(any(q.include_domains and "reddit.com" in q.include_domains for q in queries))
        self.assertTrue(all(q.start_published_date == "2025-03-01T00:00:00.000Z" for q in queries))

    def test_config_resolves_domain_sets(self):
        config = {
            "domain_sets": {"hn": ["news.ycombinator.com"]},
            "queries": [
                {"query": "Claude Opus", "num_results": "12", "include_domains": "hn"},
                {"query": "Codex", "category": "tweet"},
                {"num_results": 5},
            ],
        }
        queries = queries_from_config(config, NOW)
        self.assertEqual(len(queries), 2)
        self.assertEqual(queries[0].num_results, 12)
        self.assertEqual(queries[0].include_domains, ["news.ycombinator.com"])
        self.assertEqual(queries[1].num_results, 10)

    def test_yaml_file_and_missing_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "queries.yaml"
            path.write_text("queries:\n  - query: Claude Code\n    num_results: 7\n", encoding="utf-8")
            loaded = load_queries(path, NOW)
            self.assertEqual([(q.query, q.num_results) for q in loaded], [("Claude Code", 7)])

            fallback = load_queries(Path(tmp) / "missing.yaml", NOW)
            self.assertEqual(len(fallback), len(default_queries(NOW)))

    def test_excluded_patterns(self):
        self.assertTrue(is_excluded_url("https://medium.com/@someone/claude-post"))
        self.assertFalse(is_excluded_url("https://x.com/karpathy/status/1"))


if __name__ == "__main__":
    unittest.main()
