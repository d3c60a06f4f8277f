import unittest

from pulse.errors import ServiceError
from pulse.models import BiasEntry, Item, Sentiment, SourceType, Subject
from pulse.sentiment import BiasClassifier, SentimentClassifier, clamp_sentiment_score, parse_bias
from pulse.summary import EditorialSummarizer, mention_counts


def _item(n: int, subject: Subject = Subject.CLAUDE) -> Item:
    return Item(
        id=f"id-{n}",
        url=f"https://x.com/u/status/{n}",
        source_type=SourceType.TWITTER,
        subject=subject,
        discovered_at="2025-03-01T00:00:00.000Z",
        run_id="run",
        snippet=f"post {n}",
        author="u",
    )


class _ScriptedCompletion:
    configured = True

    def __init__(self, *responses):
        self.responses = list(responses)

    def complete_json(self, system_prompt, user_prompt, *, model=None, temperature=0.2, max_tokens=2000):
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class SentimentClassifierTests(unittest.TestCase):
    def test_scores_are_clamped_and_missing_entries_are_neutral(self):
        completion = _ScriptedCompletion(
            {
                "classifications": [
                    {"index": 0, "sentiment": "POSITIVE", "sentiment_score": 250},
                    {"index": 1, "sentiment": "negative", "sentiment_score": -40.6},
                    {"index": 2, "sentiment": "ecstatic", "sentiment_score": None},
                ]
            }
        )
        results = SentimentClassifier(completion).classify([_item(0), _item(1), _item(2), _item(3)])

        self.assertEqual([r.item_id for r in results], ["id-0", "id-1", "id-2", "id-3"])
        self.assertEqual((results[0].sentiment, results[0].sentiment_score), (Sentiment.POSITIVE, 100))
        self.assertEqual((results[1].sentiment, results[1].sentiment_score), (Sentiment.NEGATIVE, -41))
        self.assertEqual((results[2].sentiment, results[2].sentiment_score), (Sentiment.NEUTRAL, 0))
        self.assertEqual((results[3].sentiment, results[3].sentiment_score), (Sentiment.NEUTRAL, 0))
        self.assertTrue(all(-100 <= r.sentiment_score <= 100 for r in results))

    def test_failed_batch_is_all_neutral(self):
        completion = _ScriptedCompletion(ServiceError("timeout"))
        results = SentimentClassifier(completion).classify([_item(0), _item(1)])
        self.assertEqual({r.sentiment for r in results}, {Sentiment.NEUTRAL})

    def test_non_finite_scores_are_dropped(self):
        completion = _ScriptedCompletion(
            {
                "results": [
                    {"index": 0, "sentiment": "positive", "sentiment_score": float("nan")},
                    {"index": 1, "sentiment": "negative", "sentiment_score": float("-inf")},
                    {"index": 2, "sentiment": "positive", "sentiment_score": 35},
                ]
            }
        )
        results = SentimentClassifier(completion).classify([_item(0), _item(1), _item(2)])

        self.assertEqual((results[0].sentiment, results[0].sentiment_score), (Sentiment.NEUTRAL, 0))
        self.assertEqual((results[1].sentiment, results[1].sentiment_score), (Sentiment.NEUTRAL, 0))
        self.assertEqual((results[2].sentiment, results[2].sentiment_score), (Sentiment.POSITIVE, 35))

    def test_clamp(self):
        self.assertEqual(clamp_sentiment_score(-101), -100)
        self.assertEqual(clamp_sentiment_score(12.4), 12)


class BiasClassifierTests(unittest.TestCase):
    def test_missing_items_fill_as_neutral(self):
        completion = _ScriptedCompletion(
            {"results": [{"index": 0, "bias": "claude"}, {"index": 2, "bias": "OpenAI"}, {"index": 5, "bias": "claude"}]}
        )
        entries = [BiasEntry("a", "Claude wins"), BiasEntry("b", "meh"), BiasEntry("c", "Codex wins")]
        result = BiasClassifier(completion).classify(entries)

        self.assertEqual(
            result.items,
            [{"id": "a", "bias": "claude"}, {"id": "b", "bias": "neutral"}, {"id": "c", "bias": "openai"}],
        )
        self.assertEqual(result.summary, {"claude": 1, "openai": 1, "neutral": 1})
        self.assertFalse(result.failed)

    def test_failure_is_flagged(self):
        result = BiasClassifier(_ScriptedCompletion(ServiceError("down"))).classify([BiasEntry("a", "x")])
        self.assertTrue(result.failed)
        self.assertEqual(result.summary["neutral"], 1)

    def test_empty_input(self):
        result = BiasClassifier(_ScriptedCompletion()).classify([])
        self.assertEqual(result.items, [])
        self.assertEqual(result.summary, {"claude": 0, "openai": 0, "neutral": 0})

    def test_unknown_label(self):
        self.assertEqual(parse_bias("gemini").value, "neutral")


class SummaryTests(unittest.TestCase):
    def test_generate_counts_mentions(self):
        items = [_item(0), _item(1, Subject.OPENAI), _item(2, Subject.BOTH)]
        completion = _ScriptedCompletion({"summary": "  Engineers lean Claude for refactors.  "})
        report = EditorialSummarizer(completion).generate(items)

        self.assertEqual(report.summary, "Engineers lean Claude for refactors.")
        self.assertEqual(report.tweet_count, 3)
        self.assertEqual(report.claude_mentions, 2)
        self.assertEqual(report.openai_mentions, 2)

    def test_empty_input_skips_the_model(self):
        report = EditorialSummarizer(_ScriptedCompletion()).generate([])
        self.assertIsNone(report.summary)
        self.assertEqual(mention_counts([]), {"claude": 0, "openai": 0})

    def test_generate_raises_and_summarize_swallows(self):
        with self.assertRaises(ServiceError):
            EditorialSummarizer(_ScriptedCompletion(ServiceError("down"))).generate([_item(0)])
        self.assertIsNone(EditorialSummarizer(_ScriptedCompletion(ServiceError("down"))).summarize([_item(0)]))


if __name__ == "__main__":
    unittest.main()
