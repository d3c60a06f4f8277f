import tempfile
import unittest
from pathlib import Path

from pulse.dedupe import hash_url
from pulse.engagement import (
    EngagementEnricher,
    engagement_from_tweet,
    extract_tweet_id,
    format_count,
    format_engagement_for_prompt,
)
from pulse.errors import ServiceError
from pulse.models import Citation, Item, SourceType, Subject
from pulse.store import Store


class _FakeEngagement:
    def __init__(self, tweets=None, configured=True, fail=False):
        self.tweets = tweets or {}
        self.configured = configured
        self.fail = fail
        self.requested = []

    def lookup(self, tweet_ids):
        self.requested.append(list(tweet_ids))
        if self.fail:
            raise ServiceError("engagement API returned 500")
        return {tid: self.tweets[tid] for tid in tweet_ids if tid in self.tweets}


class HelperTests(unittest.TestCase):
    def test_extract_tweet_id(self):
        self.assertEqual(extract_tweet_id("https://x.com/karpathy/status/1234567890"), "1234567890")
        self.assertEqual(extract_tweet_id("twitter.com/a/statuses/42?s=20"), "42")
        self.assertIsNone(extract_tweet_id("https://x.com/karpathy"))
        self.assertIsNone(extract_tweet_id("https://reddit.com/status/1"))
        self.assertIsNone(extract_tweet_id("https://www.dropbox.com/team/status/123"))
        self.assertIsNone(extract_tweet_id("https://www.vox.com/a/status/123"))

    def test_engagement_from_tweet_picks_first_image(self):
        tweet = {
            "likeCount": 1200,
            "retweetCount": "30",
            "viewCount": None,
            "extendedEntities": {"media": [{"type": "photo", "media_url_https": "https://pbs/1.jpg"}]},
        }
        engagement = engagement_from_tweet(tweet)
        self.assertEqual(engagement.likes, 1200)
        self.assertEqual(engagement.reshares, 30)
        self.assertEqual(engagement.views, 0)
        self.assertEqual(engagement.image_url, "https://pbs/1.jpg")

    def test_prompt_formatting(self):
        self.assertEqual(format_count(1500), "1.5k")
        self.assertEqual(format_count(2_300_000), "2.3M")
        item = Item(
            id="i", url="u", source_type=SourceType.TWITTER, subject=Subject.BOTH,
            discovered_at="", run_id="r", likes=1200, reshares=30, views=5_000_000,
        )
        self.assertEqual(format_engagement_for_prompt(item), "1.2k likes, 30 RTs, 5.0M views")


class EnricherTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = Store(f"sqlite:///{Path(self._tmp.name) / 'pulse.db'}")
        self.store.persist_citations(
            [
                Citation(url="https://x.com/a/status/1", snippet="claude"),
                Citation(url="https://x.com/a/status/2", snippet="claude"),
                Citation(url="https://x.com/a", snippet="profile page, no status id"),
            ],
            "run-1",
        )

    def tearDown(self) -> None:
        self.store.engine.dispose()
        self._tmp.cleanup()

    def test_unparseable_url_is_checked_and_not_reselected(self):
        service = _FakeEngagement({"1": {"likeCount": 10, "viewCount": 900}})
        stats = EngagementEnricher(self.store, service).enrich(self.store.tweets_without_engagement())

        self.assertEqual(stats.fetched, 1)
        self.assertEqual(stats.skipped, 2)
        self.assertEqual([sorted(batch) for batch in service.requested], [["1", "2"]])
        self.assertEqual(self.store.tweets_without_engagement(), [])
        profile = self.store.get_item(hash_url("https://x.com/a"))
        self.assertIsNotNone(profile.engagement_fetched_at)
        self.assertIsNone(profile.likes)
        self.assertEqual(self.store.get_item(hash_url("https://x.com/a/status/1")).views, 900)

    def test_failed_batch_marks_checked(self):
        stats = EngagementEnricher(self.store, _FakeEngagement(fail=True)).enrich(self.store.tweets_without_engagement())
        self.assertEqual(stats.failed, 2)
        self.assertEqual(self.store.tweets_without_engagement(), [])

    def test_unconfigured_service_leaves_tweets_pending(self):
        service = _FakeEngagement(configured=False)
        stats = EngagementEnricher(self.store, service).enrich(self.store.tweets_without_engagement())
        self.assertEqual(stats.skipped, 3)
        self.assertEqual(service.requested, [])
        self.assertEqual(len(self.store.tweets_without_engagement()), 3)

    def test_batches_respect_batch_size(self):
        service = _FakeEngagement()
        EngagementEnricher(self.store, service, batch_size=1).enrich(self.store.tweets_without_engagement())
        self.assertEqual(len(service.requested), 2)


if __name__ == "__main__":
    unittest.main()
