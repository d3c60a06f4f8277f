import unittest

from pulse.dedupe import dedupe_by_key, hash_url, normalize_url
from pulse.text import classify_source_type, classify_subject, extract_domain, format_handle, truncate
from pulse.models import SourceType, Subject


class DedupeTests(unittest.TestCase):
    def test_normalize_url_collapses_case_and_trailing_slashes(self):
        self.assertEqual(normalize_url("  HTTPS://X.com/Dev/status/1//  "), "https://x.com/dev/status/1")
        self.assertEqual(normalize_url(""), "")

    def test_hash_url_is_stable_across_variants(self):
        self.assertEqual(hash_url("https://x.com/a/status/1"), hash_url("https://X.com/a/status/1/"))
        self.assertNotEqual(hash_url("https://x.com/a/status/1"), hash_url("https://x.com/a/status/2"))

    def test_dedupe_keeps_first_occurrence(self):
        values = ["https://a.com/", "https://A.com", "https://b.com"]
        self.assertEqual(dedupe_by_key(values, normalize_url), ["https://a.com/", "https://b.com"])


class TextTests(unittest.TestCase):
    def test_source_type_by_host(self):
        self.assertEqual(classify_source_type("https://x.com/u/status/1"), SourceType.TWITTER)
        self.assertEqual(classify_source_type("https://www.reddit.com/r/ClaudeAI/"), SourceType.REDDIT)
        self.assertEqual(classify_source_type("news.ycombinator.com/item?id=1"), SourceType.FORUM)
        self.assertEqual(classify_source_type("https://someone.dev/post"), SourceType.BLOG)

    def test_hosts_ending_in_x_com_are_not_tweets(self):
        self.assertEqual(classify_source_type("https://www.vox.com/tech/claude"), SourceType.BLOG)
        self.assertEqual(classify_source_type("https://www.linux.com/news/codex"), SourceType.BLOG)
        self.assertEqual(classify_source_type("https://mobile.x.com/u/status/1"), SourceType.TWITTER)
        self.assertEqual(classify_source_type("https://nitter.net/u/status/1"), SourceType.TWITTER)
        self.assertEqual(classify_source_type("https://www.bbc.co.uk/news/technology"), SourceType.NEWS)

    def test_subject_detection(self):
        self.assertEqual(classify_subject("Claude Code is great", None), Subject.CLAUDE)
        self.assertEqual(classify_subject(None, "ChatGPT shipped memory"), Subject.OPENAI)
        self.assertEqual(classify_subject("Anthropic vs OpenAI", ""), Subject.BOTH)
        self.assertEqual(classify_subject("", ""), Subject.BOTH)

    def test_small_helpers(self):
        self.assertEqual(extract_domain("https://www.techcrunch.com/2025/x"), "techcrunch.com")
        self.assertEqual(truncate("abcdef", 3), "abc...")
        self.assertEqual(truncate(None, 3), "")
        self.assertEqual(format_handle("@@karpathy"), "@karpathy")
        self.assertEqual(format_handle(None), "@unknown")


if __name__ == "__main__":
    unittest.main()
