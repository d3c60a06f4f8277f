import unittest

from pulse.notable import TOTAL_NOTABLE_ACCOUNTS, author_boost, get_notable_info, notable_handles_for_prompt


class NotableAccountTests(unittest.TestCase):
    def test_lookup_ignores_case_and_at_sign(self):
        info = get_notable_info("@Karpathy")
        self.assertIsNotNone(info)
        self.assertEqual(info.handle, "karpathy")
        self.assertEqual(info.tier, 1)

    def test_boost_by_tier(self):
        self.assertEqual(author_boost("sama"), 4)
        self.assertEqual(author_boost("AmandaAskell"), 3)
        self.assertEqual(author_boost("random_dev"), 0)
        self.assertEqual(author_boost(None), 0)

    def test_prompt_lists_top_tiers_only(self):
        listing = notable_handles_for_prompt()
        self.assertIn("@karpathy (Andrej Karpathy)", listing)
        self.assertIn("TIER 2", listing)
        self.assertGreater(TOTAL_NOTABLE_ACCOUNTS, 10)


if __name__ == "__main__":
    unittest.main()
