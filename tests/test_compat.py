"""
Tests for update_notice.compat — compatibility estimator.
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import unittest
from update_notice.compat import (
    AUTHOR_CONFIRMED,
    UNKNOWN,
    VoteTally,
    estimate_compatibility,
    votes_from_api,
)


class TestEstimateCompatibility(unittest.TestCase):

    def test_tested_covers_current_version(self):
        result = estimate_compatibility("5.10", "5.9", {}, "5.9", "2.0")
        self.assertEqual(result, "100% (according to author)")
        self.assertEqual(result, AUTHOR_CONFIRMED)

    def test_tested_equal_to_current_version(self):
        self.assertEqual(estimate_compatibility("6.5", "6.5", None, "6.5", "2.0"), AUTHOR_CONFIRMED)

    def test_tested_release_covers_nightly_build(self):
        nightly = "6.5-alpha-57000-src"
        self.assertEqual(estimate_compatibility("6.5", nightly, {}, nightly, "2.0"), AUTHOR_CONFIRMED)

    def test_tested_older_than_nightly_build(self):
        nightly = "6.5-alpha-57000-src"
        self.assertEqual(estimate_compatibility("6.4.3", nightly, {}, nightly, "2.0"), UNKNOWN)

    def test_votes_used_without_tested(self):
        votes = {"5.9": {"2.0": VoteTally(percent=80, works=8, total=10)}}
        self.assertEqual(estimate_compatibility(None, "5.9", votes, "5.9", "2.0"), "80% (8 out of 10)")

    def test_votes_used_when_tested_is_older(self):
        votes = {"6.5": {"3.1": VoteTally(50, 1, 2)}}
        self.assertEqual(estimate_compatibility("6.4", "6.5", votes, "6.5", "3.1"), "50% (1 out of 2)")

    def test_votes_for_other_update_version_ignored(self):
        votes = {"5.9": {"1.9": VoteTally(80, 8, 10)}}
        self.assertEqual(estimate_compatibility(None, "5.9", votes, "5.9", "2.0"), UNKNOWN)

    def test_nothing_known(self):
        self.assertEqual(estimate_compatibility(None, "5.9", None, "5.9", "2.0"), "Unknown")


class TestVotesFromApi(unittest.TestCase):

    def test_reorders_directory_entries(self):
        table = votes_from_api({"6.5": {"2.0": [80, 10, 8]}})
        self.assertEqual(table, {"6.5": {"2.0": VoteTally(percent=80, works=8, total=10)}})

    def test_skips_malformed_entries(self):
        table = votes_from_api({"6.5": {"2.0": [80], "2.1": "bad", "2.2": [100, 1, 1]}, "6.4": []})
        self.assertEqual(table, {"6.5": {"2.2": VoteTally(100, 1, 1)}})

    def test_non_dict(self):
        self.assertEqual(votes_from_api(None), {})
        self.assertEqual(votes_from_api([]), {})


if __name__ == "__main__":
    unittest.main()
