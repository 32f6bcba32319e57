import json
import unittest
from unittest.mock import MagicMock

import fakeredis
import redis

from gitswitch.domain import RepoStatus
from gitswitch.services.status_cache import StatusCache


def make_status(branch="main", dirty=False):
    return RepoStatus(
        branch=branch,
        dirty=dirty,
        raw_status_lines=[f"On branch {branch}", "nothing to commit"],
        remote_branches=["main", "develop"],
    )


class TestStatusCache(unittest.TestCase):
    def setUp(self):
        self.redis = fakeredis.FakeRedis(
            server=fakeredis.FakeServer(), decode_responses=True
        )
        self.cache = StatusCache(self.redis, key="git-switch-status", ttl=180)

    def test_miss_returns_none(self):
        self.assertIsNone(self.cache.get("themes/foo"))

    def test_put_then_get(self):
        status = make_status()
        self.cache.put("themes/foo", status)
        self.assertEqual(self.cache.get("themes/foo"), status)

    def test_invalidate_then_get(self):
        self.cache.put("themes/foo", make_status())
        self.cache.invalidate("themes/foo")
        self.assertIsNone(self.cache.get("themes/foo"))

    def test_single_key_holds_every_repo(self):
        self.cache.put("themes/foo", make_status("main"))
        self.cache.put("themes/bar", make_status("develop", dirty=True))

        self.assertEqual(self.redis.keys("*"), ["git-switch-status"])
        stored = json.loads(self.redis.get("git-switch-status"))
        self.assertEqual(set(stored), {"themes/foo", "themes/bar"})
        self.assertEqual(self.cache.get("themes/bar").branch, "develop")

    def test_invalidate_keeps_siblings(self):
        self.cache.put("themes/foo", make_status("main"))
        self.cache.put("themes/bar", make_status("develop"))
        self.cache.invalidate("themes/foo")

        self.assertIsNone(self.cache.get("themes/foo"))
        self.assertEqual(self.cache.get("themes/bar").branch, "develop")

    def test_write_resets_ttl_for_whole_map(self):
        self.cache.put("themes/foo", make_status())
        self.redis.expire("git-switch-status", 10)
        self.cache.put("themes/bar", make_status())
        ttl = self.redis.ttl("git-switch-status")
        self.assertGreater(ttl, 10)
        self.assertLessEqual(ttl, 180)

    def test_invalidating_last_entry_removes_key(self):
        self.cache.put("themes/foo", make_status())
        self.cache.invalidate("themes/foo")
        self.assertFalse(self.redis.exists("git-switch-status"))

    def test_falsy_entries_read_as_absent(self):
        self.redis.set(
            "git-switch-status", json.dumps({"themes/foo": {}, "themes/bar": False})
        )
        self.assertIsNone(self.cache.get("themes/foo"))
        self.assertIsNone(self.cache.get("themes/bar"))

    def test_malformed_payload_reads_as_miss(self):
        self.redis.set("git-switch-status", "not json")
        self.assertIsNone(self.cache.get("themes/foo"))
        self.cache.put("themes/foo", make_status())
        self.assertIsNotNone(self.cache.get("themes/foo"))

    def test_malformed_entry_reads_as_miss(self):
        self.redis.set(
            "git-switch-status", json.dumps({"themes/foo": {"dirty": "sometimes"}})
        )
        self.assertIsNone(self.cache.get("themes/foo"))

    def test_clear(self):
        self.cache.put("themes/foo", make_status())
        self.cache.clear()
        self.assertIsNone(self.cache.get("themes/foo"))


class TestStatusCacheStoreErrors(unittest.TestCase):
    def setUp(self):
        self.redis = MagicMock()
        self.redis.get.side_effect = redis.ConnectionError("down")
        self.redis.transaction.side_effect = redis.ConnectionError("down")
        self.redis.delete.side_effect = redis.ConnectionError("down")
        self.cache = StatusCache(self.redis)

    def test_read_failure_is_a_miss(self):
        self.assertIsNone(self.cache.get("themes/foo"))

    def test_write_failures_are_not_raised(self):
        self.cache.put("themes/foo", make_status())
        self.cache.invalidate("themes/foo")
        self.cache.clear()


if __name__ == "__main__":
    unittest.main()
