import unittest

from fashionist.services.media.cache import KEY_PREFIX, ResultCache, normalized_key
from fashionist.services.media.contracts import GenerationResult, build_request


def _result(key="k", degraded=True):
    if degraded:
        return GenerationResult(key=key, artifact_reference="data:image/svg+xml;base64,AA==", degraded=True)
    return GenerationResult(key=key, artifact_reference=f"uploads/{key}.png", degraded=False, provider_used="alpha")


class Clock:
    def __init__(self):
        self.now = 500.0

    def __call__(self):
        return self.now


class NormalizedKeyTests(unittest.TestCase):
    def test_key_is_prefixed_sha256(self):
        key = normalized_key(build_request({"prompt": "red dress"}))
        self.assertTrue(key.startswith(KEY_PREFIX))
        self.assertEqual(len(key) - len(KEY_PREFIX), 64)

    def test_list_order_and_case_do_not_change_key(self):
        a = build_request({
            "prompt": "summer look",
            "style": {"colors": ["Red", "navy"], "occasions": ["party", "casual"]},
        })
        b = build_request({
            "prompt": "summer   look",
            "style": {"occasions": ["casual", "party"], "colors": ["navy", "red"]},
        })
        self.assertEqual(normalized_key(a), normalized_key(b))

    def test_defaults_equal_explicit_defaults(self):
        a = build_request({"prompt": "coat"})
        b = build_request({"prompt": "coat", "shape": {"aspect_ratio": "1:1", "quality": "standard"}})
        self.assertEqual(normalized_key(a), normalized_key(b))

    def test_semantically_different_requests_get_different_keys(self):
        base = {"prompt": "coat"}
        variants = [
            {"prompt": "coats"},
            {"prompt": "coat", "style": {"colors": ["red"]}},
            {"prompt": "coat", "style": {"seasons": ["red"]}},
            {"prompt": "coat", "shape": {"quality": "hd"}},
            {"prompt": "coat", "shape": {"aspect_ratio": "9:16"}},
        ]
        keys = {normalized_key(build_request(p)) for p in [base, *variants]}
        self.assertEqual(len(keys), len(variants) + 1)


class ResultCacheTests(unittest.TestCase):
    def setUp(self):
        self.clock = Clock()
        self.cache = ResultCache(default_ttl_seconds=100, max_entries=3, clock=self.clock)

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.cache.get("nope"))
        self.assertEqual(self.cache.misses, 1)

    def test_set_then_get_returns_same_object(self):
        value = _result("a", degraded=False)
        self.cache.set("a", value)
        self.assertIs(self.cache.get("a"), value)
        self.assertEqual(self.cache.hits, 1)

    def test_entry_expires_at_ttl(self):
        self.cache.set("a", _result("a"), ttl=10)
        self.clock.now += 9
        self.assertIsNotNone(self.cache.get("a"))
        self.clock.now += 1
        self.assertIsNone(self.cache.get("a"))
        self.assertEqual(len(self.cache), 0)

    def test_default_ttl_applies(self):
        self.cache.set("a", _result("a"))
        self.clock.now += 99
        self.assertIsNotNone(self.cache.get("a"))
        self.clock.now += 1
        self.assertIsNone(self.cache.get("a"))

    def test_non_positive_ttl_is_not_stored(self):
        self.cache.set("a", _result("a"), ttl=0)
        self.assertEqual(len(self.cache), 0)

    def test_delete(self):
        self.cache.set("a", _result("a"))
        self.assertTrue(self.cache.delete("a"))
        self.assertFalse(self.cache.delete("a"))
        self.assertIsNone(self.cache.get("a"))

    def test_flush_all_reports_count(self):
        for key in ("a", "b"):
            self.cache.set(key, _result(key))
        self.assertEqual(self.cache.flush_all(), 2)
        self.assertEqual(len(self.cache), 0)

    def test_full_cache_evicts_expired_before_oldest(self):
        self.cache.set("old", _result("old"), ttl=5)
        self.clock.now += 1
        self.cache.set("b", _result("b"))
        self.clock.now += 1
        self.cache.set("c", _result("c"))
        self.clock.now += 10

        self.cache.set("d", _result("d"))

        self.assertIsNone(self.cache.get("old"))
        for key in ("b", "c", "d"):
            self.assertIsNotNone(self.cache.get(key))

    def test_full_cache_evicts_oldest_live_entry(self):
        for key in ("a", "b", "c"):
            self.cache.set(key, _result(key))
            self.clock.now += 1

        self.cache.set("d", _result("d"))

        self.assertIsNone(self.cache.get("a"))
        self.assertEqual(len(self.cache), 3)

    def test_overwrite_existing_key_does_not_evict(self):
        for key in ("a", "b", "c"):
            self.cache.set(key, _result(key))
        self.cache.set("a", _result("a", degraded=False))
        self.assertEqual(len(self.cache), 3)
        self.assertFalse(self.cache.get("a").degraded)

    def test_stats(self):
        self.cache.set("a", _result("a"))
        self.cache.get("a")
        self.cache.get("b")
        self.assertEqual(self.cache.stats(), {"entries": 1, "hits": 1, "misses": 1, "max_entries": 3})


if __name__ == "__main__":
    unittest.main()
