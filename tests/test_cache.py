"""Term lookup cache backends."""
from unittest.mock import MagicMock

import redis

from catalog_search.cache import InMemoryCache, RedisCache


def test_in_memory_round_trip_and_expiry():
    cache = InMemoryCache()
    cache.set("terms:queryterms:global:bag", {"terms": ["bag"]}, 30)
    cache.set("terms:queryterms:global:old", {"terms": ["old"]}, -1)

    assert cache.get("terms:queryterms:global:bag") == {"terms": ["bag"]}
    assert cache.get("terms:queryterms:global:old") is None
    assert cache.get("missing") is None


def test_in_memory_delete_prefix():
    cache = InMemoryCache()
    cache.set("terms:queryterms:global:", {"terms": []}, 30)
    cache.set("terms:queryterms:global:ba", {"terms": ["bag"]}, 30)
    cache.set("terms:queryterms:brand:nike:ba", {"terms": ["bag"]}, 30)

    assert cache.delete_prefix("terms:queryterms:global:") == 2
    assert cache.get("terms:queryterms:global:ba") is None
    assert cache.get("terms:queryterms:brand:nike:ba") == {"terms": ["bag"]}


def test_redis_delete_prefix_scans_and_deletes():
    client = MagicMock()
    client.scan_iter.return_value = iter([b"terms:boostedterms:global:", b"terms:boostedterms:global:sa"])
    client.delete.return_value = 2

    assert RedisCache(client).delete_prefix("terms:boostedterms:global:") == 2
    client.scan_iter.assert_called_once_with(match="terms:boostedterms:global:*")
    client.delete.assert_called_once_with(b"terms:boostedterms:global:", b"terms:boostedterms:global:sa")


def test_redis_delete_prefix_without_matches():
    client = MagicMock()
    client.scan_iter.return_value = iter([])

    assert RedisCache(client).delete_prefix("terms:queryterms:global:") == 0
    client.delete.assert_not_called()


def test_redis_get_ignores_undecodable_entries():
    client = MagicMock()
    client.get.return_value = b"{not json"

    assert RedisCache(client).get("terms:queryterms:global:") is None


def test_redis_set_serializes_with_ttl():
    client = MagicMock()

    RedisCache(client).set("terms:queryterms:global:", {"terms": ["กระเป๋า"]}, 30)

    client.setex.assert_called_once_with("terms:queryterms:global:", 30, '{"terms": ["กระเป๋า"]}')


def test_redis_errors_degrade_to_a_miss():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("down")

    assert RedisCache(client).get("terms:queryterms:global:") is None
