"""Popular and boosted search terms."""
import asyncio

import pytest
from elasticsearch import ApiError, ConflictError, TransportError

from catalog_search.cache import InMemoryCache
from catalog_search.errors import ServerGatewayError
from catalog_search.models import Scope
from catalog_search.terms import TermTracker, term_id


@pytest.fixture
def tracker(es, config):
    return TermTracker(es, config)


def _terms_response(*sources):
    return {"hits": {"total": {"value": len(sources), "relation": "eq"}, "hits": [{"_source": s} for s in sources]}}


def test_term_id_is_stable_and_domain_specific():
    assert term_id("global", "Bag") == term_id("global", "bag")
    assert term_id("global", "bag") != term_id("brand:nike", "bag")


def test_track_searched_upserts_lowercased_term(tracker, es):
    asyncio.run(tracker.track_searched(Scope(brand_id="nike"), "  Air Max "))

    kwargs = es.update.call_args.kwargs
    assert kwargs["index"] == "queryterms"
    assert kwargs["id"] == term_id("brand:nike", "air max")
    assert kwargs["upsert"] == {"q": "air max", "domain": "brand:nike", "hit": 1}
    assert kwargs["script"] == {"source": "ctx._source.hit += 1"}


def test_blank_terms_are_not_tracked(tracker, es):
    asyncio.run(tracker.track_searched(Scope(), "   "))

    es.update.assert_not_called()


def test_conflicts_are_retried_then_abandoned(tracker, es, api_error):
    es.update.side_effect = api_error(ConflictError, status=409)

    asyncio.run(tracker.track_searched(Scope(), "bag"))

    assert es.update.call_count == 4


def test_conflict_then_success_stops_retrying(tracker, es, api_error):
    es.update.side_effect = [api_error(ConflictError, status=409), {"result": "updated"}]

    asyncio.run(tracker.track_searched(Scope(), "bag"))

    assert es.update.call_count == 2


@pytest.mark.parametrize("error", [TransportError("connection refused"), None])
def test_tracking_failures_are_swallowed(tracker, es, api_error, error):
    es.update.side_effect = error or api_error(ApiError, status=500)

    asyncio.run(tracker.track_searched(Scope(), "bag"))

    assert es.update.call_count == 1


def test_set_boosted_score_upserts_score(tracker, es):
    asyncio.run(tracker.set_boosted_score(Scope(), "Sale", 7.5))

    kwargs = es.update.call_args.kwargs
    assert kwargs["index"] == "boostedterms"
    assert kwargs["script"] == {"source": "ctx._source.score = params.score", "params": {"score": 7.5}}
    assert kwargs["upsert"] == {"q": "sale", "domain": "global", "score": 7.5}


def test_set_boosted_score_failure_surfaces(tracker, es, api_error):
    es.update.side_effect = api_error(
        ApiError,
        status=500,
        body={"error": {"root_cause": [{"type": "es_rejected_execution_exception", "reason": "queue full"}]}},
    )

    with pytest.raises(ServerGatewayError) as excinfo:
        asyncio.run(tracker.set_boosted_score(Scope(), "sale", 1))

    assert excinfo.value.detail == "es_rejected_execution_exception: queue full"


def test_list_boosted(tracker, es):
    es.search.return_value = _terms_response({"q": "sale", "domain": "global", "score": 9})

    result = asyncio.run(tracker.list_boosted(Scope()))

    assert [(t.term, t.score) for t in result] == [("sale", 9)]
    assert es.search.call_args.kwargs["body"]["query"] == {"bool": {"filter": [{"term": {"domain": "global"}}]}}


def test_query_popular_ranks_by_hits(tracker, es):
    es.search.return_value = _terms_response({"q": "bag"}, {"q": "bags"})

    result = asyncio.run(tracker.query_popular(Scope(brand_id="nike"), "BAG"))

    body = es.search.call_args.kwargs["body"]
    assert result == ["bag", "bags"]
    assert es.search.call_args.kwargs["index"] == "queryterms"
    assert body["size"] == 10
    assert body["sort"] == [{"_score": "desc"}, {"hit": "desc"}]
    assert body["query"]["bool"]["should"] == [{"term": {"q": "bag"}}]
    assert body["query"]["bool"]["filter"] == [{"term": {"domain": "brand:nike"}}]


def test_query_boosted_without_prefix(tracker, es):
    es.search.return_value = _terms_response({"q": "sale"})

    assert asyncio.run(tracker.query_boosted(Scope())) == ["sale"]
    body = es.search.call_args.kwargs["body"]
    assert body["query"]["bool"]["should"] == []
    assert body["sort"][1] == {"score": "desc"}


def test_term_lookups_are_cached(es, config):
    tracker = TermTracker(es, config, cache=InMemoryCache())
    es.search.return_value = _terms_response({"q": "bag"})

    first = asyncio.run(tracker.query_popular(Scope(), "bag"))
    second = asyncio.run(tracker.query_popular(Scope(), "bag"))

    assert first == second == ["bag"]
    assert es.search.call_count == 1


def test_delete_terms_without_terms_is_a_no_op(tracker, es):
    assert asyncio.run(tracker.delete_terms("queryterms", Scope(), [])) == 0
    es.delete_by_query.assert_not_called()


def test_delete_terms_by_domain_and_term_set(tracker, es):
    es.delete_by_query.return_value = {"deleted": 2}

    deleted = asyncio.run(tracker.delete_terms("boostedterms", Scope(brand_id="nike"), ["Bag", "belt"]))

    assert deleted == 2
    query = es.delete_by_query.call_args.kwargs["query"]
    assert query == {
        "bool": {
            "must": [
                {"bool": {"should": [{"match": {"q": "bag"}}, {"match": {"q": "belt"}}]}},
                {"match": {"domain": "brand:nike"}},
            ]
        }
    }


def test_cached_lookup_is_a_fresh_list(es, config):
    tracker = TermTracker(es, config, cache=InMemoryCache())
    es.search.return_value = _terms_response({"q": "bag"})

    first = asyncio.run(tracker.query_popular(Scope(), "bag"))
    first.append("junk")
    second = asyncio.run(tracker.query_popular(Scope(), "bag"))

    assert second == ["bag"]


def test_deleting_terms_drops_cached_lookups(es, config):
    tracker = TermTracker(es, config, cache=InMemoryCache())
    es.search.return_value = _terms_response({"q": "bag"}, {"q": "belt"})
    assert asyncio.run(tracker.query_popular(Scope(), "b")) == ["bag", "belt"]

    es.delete_by_query.return_value = {"deleted": 1}
    assert asyncio.run(tracker.delete_terms("queryterms", Scope(), ["bag"])) == 1
    es.search.return_value = _terms_response({"q": "belt"})

    assert asyncio.run(tracker.query_popular(Scope(), "b")) == ["belt"]
    assert es.search.call_count == 2


def test_boosting_drops_only_that_domain(es, config):
    cache = InMemoryCache()
    tracker = TermTracker(es, config, cache=cache)
    es.search.return_value = _terms_response({"q": "sale"})
    asyncio.run(tracker.query_boosted(Scope()))
    asyncio.run(tracker.query_boosted(Scope(brand_id="nike")))
    asyncio.run(tracker.query_popular(Scope()))

    asyncio.run(tracker.set_boosted_score(Scope(), "clearance", 3))

    assert cache.get("terms:boostedterms:global:") is None
    assert cache.get("terms:boostedterms:brand:nike:") == {"terms": ["sale"]}
    assert cache.get("terms:queryterms:global:") == {"terms": ["sale"]}


def test_failed_boost_keeps_cached_lookups(es, config, api_error):
    cache = InMemoryCache()
    tracker = TermTracker(es, config, cache=cache)
    es.search.return_value = _terms_response({"q": "sale"})
    asyncio.run(tracker.query_boosted(Scope()))
    es.update.side_effect = api_error(ApiError, status=500)

    with pytest.raises(ServerGatewayError):
        asyncio.run(tracker.set_boosted_score(Scope(), "clearance", 3))

    assert cache.get("terms:boostedterms:global:") == {"terms": ["sale"]}


def test_unexpected_tracking_failure_is_logged(tracker, es, caplog):
    es.update.side_effect = RuntimeError("boom")

    asyncio.run(tracker.track_searched(Scope(), "bag"))

    assert es.update.call_count == 1
    assert "Unexpected failure tracking term" in caplog.text


def test_malformed_delete_response_is_a_gateway_error(tracker, es):
    es.delete_by_query.return_value = {"deleted": "many"}

    with pytest.raises(ServerGatewayError):
        asyncio.run(tracker.delete_terms("queryterms", Scope(), ["bag"]))
