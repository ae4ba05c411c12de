"""Search-term popularity and operator-boosted terms.

Two indices hold one document per (domain, lowercased term):

* popular terms ``{q, domain, hit}`` - incremented whenever a user searches;
* boosted terms ``{q, domain, score}`` - set by operators.

Document ids are derived from domain and term, so repeated writes hit the
same document.
"""
from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
from typing import List, Optional

from elasticsearch import ApiError, ConflictError, Elasticsearch, TransportError

from .cache import CacheBackend
from .config import Settings, settings as default_settings
from .errors import classify_es_error, log_es_error
from .es_client import response_body
from .models import BoostedTerm, Scope
from .responses import DeleteByQueryResponse, SearchResponse, read_engine_body
from .scope import resolve_domain

logger = logging.getLogger(__name__)

RETRY_ON_CONFLICT = 3
SUGGESTION_SIZE = 10
BOOSTED_LIST_SIZE = 1000
INCREMENT_HIT_SCRIPT = "ctx._source.hit += 1"
SET_SCORE_SCRIPT = "ctx._source.score = params.score"


def normalize_term(term: str) -> str:
    return term.strip().lower()


def term_id(domain: str, term: str) -> str:
    digest = hashlib.md5(f"{domain}/{term}".lower().encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def _cache_prefix(index: str, domain: str) -> str:
    return f"terms:{index}:{domain}:"


class TermTracker:
    def __init__(
        self,
        es: Elasticsearch,
        config: Settings | None = None,
        cache: CacheBackend | None = None,
    ) -> None:
        self.es = es
        self.config = config or default_settings
        self.cache = cache

    @property
    def ranking_signals(self) -> dict[str, str]:
        return {
            self.config.popular_terms_index: "hit",
            self.config.boosted_terms_index: "score",
        }

    async def track_searched(self, scope: Scope, term: str) -> None:
        """Count one search for ``term``. Never raises."""

        q = normalize_term(term)
        if not q:
            return
        domain = resolve_domain(scope)
        doc_id = term_id(domain, q)
        for attempt in range(RETRY_ON_CONFLICT + 1):
            try:
                await asyncio.to_thread(
                    self.es.update,
                    index=self.config.popular_terms_index,
                    id=doc_id,
                    script={"source": INCREMENT_HIT_SCRIPT},
                    upsert={"q": q, "domain": domain, "hit": 1},
                )
                return
            except ConflictError:
                logger.debug("term hit conflict q=%r domain=%s attempt=%s", q, domain, attempt + 1)
            except (ApiError, TransportError) as exc:
                log_es_error(exc)
                logger.warning("Failed to track searched term q=%r domain=%s", q, domain)
                return
            except Exception:
                logger.exception("Unexpected failure tracking term q=%r domain=%s", q, domain)
                return
        logger.warning("Gave up tracking term q=%r domain=%s after %s conflicts", q, domain, RETRY_ON_CONFLICT + 1)

    async def set_boosted_score(self, scope: Scope, term: str, score: float) -> None:
        q = normalize_term(term)
        domain = resolve_domain(scope)
        logger.info("boost term q=%r domain=%s score=%s", q, domain, score)
        try:
            await asyncio.to_thread(
                self.es.update,
                index=self.config.boosted_terms_index,
                id=term_id(domain, q),
                script={"source": SET_SCORE_SCRIPT, "params": {"score": score}},
                upsert={"q": q, "domain": domain, "score": score},
                retry_on_conflict=RETRY_ON_CONFLICT,
            )
        except (ApiError, TransportError) as exc:
            raise classify_es_error(exc) from exc
        self._invalidate(self.config.boosted_terms_index, domain)

    async def list_boosted(self, scope: Scope) -> List[BoostedTerm]:
        domain = resolve_domain(scope)
        body = {"size": BOOSTED_LIST_SIZE, "query": {"bool": {"filter": [{"term": {"domain": domain}}]}}}
        response = await self._search(self.config.boosted_terms_index, body)
        return [
            BoostedTerm(term=hit.source.get("q", ""), score=hit.source.get("score", 0))
            for hit in response.hits.hits
        ]

    async def query_popular(self, scope: Scope, prefix: Optional[str] = None) -> List[str]:
        return await self._query_terms(self.config.popular_terms_index, scope, prefix)

    async def query_boosted(self, scope: Scope, prefix: Optional[str] = None) -> List[str]:
        return await self._query_terms(self.config.boosted_terms_index, scope, prefix)

    async def delete_terms(self, index: str, scope: Scope, terms: List[str]) -> int:
        if not terms:
            return 0
        domain = resolve_domain(scope)
        query = {
            "bool": {
                "must": [
                    {"bool": {"should": [{"match": {"q": normalize_term(t)}} for t in terms]}},
                    {"match": {"domain": domain}},
                ]
            }
        }
        try:
            response = await asyncio.to_thread(self.es.delete_by_query, index=index, query=query)
        except (ApiError, TransportError) as exc:
            raise classify_es_error(exc) from exc
        deleted = read_engine_body(DeleteByQueryResponse, response_body(response)).deleted
        self._invalidate(index, domain)
        logger.info("deleted %s terms from %s domain=%s", deleted, index, domain)
        return deleted

    async def _query_terms(self, index: str, scope: Scope, prefix: Optional[str]) -> List[str]:
        domain = resolve_domain(scope)
        q = normalize_term(prefix) if prefix else ""
        cache_key = f"{_cache_prefix(index, domain)}{q}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return list(cached["terms"])

        should = [{"term": {"q": q}}] if q else []
        body = {
            "size": SUGGESTION_SIZE,
            "query": {"bool": {"should": should, "filter": [{"term": {"domain": domain}}]}},
            "sort": [{"_score": "desc"}, {self.ranking_signals[index]: "desc"}],
        }
        response = await self._search(index, body)
        terms = [hit.source["q"] for hit in response.hits.hits if hit.source.get("q")]
        if self.cache is not None:
            self.cache.set(cache_key, {"terms": list(terms)}, self.config.terms_cache_ttl_seconds)
        return terms

    def _invalidate(self, index: str, domain: str) -> None:
        if self.cache is None:
            return
        dropped = self.cache.delete_prefix(_cache_prefix(index, domain))
        logger.debug("dropped %s cached lookups for %s domain=%s", dropped, index, domain)

    async def _search(self, index: str, body: dict) -> SearchResponse:
        try:
            response = await asyncio.to_thread(self.es.search, index=index, body=body)
        except (ApiError, TransportError) as exc:
            raise classify_es_error(exc) from exc
        return read_engine_body(SearchResponse, response_body(response))
