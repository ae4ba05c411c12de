"""Product and brand search built on top of Elasticsearch.

:class:`SearchService` is the programmatic surface of the package. It compiles
listing options into queries, projects responses into typed results, keeps
the derived search documents in sync through bulk scripted upserts and
exposes the term tracker.
"""
from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Callable, Iterable, List, Optional, Protocol, Sequence

from elasticsearch import ApiError, Elasticsearch, NotFoundError, TransportError

from .cache import CacheBackend
from .config import Settings, settings as default_settings
from .documents import BrandDocument, DocumentSerializer, ModelSerializer, ProductDocument
from .errors import ClientInputError, classify_es_error
from .es_client import response_body
from .indexing import configure_index
from .models import (
    BoostedTerm,
    BrandSearchResult,
    IndexSettings,
    ListOptions,
    Scope,
    SearchResult,
)
from .mutations import (
    SAVE_BRANDS_SCRIPT,
    SAVE_PRODUCTS_SCRIPT,
    StockTransition,
    build_stock_operations,
    build_upsert_operations,
    script_id,
)
from .projection import (
    parse_response,
    project_brand_suggestions,
    project_facets,
    project_page,
    project_product_suggestions,
)
from .query_builder import compile_brand_query, compile_product_query
from .responses import BulkResponse, SearchResponse, read_engine_body
from .terms import TermTracker

logger = logging.getLogger(__name__)


class BrandLookup(Protocol):
    async def fetch_brands(self, brand_ids: Sequence[str]) -> List[Any]: ...


class SearchService:
    def __init__(
        self,
        es: Elasticsearch,
        config: Settings | None = None,
        serializer: DocumentSerializer | None = None,
        brand_lookup: BrandLookup | None = None,
        cache: CacheBackend | None = None,
    ) -> None:
        self.es = es
        self.config = config or default_settings
        self.serializer = serializer or ModelSerializer()
        self.brand_lookup = brand_lookup
        self.terms = TermTracker(es, self.config, cache)

    async def _search(self, index: str, body: dict) -> SearchResponse:
        try:
            response = await asyncio.to_thread(self.es.search, index=index, body=body)
        except (ApiError, TransportError) as exc:
            raise classify_es_error(exc) from exc
        return parse_response(response_body(response))

    async def list_products(
        self,
        options: ListOptions,
        facet_slugs: Iterable[str] = (),
    ) -> SearchResult[ProductDocument]:
        """List products matching ``options``.

        ``facet_slugs`` names optional facets to aggregate (``colorSwatch``);
        brand, category and price facets are derived from the filters.
        """

        t0 = perf_counter()
        body = compile_product_query(options, facet_slugs)
        response = await self._search(self.config.product_index, body)
        items, next_token, total = project_page(
            response,
            options.size,
            lambda raw: self.serializer.deserialize(raw, ProductDocument),
        )
        result = SearchResult[ProductDocument](
            items=items,
            next_token=next_token,
            total=total,
            filterable_attributes=project_facets(response.aggregations),
            suggestions=project_product_suggestions(response.suggest),
        )
        logger.info(
            "list_products keyword=%r size=%s hits=%s total=%s elapsed=%.2fms",
            options.keyword,
            options.size,
            len(items),
            total.value,
            (perf_counter() - t0) * 1000,
        )
        return result

    async def list_brands(self, options: ListOptions) -> BrandSearchResult[BrandDocument]:
        body = compile_brand_query(options)
        response = await self._search(self.config.brand_index, body)
        items, next_token, total = project_page(
            response,
            options.size,
            lambda raw: self.serializer.deserialize(raw, BrandDocument),
        )
        suggestion_ids = project_brand_suggestions(response.suggest)
        suggested_brands: List[Any] = []
        if suggestion_ids and self.brand_lookup is not None:
            suggested_brands = await self.brand_lookup.fetch_brands(suggestion_ids)
        return BrandSearchResult[BrandDocument](
            items=items,
            next_token=next_token,
            total=total,
            suggestions=suggestion_ids,
            suggested_brands=suggested_brands,
        )

    # Term tracking

    async def track_searched(self, scope: Scope, term: str) -> None:
        await self.terms.track_searched(scope, term)

    async def set_boosted_score(self, scope: Scope, term: str, score: float) -> None:
        await self.terms.set_boosted_score(scope, term, score)

    async def list_boosted(self, scope: Scope) -> List[BoostedTerm]:
        return await self.terms.list_boosted(scope)

    async def list_popular(self, scope: Scope, prefix: Optional[str] = None) -> List[str]:
        return await self.terms.query_popular(scope, prefix)

    async def list_boosted_terms(self, scope: Scope, prefix: Optional[str] = None) -> List[str]:
        return await self.terms.query_boosted(scope, prefix)

    async def delete_popular_terms(self, scope: Scope, terms: List[str]) -> int:
        return await self.terms.delete_terms(self.config.popular_terms_index, scope, terms)

    async def delete_boosted_terms(self, scope: Scope, terms: List[str]) -> int:
        return await self.terms.delete_terms(self.config.boosted_terms_index, scope, terms)

    # Document sync

    async def _bulk(self, operations: List[dict]) -> bool:
        if not operations:
            return True
        try:
            response = await asyncio.to_thread(
                self.es.bulk,
                operations=operations,
                refresh=self.config.bulk_refresh,
            )
        except (ApiError, TransportError) as exc:
            raise classify_es_error(exc) from exc
        result = read_engine_body(BulkResponse, response_body(response))
        if result.errors:
            failed = [item for item in result.items if (item.get("update") or {}).get("error")]
            for item in failed:
                update = item["update"]
                logger.warning("bulk update failed id=%s error=%s", update.get("_id"), update.get("error"))
            logger.warning("bulk finished with %s/%s failed operations", len(failed), len(result.items))
        return True

    async def save_products(self, products: Iterable[Any]) -> bool:
        docs = [self.serializer.serialize(product) for product in products]
        operations = build_upsert_operations(
            self.config.product_index,
            docs,
            "sku",
            script_id(SAVE_PRODUCTS_SCRIPT, self.config.script_version),
        )
        logger.info("saving %s products", len(docs))
        return await self._bulk(operations)

    async def sync_brands(self, brands: Iterable[Any]) -> bool:
        docs = [self.serializer.serialize(brand) for brand in brands]
        operations = build_upsert_operations(
            self.config.brand_index,
            docs,
            "id",
            script_id(SAVE_BRANDS_SCRIPT, self.config.script_version),
        )
        logger.info("syncing %s brands", len(docs))
        return await self._bulk(operations)

    async def apply_stock_transition(self, transition: StockTransition, stocks: Iterable[Any]) -> bool:
        docs = [self.serializer.serialize(stock) for stock in stocks]
        operations = build_stock_operations(
            self.config.product_index,
            docs,
            transition,
            self.config.script_version,
        )
        logger.info("%s stock for %s lines", transition.value, len(docs))
        return await self._bulk(operations)

    async def update_stocks(self, stocks: Iterable[Any]) -> bool:
        return await self.apply_stock_transition(StockTransition.UPDATE, stocks)

    async def reserve_stocks(self, stocks: Iterable[Any]) -> bool:
        return await self.apply_stock_transition(StockTransition.RESERVE, stocks)

    async def cancel_stocks(self, stocks: Iterable[Any]) -> bool:
        return await self.apply_stock_transition(StockTransition.CANCEL, stocks)

    async def paid_stocks(self, stocks: Iterable[Any]) -> bool:
        return await self.apply_stock_transition(StockTransition.PAID, stocks)

    async def expired_stocks(self, stocks: Iterable[Any]) -> bool:
        return await self.apply_stock_transition(StockTransition.EXPIRED, stocks)

    # Single documents

    async def _by_sku(self, call: Callable[..., Any], sku: str, not_found: str) -> Any:
        try:
            return await asyncio.to_thread(call, index=self.config.product_index, id=sku)
        except NotFoundError as exc:
            raise ClientInputError(not_found, status_code=404) from exc
        except (ApiError, TransportError) as exc:
            raise classify_es_error(exc) from exc

    async def get_by_sku(self, sku: str) -> ProductDocument:
        response = await self._by_sku(self.es.get, sku, "Resource not found")
        body = response_body(response)
        return self.serializer.deserialize(body.get("_source") or {}, ProductDocument)

    async def delete_by_sku(self, sku: str) -> bool:
        await self._by_sku(self.es.delete, sku, "Product not found")
        return True

    # Index administration

    async def configure_index(
        self,
        target: str,
        index_settings: IndexSettings,
        destroy_existing: bool = True,
    ) -> IndexSettings:
        if target not in self.config.supported_indices:
            raise ClientInputError(f"Unsupported index: {target}")
        return await configure_index(self.es, target, index_settings, destroy_existing)
