"""Compile listing options into Elasticsearch request bodies.

The bool query is assembled from an ordered list of clause builders. Each
builder looks at one filter dimension of :class:`ListOptions` and returns the
clauses it contributes, tagged with the bool section they belong to; an empty
list means the dimension is not in use. Aggregations and sort are derived
separately from the same options so the three parts stay consistent:

* pinning a brand (``brand_id``) or a category (``category``) adds an exact
  filter and drops that dimension's facet aggregation;
* multi-value brand filters keep the facet so the UI can still show counts;
* price min/max aggregations are always requested;
* every sort ends with ``id asc`` so ``search_after`` cursors are stable.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from .cursor import decode_cursor
from .errors import ClientInputError
from .models import ListOptions

logger = logging.getLogger(__name__)

MUST = "must"
SHOULD = "should"
FILTER = "filter"

BRAND_FIELD = "annotatedBrand"
CATEGORY_FIELD = "categorySlugs"
COLOR_FILTER_FIELD = "colorSwatchs"
COLOR_FACET_FIELD = "colorSlugs"
PRICE_FIELD = "actualMinPrice"
TITLE_FIELDS = ("title.th", "title.en")
SUGGEST_SIZE = 5

BRANDS_AGG = "brands"
CATEGORIES_AGG = "categorySlugs"
COLOR_SWATCH_AGG = "colorSwatch"
PRICE_MIN_AGG = "priceMin"
PRICE_MAX_AGG = "priceMax"
SUGGEST_EN = "suggestionEn"
SUGGEST_TH = "suggestionTh"
BRAND_SUGGEST = "suggestion"

# Checked in order, case-insensitively, against the requested sort token.
SORT_ALIASES: Tuple[Tuple[re.Pattern[str], str], ...] = (
    (re.compile("createdAt", re.IGNORECASE), "createdAt"),
    (re.compile("price", re.IGNORECASE), "actualMinPrice"),
    (re.compile("discountPercent", re.IGNORECASE), "discountPercent"),
    (re.compile("id", re.IGNORECASE), "id"),
)
RELEVANCE_SORT = {"_score": "desc"}
TIEBREAK_SORT = {"id": "asc"}


class Clause(NamedTuple):
    section: str
    body: Dict[str, Any]


ClauseBuilder = Callable[[ListOptions], List[Clause]]


def _any_of(clauses: Sequence[dict]) -> dict:
    return {"bool": {"should": list(clauses), "minimum_should_match": 1}}


def _nested_match(path: str, field: str, value: Any) -> dict:
    return {
        "nested": {
            "path": path,
            "query": {"bool": {"must": {"match": {f"{path}.{field}": value}}}},
        }
    }


def sku_clauses(options: ListOptions) -> List[Clause]:
    """SKUs can sit on a store entry or on one of its child variants."""

    if not options.skus:
        return []
    matches: List[dict] = []
    for sku in options.skus:
        matches.append(_nested_match("byStore", "sku", sku.lower()))
        matches.append(_nested_match("byStore.children", "sku", sku.lower()))
    return [Clause(MUST, _any_of(matches))]


def keyword_clauses(options: ListOptions) -> List[Clause]:
    if not options.keyword:
        return []
    return [Clause(SHOULD, {"match_phrase_prefix": {field: options.keyword}}) for field in TITLE_FIELDS]


def category_clauses(options: ListOptions) -> List[Clause]:
    if not options.categories:
        return []
    return [Clause(SHOULD, {"match": {CATEGORY_FIELD: slug}}) for slug in options.categories]


def color_clauses(options: ListOptions) -> List[Clause]:
    if not options.color:
        return []
    return [Clause(MUST, _any_of([{"match": {COLOR_FILTER_FIELD: color}} for color in options.color]))]


def price_clauses(options: ListOptions) -> List[Clause]:
    clauses: List[Clause] = []
    if options.min_price is not None:
        clauses.append(Clause(MUST, {"range": {PRICE_FIELD: {"gte": options.min_price}}}))
    if options.max_price is not None:
        clauses.append(Clause(MUST, {"range": {PRICE_FIELD: {"lte": options.max_price}}}))
    return clauses


def mall_clauses(options: ListOptions) -> List[Clause]:
    if not options.mall_id:
        return []
    return [Clause(FILTER, _nested_match("byStore", "mallId", options.mall_id))]


def brand_clauses(options: ListOptions) -> List[Clause]:
    clauses: List[Clause] = []
    if options.brand_id:
        clauses.append(Clause(FILTER, {"term": {BRAND_FIELD: options.brand_id}}))
    if options.brands:
        clauses.append(Clause(FILTER, {"terms": {BRAND_FIELD: list(options.brands)}}))
    return clauses


def category_pin_clauses(options: ListOptions) -> List[Clause]:
    if not options.category:
        return []
    return [Clause(FILTER, {"term": {CATEGORY_FIELD: options.category}})]


PRODUCT_CLAUSE_BUILDERS: Tuple[ClauseBuilder, ...] = (
    sku_clauses,
    keyword_clauses,
    category_clauses,
    color_clauses,
    price_clauses,
    mall_clauses,
    brand_clauses,
    category_pin_clauses,
)


def build_query(options: ListOptions, builders: Iterable[ClauseBuilder] = PRODUCT_CLAUSE_BUILDERS) -> dict:
    sections: Dict[str, List[dict]] = {MUST: [], SHOULD: [], FILTER: []}
    for builder in builders:
        for clause in builder(options):
            sections[clause.section].append(clause.body)

    bool_node: Dict[str, Any] = {}
    if sections[SHOULD]:
        bool_node["should"] = sections[SHOULD]
        bool_node["minimum_should_match"] = 1
    if sections[MUST]:
        bool_node["must"] = sections[MUST]
    if sections[FILTER]:
        bool_node["filter"] = sections[FILTER]

    if not bool_node:
        return {"match_all": {}}
    return {"bool": bool_node}


def _terms_agg(field: str) -> dict:
    return {"terms": {"field": field, "order": {"_count": "desc"}}}


def build_aggregations(options: ListOptions, facet_slugs: Iterable[str] = ()) -> dict:
    aggs: Dict[str, Any] = {}
    if not options.brand_id:
        aggs[BRANDS_AGG] = _terms_agg(BRAND_FIELD)
    aggs[PRICE_MAX_AGG] = {"max": {"field": "priceMax"}}
    aggs[PRICE_MIN_AGG] = {"min": {"field": "priceMin"}}
    if not options.category:
        aggs[CATEGORIES_AGG] = _terms_agg(CATEGORY_FIELD)
    if COLOR_SWATCH_AGG in set(facet_slugs):
        aggs[COLOR_SWATCH_AGG] = _terms_agg(COLOR_FACET_FIELD)
    return aggs


def build_product_suggest(keyword: Optional[str]) -> Optional[dict]:
    if not keyword:
        return None
    return {
        SUGGEST_EN: {"prefix": keyword, "completion": {"field": "titleSuggest.en", "size": SUGGEST_SIZE}},
        SUGGEST_TH: {"prefix": keyword, "completion": {"field": "titleSuggest.th", "size": SUGGEST_SIZE}},
    }


def resolve_sort(sort_by: str) -> Dict[str, str]:
    """Translate a client sort token such as ``-price`` into a sort node.

    A leading ``-`` sorts descending.
    """

    direction = "desc" if sort_by.startswith("-") else "asc"
    for pattern, field in SORT_ALIASES:
        if pattern.search(sort_by):
            return {field: direction}
    raise ClientInputError(f"Unknown sort by option: {sort_by}")


def build_sort(sort_by: Optional[str] = None) -> List[Dict[str, str]]:
    sort: List[Dict[str, str]] = [dict(RELEVANCE_SORT)]
    if sort_by:
        sort.append(resolve_sort(sort_by))
    sort.append(dict(TIEBREAK_SORT))
    return sort


def _apply_cursor(body: dict, next_token: Optional[str]) -> None:
    # The cursor must come from a page with the same sort; that is on the caller.
    if next_token:
        body["search_after"] = decode_cursor(next_token)


def compile_product_query(options: ListOptions, facet_slugs: Iterable[str] = ()) -> dict:
    body: Dict[str, Any] = {
        "size": options.size,
        "query": build_query(options),
        "sort": build_sort(options.sort_by),
        "aggs": build_aggregations(options, facet_slugs),
    }
    suggest = build_product_suggest(options.keyword)
    if suggest:
        body["suggest"] = suggest
    _apply_cursor(body, options.next_token)
    logger.debug("product query payload=%s", body)
    return body


def compile_brand_query(options: ListOptions) -> dict:
    body: Dict[str, Any] = {"size": options.size}
    if options.keyword:
        body["query"] = {"match_phrase_prefix": {"title": options.keyword}}
        body["suggest"] = {
            BRAND_SUGGEST: {
                "prefix": options.keyword,
                "completion": {"field": "titleSuggest", "size": SUGGEST_SIZE},
            }
        }
    else:
        body["query"] = {"match_all": {}}
    body["sort"] = build_sort()
    _apply_cursor(body, options.next_token)
    logger.debug("brand query payload=%s", body)
    return body
