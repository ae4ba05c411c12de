"""Turn raw search responses into typed listing results."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from .cursor import encode_cursor
from .errors import ServerGatewayError
from .models import (
    DEFAULT_PRICE_MAX,
    DEFAULT_PRICE_MIN,
    BrandFacet,
    CategoryFacet,
    ColorSwatchFacet,
    FacetResult,
    LocalizedLabel,
    PriceRange,
    Total,
)
from .query_builder import (
    BRAND_SUGGEST,
    BRANDS_AGG,
    CATEGORIES_AGG,
    COLOR_SWATCH_AGG,
    PRICE_MAX_AGG,
    PRICE_MIN_AGG,
    SUGGEST_EN,
    SUGGEST_TH,
)
from .responses import (
    EXACT_RELATION,
    Aggregation,
    Bucket,
    Hit,
    SearchResponse,
    SuggestEntry,
    read_engine_body,
)

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")

COLOR_KEY_DELIMITER = "__"


def parse_response(raw: Any) -> SearchResponse:
    return read_engine_body(SearchResponse, raw)


def project_items(hits: List[Hit], deserialize: Callable[[Dict[str, Any]], ItemT]) -> List[ItemT]:
    return [deserialize(hit.source) for hit in hits]


def next_token_for(hits: List[Hit], size: int) -> Optional[str]:
    """Cursor for the page after ``hits``.

    Only a full page gets a cursor; a short page is the last one.
    """

    if not hits or len(hits) != size:
        return None
    last = hits[-1]
    if not last.sort:
        raise ServerGatewayError("Sort is missing from query result!")
    return encode_cursor(last.sort)


def project_total(response: SearchResponse, item_count: int) -> Total:
    total = response.hits.total
    if total is None:
        return Total(value=item_count, is_estimate=True)
    return Total(value=total.value, is_estimate=total.relation != EXACT_RELATION)


def _buckets(aggs: Dict[str, Aggregation], name: str) -> List[Bucket]:
    agg = aggs.get(name)
    if agg is None or agg.buckets is None:
        return []
    return agg.buckets


def _metric(aggs: Dict[str, Aggregation], name: str, default: float) -> float:
    agg = aggs.get(name)
    if agg is None or agg.value is None:
        return default
    return agg.value


def split_color_key(key: str) -> ColorSwatchFacet:
    """``"red__Red__แดง"`` -> code ``red``, labels ``Red`` / ``แดง``.

    Keys missing parts get blank labels.
    """

    parts = key.split(COLOR_KEY_DELIMITER)
    parts += [""] * (3 - len(parts))
    return ColorSwatchFacet(code=parts[0], label=LocalizedLabel(en=parts[1], th=parts[2]))


def project_facets(aggs: Optional[Dict[str, Aggregation]]) -> FacetResult:
    if aggs is None:
        return FacetResult()
    return FacetResult(
        brands=[BrandFacet(brand_id=str(b.key), count=b.doc_count) for b in _buckets(aggs, BRANDS_AGG)],
        categories=[CategoryFacet(slug=str(b.key), count=b.doc_count) for b in _buckets(aggs, CATEGORIES_AGG)],
        price=PriceRange(
            price_min=_metric(aggs, PRICE_MIN_AGG, DEFAULT_PRICE_MIN),
            price_max=_metric(aggs, PRICE_MAX_AGG, DEFAULT_PRICE_MAX),
        ),
        color_swatch=[split_color_key(str(b.key)) for b in _buckets(aggs, COLOR_SWATCH_AGG)],
    )


def _first_entry(suggest: Dict[str, List[SuggestEntry]], name: str) -> Optional[SuggestEntry]:
    entries = suggest.get(name)
    if not entries:
        return None
    return entries[0]


def _option_titles(entry: Optional[SuggestEntry], lang: str) -> List[str]:
    if entry is None:
        return []
    titles: List[str] = []
    for option in entry.options:
        title = option.source.get("title")
        if isinstance(title, dict) and title.get(lang):
            titles.append(title[lang])
        elif option.text:
            titles.append(option.text)
    return titles


def project_product_suggestions(suggest: Optional[Dict[str, List[SuggestEntry]]]) -> List[str]:
    """English completions win; Thai ones are used only when English has none."""

    if suggest is None:
        return []
    english = _first_entry(suggest, SUGGEST_EN)
    if english is not None and english.options:
        return _option_titles(english, "en")
    return _option_titles(_first_entry(suggest, SUGGEST_TH), "th")


def project_brand_suggestions(suggest: Optional[Dict[str, List[SuggestEntry]]]) -> List[str]:
    if suggest is None:
        return []
    entry = _first_entry(suggest, BRAND_SUGGEST)
    if entry is None:
        return []
    return [str(option.source["id"]) for option in entry.options if option.source.get("id")]


def project_page(
    response: SearchResponse,
    size: int,
    deserialize: Callable[[Dict[str, Any]], ItemT],
) -> Tuple[List[ItemT], Optional[str], Total]:
    """Items, next cursor and total shared by product and brand listings."""

    hits = response.hits.hits
    next_token = next_token_for(hits, size)
    items = project_items(hits, deserialize)
    total = project_total(response, len(items))
    logger.info(
        "projected hits=%s total=%s estimate=%s more=%s took=%sms",
        len(items),
        total.value,
        total.is_estimate,
        next_token is not None,
        response.took,
    )
    return items, next_token, total
