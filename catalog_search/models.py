"""Pydantic models for request/response payloads."""
from __future__ import annotations

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

ItemT = TypeVar("ItemT")

DEFAULT_PRICE_MIN = 0.0
DEFAULT_PRICE_MAX = 999999.0


class Scope(BaseModel):
    brand_id: Optional[str] = Field(None, description="Restrict to a single brand")
    mall_id: Optional[str] = Field(None, description="Restrict to a single mall")


class ListOptions(Scope):
    """Listing request for products or brands.

    ``brand_id`` is both the term-tracking scope and the single-brand pin;
    ``category`` is the single-category pin. ``min_price`` <= ``max_price`` is
    not validated here.
    """

    keyword: Optional[str] = None
    next_token: Optional[str] = None
    size: int = Field(24, gt=0)
    categories: Optional[List[str]] = None
    category: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    brands: Optional[List[str]] = None
    sort_by: Optional[str] = None
    skus: Optional[List[str]] = None
    color: Optional[List[str]] = None


class LocalizedLabel(BaseModel):
    en: str = ""
    th: str = ""


class BrandFacet(BaseModel):
    brand_id: str
    count: int


class CategoryFacet(BaseModel):
    slug: str
    count: int


class ColorSwatchFacet(BaseModel):
    code: str
    label: LocalizedLabel


class PriceRange(BaseModel):
    price_min: float = DEFAULT_PRICE_MIN
    price_max: float = DEFAULT_PRICE_MAX


class FacetResult(BaseModel):
    brands: List[BrandFacet] = Field(default_factory=list)
    categories: List[CategoryFacet] = Field(default_factory=list)
    price: PriceRange = Field(default_factory=PriceRange)
    color_swatch: List[ColorSwatchFacet] = Field(default_factory=list)


class Total(BaseModel):
    value: int
    is_estimate: bool


class SearchResult(BaseModel, Generic[ItemT]):
    items: List[ItemT]
    next_token: Optional[str] = None
    total: Total
    filterable_attributes: Optional[FacetResult] = None
    suggestions: List[str] = Field(default_factory=list)


class BrandSearchResult(SearchResult[ItemT], Generic[ItemT]):
    suggested_brands: List[Any] = Field(default_factory=list)


class BoostedTerm(BaseModel):
    term: str
    score: float


class TrackTermRequest(Scope):
    term: str


class IndexMappings(BaseModel):
    properties: dict = Field(default_factory=dict)


class IndexSettings(BaseModel):
    settings: dict = Field(default_factory=dict)
    mappings: IndexMappings = Field(default_factory=IndexMappings)
