"""Indexed document shapes and their (de)serialization.

Documents keep the camelCase field names used in the Elasticsearch mappings;
unknown fields are preserved so the search layer never drops data it does not
know about.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .models import LocalizedLabel

DocT = TypeVar("DocT", bound=BaseModel)


class IndexedDocument(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class StoreEntry(IndexedDocument):
    sku: Optional[str] = None
    mall_id: Optional[str] = Field(None, alias="mallId")
    children: List[Dict[str, Any]] = Field(default_factory=list)


class ProductDocument(IndexedDocument):
    sku: str
    id: Optional[str] = None
    title: LocalizedLabel = Field(default_factory=LocalizedLabel)
    annotated_brand: Optional[str] = Field(None, alias="annotatedBrand")
    category_slugs: List[str] = Field(default_factory=list, alias="categorySlugs")
    color_slugs: List[str] = Field(default_factory=list, alias="colorSlugs")
    actual_min_price: Optional[float] = Field(None, alias="actualMinPrice")
    price_min: Optional[float] = Field(None, alias="priceMin")
    price_max: Optional[float] = Field(None, alias="priceMax")
    discount_percent: Optional[float] = Field(None, alias="discountPercent")
    created_at: Optional[str] = Field(None, alias="createdAt")
    by_store: List[StoreEntry] = Field(default_factory=list, alias="byStore")


class BrandDocument(IndexedDocument):
    id: str
    title: Optional[str] = None
    logo_url: Optional[str] = Field(None, alias="logoUrl")


class StockLine(IndexedDocument):
    """Stock change addressed to an existing product document."""

    index_id: str = Field(..., alias="indexId")
    sku: Optional[str] = None
    quantity: Optional[int] = None


class DocumentSerializer(Protocol):
    def serialize(self, record: Any) -> Dict[str, Any]: ...

    def deserialize(self, raw: Dict[str, Any], doc_type: Type[DocT]) -> DocT: ...


class ModelSerializer:
    """Default serializer for the pydantic document models."""

    def serialize(self, record: Any) -> Dict[str, Any]:
        if isinstance(record, BaseModel):
            return record.model_dump(mode="json", by_alias=True, exclude_none=True)
        return dict(record)

    def deserialize(self, raw: Dict[str, Any], doc_type: Type[DocT]) -> DocT:
        return doc_type.model_validate(raw)
