"""Typed view over the Elasticsearch search response.

Only the parts the projector reads are modelled. Every optional section is an
explicit ``Optional`` so the projector has to decide what a missing section
means instead of relying on default lookups.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ServerGatewayError

EXACT_RELATION = "eq"

ModelT = TypeVar("ModelT", bound=BaseModel)


class _EngineModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class HitsTotal(_EngineModel):
    value: int
    relation: Optional[str] = None


class Hit(_EngineModel):
    id: Optional[str] = Field(None, alias="_id")
    score: Optional[float] = Field(None, alias="_score")
    source: Dict[str, Any] = Field(default_factory=dict, alias="_source")
    sort: Optional[List[Any]] = None


class HitsEnvelope(_EngineModel):
    total: Optional[HitsTotal] = None
    hits: List[Hit] = Field(default_factory=list)


class Bucket(_EngineModel):
    key: Any
    doc_count: int = 0


class Aggregation(_EngineModel):
    """Either a bucket aggregation (``terms``) or a metric one (``min``/``max``)."""

    buckets: Optional[List[Bucket]] = None
    value: Optional[float] = None


class SuggestOption(_EngineModel):
    text: Optional[str] = None
    source: Dict[str, Any] = Field(default_factory=dict, alias="_source")


class SuggestEntry(_EngineModel):
    text: Optional[str] = None
    options: List[SuggestOption] = Field(default_factory=list)


class SearchResponse(_EngineModel):
    took: Optional[int] = None
    hits: HitsEnvelope = Field(default_factory=HitsEnvelope)
    aggregations: Optional[Dict[str, Aggregation]] = None
    suggest: Optional[Dict[str, List[SuggestEntry]]] = None


class DeleteByQueryResponse(_EngineModel):
    deleted: int = 0


class BulkResponse(_EngineModel):
    errors: bool = False
    items: List[Dict[str, Any]] = Field(default_factory=list)


def read_engine_body(model: Type[ModelT], raw: Any) -> ModelT:
    """Validate an engine response body, failing as a gateway error."""

    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise ServerGatewayError(
            f"Unexpected {model.__name__} from ElasticSearch",
            detail=f"{exc.error_count()} validation error(s)",
        ) from exc
