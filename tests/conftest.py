"""Shared fixtures: a mocked Elasticsearch client and response builders."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from elasticsearch import ApiError

from catalog_search.config import Settings


@pytest.fixture
def config() -> Settings:
    return Settings()


@pytest.fixture
def es() -> MagicMock:
    return MagicMock(name="Elasticsearch")


@pytest.fixture
def api_error():
    """Build client exceptions the way the transport raises them."""

    def _make(cls=ApiError, status: int = 500, body: dict | None = None, message: str = "error") -> ApiError:
        return cls(message, meta=MagicMock(status=status), body=body if body is not None else {})

    return _make


@pytest.fixture
def product_hit():
    def _make(sku: str, sort: list | None = None, **source) -> dict:
        hit = {"_id": sku, "_score": 1.0, "_source": {"sku": sku, **source}}
        if sort is not None:
            hit["sort"] = sort
        return hit

    return _make


@pytest.fixture
def search_body():
    def _make(hits: list, total: dict | None = None, aggregations: dict | None = None, suggest: dict | None = None) -> dict:
        body: dict = {"took": 3, "hits": {"hits": hits}}
        if total is not None:
            body["hits"]["total"] = total
        if aggregations is not None:
            body["aggregations"] = aggregations
        if suggest is not None:
            body["suggest"] = suggest
        return body

    return _make
