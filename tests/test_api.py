"""HTTP wiring of the search service."""
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from catalog_search.documents import ProductDocument
from catalog_search.errors import ClientInputError
from catalog_search.main import app, get_service
from catalog_search.models import SearchResult, Total


@pytest.fixture
def service():
    fake = AsyncMock()
    app.dependency_overrides[get_service] = lambda: fake
    yield fake
    app.dependency_overrides.clear()


@pytest.fixture
def client(service):
    return TestClient(app)


def test_list_products_route(client, service):
    service.list_products.return_value = SearchResult[ProductDocument](
        items=[ProductDocument(sku="a-1", actualMinPrice=990)],
        next_token="WzEuMCwiYS0xIl0=",
        total=Total(value=1, is_estimate=False),
    )

    response = client.get(
        "/products",
        params={"keyword": "bag", "size": 1, "brands": ["nike", "adidas"], "facets": "colorSwatch"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["items"][0]["sku"] == "a-1"
    assert payload["items"][0]["actualMinPrice"] == 990
    assert payload["next_token"] == "WzEuMCwiYS0xIl0="
    options, facets = service.list_products.call_args.args
    assert options.brands == ["nike", "adidas"]
    assert options.size == 1
    assert facets == ["colorSwatch"]
    service.track_searched.assert_awaited_once()


def test_client_errors_map_to_status(client, service):
    service.list_products.side_effect = ClientInputError("Unknown sort by option: rating")

    response = client.get("/products", params={"sort_by": "rating"})

    assert response.status_code == 400
    assert response.json() == {"error": "Unknown sort by option: rating", "detail": None}


def test_popular_terms_route(client, service):
    service.list_popular.return_value = ["bag", "bags"]

    response = client.get("/terms/popular", params={"q": "ba", "brand_id": "nike"})

    assert response.json() == ["bag", "bags"]
    scope, prefix = service.list_popular.call_args.args
    assert scope.brand_id == "nike"
    assert prefix == "ba"


def test_track_route(client, service):
    response = client.post("/terms/track", json={"term": "Bag", "brand_id": "nike"})

    assert response.status_code == 202
    assert service.track_searched.await_args.args[1] == "Bag"
