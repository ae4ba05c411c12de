"""Bulk scripted upsert operations."""
import pytest

from catalog_search.errors import ClientInputError
from catalog_search.mutations import (
    StockTransition,
    build_stock_operations,
    build_upsert_operations,
    script_id,
)


def test_upsert_operations_pair_header_and_scripted_body():
    docs = [{"sku": "a-1", "title": {"en": "Bag"}}, {"sku": "b-2", "title": {"en": "Belt"}}]

    ops = build_upsert_operations("products", docs, "sku", "save-products-v1")

    assert len(ops) == 2 * len(docs)
    assert ops[0] == {"update": {"_id": "a-1", "_index": "products"}}
    assert ops[1] == {
        "script": {"id": "save-products-v1", "params": docs[0]},
        "upsert": docs[0],
    }
    assert ops[2]["update"]["_id"] == "b-2"


@pytest.mark.parametrize("transition", list(StockTransition))
def test_stock_transitions_share_shape_without_upsert(transition):
    docs = [{"indexId": "sku-1", "quantity": 2}]

    ops = build_stock_operations("products", docs, transition, "v3")

    assert ops == [
        {"update": {"_id": "sku-1", "_index": "products"}},
        {"script": {"id": f"{transition.value}-stock-v3", "params": docs[0]}},
    ]


def test_missing_natural_id_is_rejected():
    with pytest.raises(ClientInputError):
        build_upsert_operations("brands", [{"title": "No id"}], "id", "save-brands-v1")


def test_empty_input_builds_nothing():
    assert build_stock_operations("products", [], StockTransition.RESERVE, "v1") == []


def test_script_ids_are_versioned():
    assert script_id("save-brands", "v2") == "save-brands-v2"
