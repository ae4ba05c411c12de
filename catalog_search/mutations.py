"""Bulk update-or-insert operations driven by stored scripts.

Each mutated record becomes two bulk entries: an ``update`` header addressed
by the record's natural id and a body naming a stored script plus its
parameters. Product and brand syncs also carry the full document as
``upsert`` so the first sync creates it; stock transitions expect the product
to exist already.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .errors import ClientInputError

SAVE_PRODUCTS_SCRIPT = "save-products"
SAVE_BRANDS_SCRIPT = "save-brands"


class StockTransition(str, enum.Enum):
    UPDATE = "update"
    RESERVE = "reserve"
    CANCEL = "cancel"
    PAID = "paid"
    EXPIRED = "expired"

    @property
    def script_name(self) -> str:
        return f"{self.value}-stock"


def script_id(name: str, version: str) -> str:
    return f"{name}-{version}"


@dataclass(frozen=True)
class BulkOp:
    target_id: str
    index: str
    script_id: str
    params: Dict[str, Any]
    upsert: Optional[Dict[str, Any]] = None

    def to_actions(self) -> List[Dict[str, Any]]:
        body: Dict[str, Any] = {"script": {"id": self.script_id, "params": self.params}}
        if self.upsert is not None:
            body["upsert"] = self.upsert
        return [{"update": {"_id": self.target_id, "_index": self.index}}, body]


def _natural_id(doc: Dict[str, Any], id_field: str) -> str:
    value = doc.get(id_field)
    if value in (None, ""):
        raise ClientInputError(f"Document is missing its {id_field!r} identifier")
    return str(value)


def flatten(ops: Iterable[BulkOp]) -> List[Dict[str, Any]]:
    actions: List[Dict[str, Any]] = []
    for op in ops:
        actions.extend(op.to_actions())
    return actions


def build_upsert_operations(
    index: str,
    docs: Iterable[Dict[str, Any]],
    id_field: str,
    script: str,
) -> List[Dict[str, Any]]:
    """Script update with the full document as the create-path fallback."""

    return flatten(
        BulkOp(target_id=_natural_id(doc, id_field), index=index, script_id=script, params=doc, upsert=doc)
        for doc in docs
    )


def build_stock_operations(
    index: str,
    docs: Iterable[Dict[str, Any]],
    transition: StockTransition,
    version: str,
    id_field: str = "indexId",
) -> List[Dict[str, Any]]:
    script = script_id(transition.script_name, version)
    return flatten(
        BulkOp(target_id=_natural_id(doc, id_field), index=index, script_id=script, params=doc)
        for doc in docs
    )
