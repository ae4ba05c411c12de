"""Opaque pagination cursors.

A cursor is the base64 encoding of the compact JSON array holding the sort
values of the last hit on a page. Clients persist and replay it, so the format
must stay stable: ``[1.0,"sku-1"]`` -> ``WzEuMCwic2t1LTEiXQ==``.
"""
from __future__ import annotations

import base64
import binascii
import json
from typing import Any, List, Sequence

from .errors import InvalidCursor

_SCALARS = (str, int, float, bool)


def encode_cursor(values: Sequence[Any]) -> str:
    payload = json.dumps(list(values), separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(token: str) -> List[Any]:
    """Decode a cursor produced by :func:`encode_cursor`.

    Raises :class:`InvalidCursor` for anything that is not a non-empty JSON
    array of scalar sort values.
    """

    try:
        raw = base64.b64decode(token.encode("ascii"), validate=True)
        values = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidCursor("Invalid pagination token", detail=str(exc)) from exc
    if not isinstance(values, list) or not values:
        raise InvalidCursor("Invalid pagination token", detail="expected a non-empty array of sort values")
    if not all(value is None or isinstance(value, _SCALARS) for value in values):
        raise InvalidCursor("Invalid pagination token", detail="sort values must be scalars")
    return values
