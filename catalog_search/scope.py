"""Scope to term-tracking domain mapping."""
from __future__ import annotations

from .models import Scope

GLOBAL_DOMAIN = "global"
BRAND_DOMAIN = "brand"


def resolve_domain(scope: Scope) -> str:
    """Return the domain id partitioning term data for ``scope``.

    ``"global"`` unless the scope is restricted to a brand, in which case
    ``"brand:<brand_id>"``.
    """

    group, key = GLOBAL_DOMAIN, ""
    if scope.brand_id:
        group, key = BRAND_DOMAIN, scope.brand_id
    # TODO: add mall/channel domains once term tracking is partitioned per store.
    return ":".join(part for part in (group, key) if part)
