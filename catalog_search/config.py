"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    product_index: str = _get_env("PRODUCT_INDEX", "products")
    brand_index: str = _get_env("BRAND_INDEX", "brands")
    popular_terms_index: str = _get_env("POPULAR_TERMS_INDEX", "queryterms")
    boosted_terms_index: str = _get_env("BOOSTED_TERMS_INDEX", "boostedterms")
    script_version: str = _get_env("SCRIPT_VERSION", "v1")
    bulk_refresh: bool = _get_env("BULK_REFRESH", "true").lower() in {"1", "true", "yes"}
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    terms_cache_ttl_seconds: int = int(_get_env("TERMS_CACHE_TTL_SECONDS", "30"))
    log_level: str = _get_env("LOG_LEVEL", "INFO")

    @property
    def supported_indices(self) -> tuple[str, ...]:
        return (
            self.product_index,
            self.brand_index,
            self.popular_terms_index,
            self.boosted_terms_index,
        )


settings = Settings()
