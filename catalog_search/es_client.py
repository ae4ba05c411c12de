"""Elasticsearch client factory.

The rest of the code works against the official synchronous client. Blocking
calls are wrapped via ``asyncio.to_thread`` by the caller where necessary.

The hosting application builds the client once with :func:`create_client` and
passes it to the services that need it.
"""
from __future__ import annotations

import logging
from typing import Any

from elasticsearch import Elasticsearch

from .config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def create_client(config: Settings | None = None) -> Elasticsearch:
    config = config or default_settings
    logger.info("Connecting to Elasticsearch at %s", config.es_host)
    return Elasticsearch(config.es_host)


def response_body(response: Any) -> Any:
    """Unwrap an ``ObjectApiResponse`` into its decoded body."""

    return getattr(response, "body", response)
