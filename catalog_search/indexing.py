"""Index creation and configuration helpers."""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from elasticsearch import ApiError, Elasticsearch, TransportError

from .errors import ServerGatewayError, normalize_es_error_message
from .es_client import response_body
from .models import IndexSettings

logger = logging.getLogger(__name__)


def load_index_settings(path: Path) -> IndexSettings:
    with path.open("r", encoding="utf-8") as fh:
        return IndexSettings.model_validate(json.load(fh))


async def index_exists(es: Elasticsearch, index: str) -> bool:
    result = await asyncio.to_thread(es.indices.exists, index=index)
    return bool(response_body(result))


@asynccontextmanager
async def closed_index(es: Elasticsearch, index: str) -> AsyncIterator[None]:
    """Close ``index`` for static settings changes and always reopen it."""

    await asyncio.to_thread(es.indices.close, index=index)
    try:
        yield
    finally:
        logger.info("Reopening index %s", index)
        await asyncio.to_thread(es.indices.open, index=index)


async def configure_index(
    es: Elasticsearch,
    index: str,
    index_settings: IndexSettings,
    destroy_existing: bool = True,
) -> IndexSettings:
    """(Re)create ``index`` and apply analysis settings and mappings.

    An existing index is deleted first when ``destroy_existing`` is set,
    otherwise configuration is refused. Every failure is reported as a
    :class:`ServerGatewayError` with the normalized Elasticsearch cause.
    """

    try:
        if await index_exists(es, index):
            if not destroy_existing:
                raise ServerGatewayError(f"Index: {index} already exists.")
            logger.info("Deleting index %s", index)
            await asyncio.to_thread(es.indices.delete, index=index)
        logger.info("Creating index %s", index)
        await asyncio.to_thread(es.indices.create, index=index)
        async with closed_index(es, index):
            await asyncio.to_thread(es.indices.put_settings, index=index, settings=index_settings.settings)
            await asyncio.to_thread(
                es.indices.put_mapping,
                index=index,
                properties=index_settings.mappings.properties,
            )
    except (ApiError, TransportError) as exc:
        logger.exception("Failed to configure index %s", index)
        raise ServerGatewayError(
            f"Unable to perform Setting Index on ES: {normalize_es_error_message(exc)}"
        ) from exc
    return index_settings
