"""FastAPI application wiring the search service."""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .cache import create_cache
from .config import settings
from .documents import BrandDocument, ProductDocument
from .errors import SearchError
from .es_client import create_client
from .models import BrandSearchResult, ListOptions, Scope, SearchResult, TrackTermRequest
from .search_service import SearchService

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Catalog Search Service")


@app.on_event("startup")
async def startup_event() -> None:
    es = create_client(settings)
    app.state.service = SearchService(es, settings, cache=create_cache(settings))


def get_service(request: Request) -> SearchService:
    return request.app.state.service


@app.exception_handler(SearchError)
async def search_error_handler(request: Request, exc: SearchError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "detail": exc.detail})


@app.get("/health")
async def health(service: SearchService = Depends(get_service)) -> dict:
    status = await asyncio.to_thread(service.es.cluster.health)
    return {
        "elasticsearch": status.get("status"),
        "indices": list(settings.supported_indices),
    }


@app.get("/products", response_model=SearchResult[ProductDocument])
async def list_products(
    keyword: Optional[str] = None,
    next_token: Optional[str] = None,
    size: int = Query(24, gt=0, le=200),
    categories: Optional[List[str]] = Query(None),
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    brands: Optional[List[str]] = Query(None),
    brand_id: Optional[str] = None,
    mall_id: Optional[str] = None,
    sort_by: Optional[str] = None,
    skus: Optional[List[str]] = Query(None),
    color: Optional[List[str]] = Query(None),
    facets: List[str] = Query([]),
    service: SearchService = Depends(get_service),
) -> SearchResult[ProductDocument]:
    options = ListOptions(
        keyword=keyword,
        next_token=next_token,
        size=size,
        categories=categories,
        category=category,
        min_price=min_price,
        max_price=max_price,
        brands=brands,
        brand_id=brand_id,
        mall_id=mall_id,
        sort_by=sort_by,
        skus=skus,
        color=color,
    )
    result = await service.list_products(options, facets)
    if keyword:
        await service.track_searched(options, keyword)
    return result


@app.get("/brands", response_model=BrandSearchResult[BrandDocument])
async def list_brands(
    keyword: Optional[str] = None,
    next_token: Optional[str] = None,
    size: int = Query(24, gt=0, le=200),
    service: SearchService = Depends(get_service),
) -> BrandSearchResult[BrandDocument]:
    return await service.list_brands(ListOptions(keyword=keyword, next_token=next_token, size=size))


@app.get("/terms/popular")
async def popular_terms(
    q: Optional[str] = None,
    brand_id: Optional[str] = None,
    service: SearchService = Depends(get_service),
) -> List[str]:
    return await service.list_popular(Scope(brand_id=brand_id), q)


@app.get("/terms/boosted")
async def boosted_terms(
    q: Optional[str] = None,
    brand_id: Optional[str] = None,
    service: SearchService = Depends(get_service),
) -> List[str]:
    return await service.list_boosted_terms(Scope(brand_id=brand_id), q)


@app.post("/terms/track", status_code=202)
async def track_term(payload: TrackTermRequest, service: SearchService = Depends(get_service)) -> dict:
    await service.track_searched(payload, payload.term)
    return {"tracked": payload.term}
