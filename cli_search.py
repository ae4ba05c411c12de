"""Terminal client that reuses the in-process search logic."""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from catalog_search.config import settings
from catalog_search.errors import SearchError
from catalog_search.es_client import create_client
from catalog_search.indexing import load_index_settings
from catalog_search.models import ListOptions, SearchResult
from catalog_search.search_service import SearchService

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


def build_options(args: argparse.Namespace, keyword: Optional[str]) -> ListOptions:
    return ListOptions(
        keyword=keyword,
        size=args.size,
        next_token=args.next,
        categories=args.category or None,
        brands=args.brand or None,
        brand_id=args.brand_id,
        min_price=args.min_price,
        max_price=args.max_price,
        sort_by=args.sort,
        color=args.color or None,
    )


async def perform_query(service: SearchService, options: ListOptions, facets: List[str]) -> SearchResult:
    return await service.list_products(options, facets)


def pretty_print_result(keyword: Optional[str], result: SearchResult) -> None:
    total = result.total
    color = GREEN if result.items else RED
    estimate = "~" if total.is_estimate else ""
    print(f"Query: {keyword or '*'} | page: {color}{len(result.items)}{RESET} | total: {estimate}{total.value}")
    for idx, item in enumerate(result.items, start=1):
        print(f"  {idx:02d}. {item.sku} | {item.annotated_brand} | {item.actual_min_price} | {item.title.en}")
    facets = result.filterable_attributes
    if facets is not None:
        brands = ", ".join(f"{b.brand_id}({b.count})" for b in facets.brands[:10])
        categories = ", ".join(f"{c.slug}({c.count})" for c in facets.categories[:10])
        print(f"  brands: {brands or '-'}")
        print(f"  categories: {categories or '-'}")
        print(f"  price: {facets.price.price_min} - {facets.price.price_max}")
    if result.suggestions:
        print(f"  suggestions: {', '.join(result.suggestions)}")
    if result.next_token:
        print(f"  next: {result.next_token}")


def run_query(service: SearchService, args: argparse.Namespace, keyword: Optional[str]) -> None:
    try:
        result = asyncio.run(perform_query(service, build_options(args, keyword), args.facet or []))
    except SearchError as exc:
        print(f"{RED}{exc}{RESET}")
        return
    pretty_print_result(keyword, result)


def interactive_shell(service: SearchService, args: argparse.Namespace) -> None:
    print("Interactive product search. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        run_query(service, args, query)


def batch_mode(service: SearchService, args: argparse.Namespace, file_path: Path) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if not query:
                continue
            run_query(service, args, query)


def configure(service: SearchService, index: str, settings_path: Path) -> int:
    index_settings = load_index_settings(settings_path)
    try:
        asyncio.run(service.configure_index(index, index_settings))
    except SearchError as exc:
        print(f"{RED}{exc}{RESET}")
        return 1
    print(f"{GREEN}Configured index {index}{RESET}")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the catalog search service")
    parser.add_argument("query", nargs="?", help="Keyword. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with keywords to execute line by line")
    parser.add_argument("--size", type=int, default=24)
    parser.add_argument("--next", help="Pagination token from a previous page")
    parser.add_argument("--category", action="append", help="Category slug (repeatable)")
    parser.add_argument("--brand", action="append", help="Brand id (repeatable)")
    parser.add_argument("--brand-id", help="Pin a single brand")
    parser.add_argument("--color", action="append", help="Color code (repeatable)")
    parser.add_argument("--min-price", type=float)
    parser.add_argument("--max-price", type=float)
    parser.add_argument("--sort", help="Sort token, e.g. -price or createdAt")
    parser.add_argument("--facet", action="append", help="Extra facet to aggregate, e.g. colorSwatch")
    parser.add_argument("--configure", metavar="INDEX", help="Recreate INDEX from --settings")
    parser.add_argument("--settings", type=Path, help="JSON file with index settings and mappings")
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=logging.getLevelName(settings.log_level.upper()))
    service = SearchService(create_client(settings), settings)

    if args.configure:
        if not args.settings:
            parser.error("--configure requires --settings")
        return configure(service, args.configure, args.settings)
    if args.batch:
        batch_mode(service, args, args.batch)
        return 0
    if args.query:
        run_query(service, args, args.query)
        return 0
    interactive_shell(service, args)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
