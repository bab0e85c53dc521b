"""Main entry point for the RSS search service."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import uvicorn

from .aggregator import Aggregator
from .config import (
    BACKEND_HOST,
    BACKEND_PORT,
    CACHE_PATH,
    DEFAULT_SEARCH_LIMIT,
    FEEDS_PATH,
    LOG_LEVEL,
)
from .errors import ConfigError, NotReadyError
from .sources import load_sources
from .storage import ArticleCache
from .utils import setup_logging, get_logger

logger = get_logger(__name__)


def build_aggregator(feeds_path: Path, cache_path: Path) -> Aggregator:
    sources = load_sources(feeds_path)
    return Aggregator(sources, cache=ArticleCache(cache_path))


async def run_refresh(aggregator: Aggregator) -> dict:
    """Run one refresh cycle and persist it."""
    report = await aggregator.refresh_all()
    try:
        await aggregator.save_cache()
    except OSError as e:
        logger.error(f"Error saving articles cache: {e}")
    return {"report": report.to_dict(), "stats": aggregator.get_stats()}


async def run_search(aggregator: Aggregator, query: str, limit: int, offset: int) -> dict:
    """Search the cached collection, fetching fresh data if there is no cache."""
    if not await aggregator.load_cache():
        await aggregator.refresh_all()
        try:
            await aggregator.save_cache()
        except OSError as e:
            logger.error(f"Error saving articles cache: {e}")

    results = aggregator.search(query, limit, offset)
    return {
        "query": query,
        "count": len(results),
        "articles": [article.to_dict() for article in results],
    }


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def serve(aggregator: Aggregator, host: str, port: int) -> None:
    from .api import create_app

    app = create_app(aggregator)
    logger.info(f"Server running on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="RSS News Aggregator")
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level",
    )
    parser.add_argument("--feeds", type=Path, default=FEEDS_PATH, help="Path to feeds.json")
    parser.add_argument("--cache", type=Path, default=CACHE_PATH, help="Path to the articles cache")

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API (default)")
    serve_parser.add_argument("--host", default=BACKEND_HOST)
    serve_parser.add_argument("--port", type=int, default=BACKEND_PORT)

    subparsers.add_parser("refresh", help="Fetch all feeds once and update the cache")

    search_parser = subparsers.add_parser("search", help="Search articles and print JSON")
    search_parser.add_argument("query", nargs="?", default="")
    search_parser.add_argument("--limit", type=non_negative_int, default=DEFAULT_SEARCH_LIMIT)
    search_parser.add_argument("--offset", type=non_negative_int, default=0)

    args = parser.parse_args()
    setup_logging(args.log_level)

    try:
        aggregator = build_aggregator(args.feeds, args.cache)
    except ConfigError as e:
        logger.error(f"Initialization failed: {e}")
        sys.exit(1)

    if args.command in (None, "serve"):
        host = getattr(args, "host", BACKEND_HOST)
        port = getattr(args, "port", BACKEND_PORT)
        serve(aggregator, host, port)
        return

    try:
        if args.command == "refresh":
            result = asyncio.run(run_refresh(aggregator))
        else:
            result = asyncio.run(run_search(aggregator, args.query, args.limit, args.offset))
    except ConfigError as e:
        logger.error(f"Refresh failed: {e}")
        sys.exit(1)
    except NotReadyError as e:
        print(f"No articles available: {e}")
        sys.exit(1)

    print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
