"""FastAPI layer over the aggregator: search, stats, refresh and health."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional, Sequence

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .aggregator import Aggregator
from .collectors import Article
from .config import CORS_ORIGINS, DEFAULT_SEARCH_LIMIT
from .errors import ConfigError, NotReadyError
from .scheduler import RefreshScheduler
from .utils import get_logger

logger = get_logger(__name__)


class ArticleOut(BaseModel):
    title: str
    url: str
    snippet: str
    imageUrl: Optional[str] = None
    source: str
    category: str
    pubDate: datetime
    interest: str = ""

    @classmethod
    def from_article(cls, article: Article, query: str) -> "ArticleOut":
        return cls(
            title=article.title,
            url=article.url,
            snippet=article.snippet,
            imageUrl=article.image_url,
            source=article.source_name,
            category=article.category,
            pubDate=article.published_at,
            interest=query,
        )


class SearchResponse(BaseModel):
    query: str
    count: int
    articles: list[ArticleOut]


class StatsResponse(BaseModel):
    totalArticles: int
    totalFeeds: int
    lastUpdate: Optional[datetime] = None
    categories: list[str]
    sources: list[str]


async def initialize(aggregator: Aggregator, scheduler: RefreshScheduler) -> None:
    """Serve from the cache if there is one, otherwise fetch everything now."""
    if await aggregator.load_cache():
        return
    await scheduler.trigger_refresh()


def create_app(
    aggregator: Aggregator,
    scheduler: Optional[RefreshScheduler] = None,
    warm_start: bool = True,
    auto_refresh: bool = True,
    cors_origins: Sequence[str] = CORS_ORIGINS,
) -> FastAPI:
    """Build the app around an existing aggregator."""
    scheduler = scheduler or RefreshScheduler(aggregator)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting RSS News Aggregator...")
        if warm_start:
            await initialize(aggregator, scheduler)
        if auto_refresh:
            scheduler.start()
        yield
        logger.info("Shutting down gracefully...")
        await scheduler.stop()
        try:
            await aggregator.save_cache()
        except OSError as e:
            logger.error(f"Error saving articles cache: {e}")

    app = FastAPI(title="RSS News Aggregator", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.state.aggregator = aggregator
    app.state.scheduler = scheduler

    @app.get("/health")
    async def health_check(request: Request):
        """Readiness is true once articles are loaded."""
        return {
            "status": "online",
            "message": "RSS News Aggregator API",
            "ready": request.app.state.aggregator.is_ready(),
            "endpoints": {
                "search": "/search?q=your+query&limit=20",
                "stats": "/stats",
            },
        }

    @app.get("/search", response_model=SearchResponse)
    async def search(
        request: Request,
        q: str = "",
        limit: int = Query(DEFAULT_SEARCH_LIMIT, ge=0),
        offset: int = Query(0, ge=0),
    ):
        try:
            results = request.app.state.aggregator.search(q, limit, offset)
        except NotReadyError as e:
            return JSONResponse(status_code=503, content={"error": str(e), "articles": []})

        return SearchResponse(
            query=q,
            count=len(results),
            articles=[ArticleOut.from_article(article, q) for article in results],
        )

    @app.get("/stats", response_model=StatsResponse)
    async def stats(request: Request):
        return request.app.state.aggregator.get_stats()

    @app.post("/refresh")
    async def refresh(request: Request):
        """Manual refresh; joins an in-flight run instead of starting a second one."""
        logger.info("Manual refresh triggered")
        try:
            report = await request.app.state.scheduler.trigger_refresh()
        except ConfigError as e:
            logger.error(f"Refresh error: {e}")
            return JSONResponse(
                status_code=500,
                content={"error": "Refresh failed", "message": str(e)},
            )
        return {
            "success": True,
            "message": "Articles refreshed successfully",
            "stats": request.app.state.aggregator.get_stats(),
            "report": report.to_dict(),
        }

    return app
