"""
REST API for Feedback Encyclopedia
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .config import Config, configure_logging, ensure_valid_config, get_config
from .exceptions import RankerNotConfigured, SourceUnavailable
from .models import APIResponse, ErrorResponse, FeedbackEntry, RankingRequest
from .normalizer import list_categories
from .ranker import RelevanceRanker
from .source import SheetSource

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).dict(exclude_none=True),
    )


def create_app(
    config: Optional[Config] = None,
    source: Optional[SheetSource] = None,
    ranker: Optional[RelevanceRanker] = None,
) -> FastAPI:
    """Create and configure FastAPI application"""
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s API...", config.app_name)
        if not app.state.ranker.is_configured:
            logger.warning("AI ranking credential missing; /api/ai-search will answer 503")
        yield
        logger.info("%s API stopped", config.app_name)

    app = FastAPI(
        title=f"{config.app_name} API",
        description=config.description,
        version=config.app_version,
        docs_url=config.api.docs_url,
        redoc_url=config.api.redoc_url,
        openapi_url=config.api.openapi_url,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.source = source or SheetSource(
        csv_url=config.source.resolved_url,
        timeout=config.source.timeout,
        user_agent=config.source.user_agent,
    )
    app.state.ranker = ranker or RelevanceRanker(ai_config=config.ai)

    @app.get("/", response_model=APIResponse)
    async def root():
        """Root endpoint"""
        return APIResponse(
            success=True,
            data={
                "name": config.app_name,
                "version": config.app_version,
                "description": config.description,
                "endpoints": ["/api/feedback", "/api/categories", "/api/ai-search", "/health"],
            },
            message=f"{config.app_name} API is running",
        )

    @app.get("/health", response_model=APIResponse)
    async def health_check():
        """Health check endpoint"""
        return APIResponse(
            success=True,
            data={
                "status": "healthy",
                "api_version": config.app_version,
                "ai_ranking_configured": app.state.ranker.is_configured,
                "timestamp": datetime.now().isoformat(),
            },
            message="Service is healthy",
        )

    @app.get("/api/feedback", response_model=List[FeedbackEntry])
    async def list_feedback():
        """Fetch and normalize the whole corpus"""
        try:
            return await app.state.source.fetch_corpus()
        except SourceUnavailable as e:
            logger.error("Error fetching feedback sheet: %s", e)
            return _error(500, "Failed to fetch data")

    @app.get("/api/categories", response_model=List[str])
    async def categories():
        """Facet values for the category filter"""
        try:
            corpus = await app.state.source.fetch_corpus()
        except SourceUnavailable as e:
            logger.error("Error fetching feedback sheet: %s", e)
            return _error(500, "Failed to fetch data")
        return list_categories(corpus)

    @app.post("/api/ai-search", response_model=List[FeedbackEntry])
    async def ai_search(request: RankingRequest):
        """Rank the corpus against a problem description or draft text"""
        query = request.query
        logger.info("AI search request received. Query: %.50s", query or "")

        if not query or not query.strip():
            return _error(400, "Query is required")

        ranker: RelevanceRanker = app.state.ranker
        try:
            ranker.ensure_configured()
            corpus = await app.state.source.fetch_corpus()
            return await ranker.rank(query, corpus)
        except RankerNotConfigured as e:
            logger.error("AI ranking is not configured: %s", e)
            return _error(503, "API Key missing on server")
        except Exception as e:  # noqa: BLE001
            logger.error("AI search failed: %s", e)
            return _error(500, "Internal Server Error", str(e))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        if request.url.path == "/api/ai-search":
            return _error(400, "Query is required")
        return _error(422, "Invalid request", str(exc))

    @app.exception_handler(404)
    async def not_found_handler(request, exc):
        return JSONResponse(
            status_code=404,
            content=APIResponse(
                success=False,
                error="Endpoint not found",
                message="The requested endpoint does not exist"
            ).dict()
        )

    return app


def run_api_server():
    """Run the API server with configuration validation"""
    try:
        config = ensure_valid_config()
        configure_logging(config.logging)

        logger.info("Starting %s API server on %s:%s (environment=%s)",
                    config.app_name, config.api.host, config.api.port, config.environment)

        uvicorn.run(
            "feedback_encyclopedia.api:create_app",
            host=config.api.host,
            port=config.api.port,
            reload=config.api.debug,
            factory=True,
            log_level="debug" if config.debug else "info"
        )

    except ValueError as e:
        print(f"Configuration validation failed: {e}")
        print("Please fix configuration issues before starting the server.")
        return 1
    return 0


if __name__ == "__main__":
    run_api_server()
