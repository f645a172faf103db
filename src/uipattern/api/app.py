"""FastAPI application factory for the pattern training engine."""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core.config import config
from ..core.engine import TrainingEngine
from ..core.logger import log
from .routes import pattern_router, question_router, screenshot_router, set_engine


def create_app(engine: Optional[TrainingEngine] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        engine: Engine to serve; a default one is created lazily when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    if engine is not None:
        set_engine(engine)

    app = FastAPI(
        title="UI Pattern Training API",
        description="Pattern matching and collaborative training for screenshot UI elements",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add request logging middleware
    @app.middleware("http")
    async def log_requests(request, call_next):
        log.info(f"API Request: {request.method} {request.url}")
        response = await call_next(request)
        log.info(f"API Response: {response.status_code}")
        return response

    # Include routers
    app.include_router(screenshot_router, prefix="/api/v1/screenshots", tags=["screenshots"])
    app.include_router(question_router, prefix="/api/v1/questions", tags=["questions"])
    app.include_router(pattern_router, prefix="/api/v1/patterns", tags=["patterns"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "UI Pattern Training API",
            "version": __version__
        }

    log.info("FastAPI application created successfully")
    return app
