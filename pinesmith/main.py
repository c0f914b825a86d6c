"""
FastAPI Application Entry Point.

Pine Script generation service: natural-language descriptions in, TradingView
Pine Script out, with conversational refinement.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from pinesmith.core.config import Settings
from pinesmith.core.container import get_container, get_session_store_dep, get_settings_dep
from pinesmith.services.session_store import SessionStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    app_name: str
    app_version: str
    timestamp: str
    debug: bool
    llm_provider: str
    llm_model: str
    active_sessions: int


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    - Startup: Initialize container, pre-load settings, create HTTP client
    - Shutdown: Close provider and HTTP client, drop sessions
    """
    container = get_container()
    await container.startup()
    logger.info(f"{container.settings.app_name} started (provider: {container.settings.llm.provider.value})")

    yield

    await container.shutdown()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_container().settings
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Generate TradingView Pine Script indicators and strategies from "
            "natural-language descriptions or strategy documents, then refine "
            "them conversationally."
        ),
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    return app


def register_routes(app: FastAPI) -> None:
    """
    Register all application routes.

    Args:
        app: FastAPI application instance.
    """
    from pinesmith.api.v1 import api_router

    app.include_router(
        api_router,
        prefix="/api/v1",
    )

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="Health Check",
        description="Check if the service is running and return configuration metadata.",
    )
    async def health_check(
        settings: Settings = Depends(get_settings_dep),
        store: SessionStore = Depends(get_session_store_dep),
    ) -> HealthResponse:
        """
        Health check endpoint for readiness probes.

        Does not touch the LLM provider, so it succeeds without API keys.
        """
        return HealthResponse(
            status="healthy",
            app_name=settings.app_name,
            app_version=settings.app_version,
            timestamp=datetime.now(timezone.utc).isoformat(),
            debug=settings.debug,
            llm_provider=settings.llm.provider.value,
            llm_model=settings.llm.model,
            active_sessions=len(store),
        )


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pinesmith.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
