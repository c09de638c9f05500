"""FastAPI application factory.

Main entry point for the AI Tutor Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aitutor.config.app_config import get_default_model, load_app_config, load_env_files
from aitutor.web.routes import (
    ai_router,
    chats_router,
    health_router,
    library_router,
    users_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    config = load_app_config()
    provider = config.tutor.default_provider
    logger.info(
        "api_startup",
        provider=provider,
        model=get_default_model(provider),
        state_dir=str(config.state_dir.absolute()),
    )
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    load_env_files()

    app = FastAPI(
        title="AI Tutor API",
        description="Tutor chat, flashcard and quiz generation backed by an LLM",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Browser clients call from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(ai_router)
    app.include_router(users_router)
    app.include_router(library_router)
    app.include_router(chats_router)

    return app


# Default app instance for uvicorn
app = create_app()
