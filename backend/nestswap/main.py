# backend/nestswap/main.py
"""
NestSwap swap engine API.

Mounts the versioned swap routes under /api/v1 plus the unversioned
health and metrics endpoints.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import is_running_tests, settings
from .database.init_db import init_db
from .errors import register_error_handlers
from .routes import health, prometheus
from .routes.v1 import swaps as swaps_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
API_DESCRIPTION = "Swap request lifecycle and conflict resolution for NestSwap listings."


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{settings.api_title} starting up...")
    logger.info(f"Environment: {settings.environment}")

    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    else:
        init_db()

    yield

    logger.info(f"{settings.api_title} shutting down...")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.api_title,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )

    # Register unified error envelope handlers
    register_error_handlers(app)

    # Create API v1 router
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(swaps_v1.router, prefix="/swaps")
    api_v1.include_router(health.router)

    app.include_router(api_v1)
    app.include_router(prometheus.router)
    return app


app = create_app()
