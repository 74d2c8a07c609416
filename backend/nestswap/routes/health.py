# backend/nestswap/routes/health.py
"""
Health check endpoint for the swap engine.
"""

import logging

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..core.config import settings
from ..core.timezone_utils import utc_now

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


class HealthCheckResponse(BaseModel):
    status: str
    service: str
    environment: str
    database: bool
    timestamp: str


@router.get("/health", response_model=HealthCheckResponse)
def health_check(response: Response, db: Session = Depends(get_db)) -> HealthCheckResponse:
    """
    Basic health check endpoint.

    Reports "degraded" when the database does not answer.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = True
        status = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = False
        status = "degraded"

    response.headers["Cache-Control"] = "no-store"
    return HealthCheckResponse(
        status=status,
        service=settings.api_title,
        environment=settings.environment,
        database=db_status,
        timestamp=utc_now().isoformat(),
    )
