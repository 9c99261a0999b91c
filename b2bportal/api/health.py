"""Liveness and database readiness probe."""

import structlog
from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from b2bportal.api.dependencies import SessionFactoryDep
from b2bportal.infrastructure.config import settings

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str
    database: str


@router.get("/health", response_model=HealthResponse)
async def health_check(session_factory: SessionFactoryDep) -> HealthResponse:
    """Report service health.

    The service is "healthy" when the order database answers a trivial
    query and "degraded" otherwise; the endpoint itself always answers.
    """
    database = "ok"
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database health check failed", error=str(e))
        database = "unavailable"

    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        service="b2bportal",
        version=settings.api_version,
        database=database,
    )
