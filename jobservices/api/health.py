"""Health check endpoint."""
from fastapi import APIRouter
from pydantic import BaseModel

from jobservices.config.postgres import ping_database
from jobservices.logging_config import get_logger

logger = get_logger(name=__name__)

router = APIRouter(prefix="/health", tags=["Health"])


class DatabaseStatus(BaseModel):
    connected: bool


class HealthResponse(BaseModel):
    status: str  # "healthy" or "unhealthy"
    database: DatabaseStatus


@router.get("", response_model=HealthResponse)
async def health_check():
    """Verify that PostgreSQL answers ``SELECT 1``."""
    db_status = DatabaseStatus(connected=False)

    try:
        await ping_database()
        db_status = DatabaseStatus(connected=True)
    except Exception as e:
        logger.warning("Failed to connect to database: {}", e)

    return HealthResponse(
        status="healthy" if db_status.connected else "unhealthy",
        database=db_status,
    )
