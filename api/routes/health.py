"""
Health check endpoint with database status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db
from schemas.api import HealthCheckResponse
from models.last_update import LastUpdate
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Completion time of the last successful collection, if any
    """
    db_connected = False
    last_update_time = None

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {str(e)}")

    if db_connected:
        try:
            result = await db.execute(
                select(LastUpdate.last_update_time).where(LastUpdate.id == LastUpdate.MARKER_ID)
            )
            last_update_time = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read last update time: {str(e)}")

    return HealthCheckResponse(
        database_connected=db_connected,
        last_update_time=last_update_time
    )
