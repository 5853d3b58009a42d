"""
Last update endpoint: when the catalog was last written successfully
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from api.dependencies import get_db
from schemas.api import LastUpdateResponse
from models.last_update import LastUpdate
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/last_update", tags=["Last Update"])


@router.get("/time", response_model=LastUpdateResponse)
async def get_last_update_time(db: AsyncSession = Depends(get_db)):
    """
    Completion time of the last successful collection run.

    Returns 404 until a run has persisted its catalog.
    """
    result = await db.execute(
        select(LastUpdate).where(LastUpdate.id == LastUpdate.MARKER_ID)
    )
    marker = result.scalar_one_or_none()

    if marker is None:
        logger.info("No completed collection recorded yet")
        raise HTTPException(status_code=404, detail="No collection has completed yet")

    return LastUpdateResponse.model_validate(marker)
