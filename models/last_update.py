from sqlalchemy import Column, Integer, DateTime
from models.base import Base


class LastUpdate(Base):
    """
    Single-row marker holding the completion time of the last successful run.

    Backs the read-only reporting endpoint. The row always has id 1 and is
    overwritten by every completed run.
    """
    __tablename__ = "last_update"

    MARKER_ID = 1

    id = Column(Integer, primary_key=True, autoincrement=False, default=MARKER_ID)
    last_update_time = Column(DateTime(timezone=True), nullable=False)
