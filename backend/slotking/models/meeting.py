"""Meeting: window (defines the slot grid), deadline, voter cap, creator and the vote ledger document.

votes: {slot_id: {uid: voter_snapshot}}. Always assigned as a new dict so the ORM sees the change.
version: bumped on every UPDATE; a concurrent writer with an older version gets StaleDataError.
"""
from sqlalchemy import Column, Date, DateTime, Integer, String
from sqlalchemy.sql import func

from slotking.db.base import Base
from slotking.models._types import JSONDocument


class Meeting(Base):
    __tablename__ = "meetings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    unique_id = Column(String(32), nullable=False, unique=True, index=True)
    title = Column(String(200), nullable=False)
    organizer_name = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    start_hour = Column(Integer, nullable=False)
    end_hour = Column(Integer, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False)
    voting_deadline = Column(DateTime(timezone=True), nullable=True)  # NULL = always open
    max_distinct_voters = Column(Integer, nullable=True)  # NULL = unlimited (premium)
    creator_uid = Column(String(128), nullable=True, index=True)
    creator_display_name = Column(String(100), nullable=True)
    creator_photo_url = Column(String(512), nullable=True)
    votes = Column(JSONDocument, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}
