"""Recorded best-slot suggestion for a meeting. Purged on reset."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from slotking.db.base import Base
from slotking.models._types import JSONDocument


class Suggestion(Base):
    __tablename__ = "suggestions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    meeting_id = Column(Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False, index=True)
    suggested_by = Column(String(128), nullable=False, default="system")
    suggested_slots = Column(JSONDocument, nullable=False, default=list)  # [{slot_id, available, total}, ...] best first
    reasoning = Column(Text, nullable=True)
    score = Column(Integer, nullable=False, default=0)  # support % of the top slot
    payload = Column("metadata", JSONDocument, nullable=True)  # caller constraints; column name 'metadata' in DB
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
