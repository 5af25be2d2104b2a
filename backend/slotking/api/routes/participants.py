"""
Participants API (organizer flow): named participants and their availability.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from slotking.core.errors import unwrap
from slotking.db.session import get_db
from slotking.services import participant_service

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateParticipantBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    is_host: bool = False


class AvailabilityBody(BaseModel):
    participant_id: int
    time_slots: list[str] = Field(default_factory=list, max_length=5000)


@router.post("/meetings/{unique_id}/participants", status_code=201)
def create_participant(
    unique_id: str,
    body: CreateParticipantBody,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Join a meeting by name. Only one participant per meeting may be host."""
    row = unwrap(participant_service.create_participant(db, unique_id, body.name, is_host=body.is_host))
    return participant_service.participant_to_dict(row)


@router.get("/meetings/{unique_id}/participants")
def list_participants(unique_id: str, db: Session = Depends(get_db)) -> list[dict[str, Any]]:
    rows = unwrap(participant_service.list_participants(db, unique_id))
    return [participant_service.participant_to_dict(p) for p in rows]


@router.post("/meetings/{unique_id}/availability", status_code=201)
def save_availability(
    unique_id: str,
    body: AvailabilityBody,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Create or replace the participant's available slots."""
    row = unwrap(
        participant_service.save_availability(db, unique_id, body.participant_id, body.time_slots)
    )
    return participant_service.availability_to_dict(row)


@router.get("/meetings/{unique_id}/availability")
def list_availabilities(unique_id: str, db: Session = Depends(get_db)) -> list[dict[str, Any]]:
    rows = unwrap(participant_service.list_availabilities(db, unique_id))
    return [participant_service.availability_to_dict(a) for a in rows]
