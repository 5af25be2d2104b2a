"""
Meetings API: create/read meetings, vote, clear, reset, slot options, suggestions, dashboard.

Mounted under /api. Business rejections come back as {"detail": {"error": kind, "message": ...}}.
"""
import logging
from datetime import date, datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from slotking.api.routes.schemas import VoterBody
from slotking.core.constants import DEFAULT_SUGGESTION_RESULTS, MAX_RANK_RESULTS
from slotking.core.errors import unwrap
from slotking.db.session import get_db
from slotking.services import meeting_service, suggestion_service
from slotking.services.aggregation import merge_ledgers, rank_slots, summarize_slots
from slotking.services.participant_service import (
    availability_ledger,
    availability_to_dict,
    list_availabilities,
    list_participants,
    participant_to_dict,
)
from slotking.services.time_slots import SlotWindow, generate, group_consecutive

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateMeetingBody(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    organizer_name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    start_hour: int = Field(..., ge=0, le=24)
    end_hour: int = Field(..., ge=0, le=24)
    slot_duration_minutes: int = Field(60, ge=1, le=1440)
    voting_deadline: datetime | None = None
    max_distinct_voters: int | None = Field(None, ge=1)
    premium: bool = False
    creator: VoterBody | None = None


class VoteBody(BaseModel):
    slot_ids: list[str] = Field(default_factory=list, max_length=5000)
    voter: VoterBody
    weight: int = Field(1, ge=1)
    metadata: dict[str, Any] | None = Field(None, description="Opaque annotations stored with the vote")


class ClearVotesBody(BaseModel):
    uid: str = Field(..., min_length=1, max_length=128)


class SuggestBody(BaseModel):
    suggested_by: str | None = Field(None, max_length=128)
    constraints: dict[str, Any] | None = None
    max_results: int = Field(DEFAULT_SUGGESTION_RESULTS, ge=1, le=MAX_RANK_RESULTS)


def _meeting_payload(db: Session, meeting) -> dict[str, Any]:
    participants = unwrap(list_participants(db, meeting.unique_id))
    availabilities = unwrap(list_availabilities(db, meeting.unique_id))
    return {
        **meeting_service.meeting_to_dict(meeting),
        "participants": [participant_to_dict(p) for p in participants],
        "availabilities": [availability_to_dict(a) for a in availabilities],
    }


# --- Create / read ---


@router.post("/meetings", status_code=201)
def create_meeting(body: CreateMeetingBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Create a meeting; the organizer is registered as host participant. Returns the full meeting."""
    window = SlotWindow(
        start_date=body.start_date,
        end_date=body.end_date,
        start_hour=body.start_hour,
        end_hour=body.end_hour,
        slot_duration_minutes=body.slot_duration_minutes,
    )
    meeting = unwrap(
        meeting_service.create_meeting(
            db,
            title=body.title,
            organizer_name=body.organizer_name,
            window=window,
            creator=body.creator.to_voter() if body.creator else None,
            voting_deadline=body.voting_deadline,
            max_distinct_voters=body.max_distinct_voters,
            premium=body.premium,
        )
    )
    return _meeting_payload(db, meeting)


@router.get("/meetings/{unique_id}")
def get_meeting(unique_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Meeting with state, slot tallies, most voted slot, participants and availabilities."""
    meeting = unwrap(meeting_service.get_meeting(db, unique_id))
    return _meeting_payload(db, meeting)


@router.get("/meetings/{unique_id}/options")
def get_options(
    unique_id: str,
    db: Session = Depends(get_db),
    source: Literal["votes", "availability", "all"] = Query("votes"),
    min_availability: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1, le=MAX_RANK_RESULTS),
) -> dict[str, Any]:
    """
    Slot options with counts. min_availability=0 lists every slot in canonical order;
    min_availability>=1 returns the ranking (most support first).
    """
    meeting = unwrap(meeting_service.get_meeting(db, unique_id))
    if source == "votes":
        ledger = meeting_service.meeting_ledger(meeting)
    elif source == "availability":
        ledger = availability_ledger(db, meeting.id)
    else:
        ledger = merge_ledgers(meeting_service.meeting_ledger(meeting), availability_ledger(db, meeting.id))
    slots = generate(meeting_service.meeting_window(meeting))
    summaries = {s.slot.id: s for s in summarize_slots(ledger, slots)}
    if min_availability > 0:
        ordered = rank_slots(ledger, slots, min_availability=min_availability, max_results=limit)
        options = [summaries[s.id].to_dict() for s in ordered]
    else:
        options = [s.to_dict() for s in summaries.values()][:limit]
    return {
        "unique_id": meeting.unique_id,
        "state": meeting_service.meeting_state(meeting),
        "source": source,
        "distinct_voter_count": ledger.distinct_voter_count(),
        "time_slots": options,
    }


# --- Votes ---


@router.post("/meetings/{unique_id}/vote")
def submit_vote(unique_id: str, body: VoteBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Replace the voter's selection. An empty slot_ids list clears it."""
    voter = body.voter.to_voter(weight=body.weight, annotations=body.metadata)
    meeting = unwrap(meeting_service.submit_vote(db, unique_id, body.slot_ids, voter))
    payload = meeting_service.meeting_to_dict(meeting)
    chosen = set(meeting_service.meeting_ledger(meeting).slots_for(voter.uid))
    selected = [s for s in generate(meeting_service.meeting_window(meeting)) if s.id in chosen]
    payload["selection_blocks"] = group_consecutive(selected)
    return payload


@router.delete("/meetings/{unique_id}/vote")
def clear_votes(unique_id: str, body: ClearVotesBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    meeting = unwrap(meeting_service.clear_votes(db, unique_id, body.uid.strip()))
    return meeting_service.meeting_to_dict(meeting)


@router.post("/meetings/{unique_id}/reset")
def reset_meeting(unique_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Clear votes, availabilities, suggestions and non-host participants. Destructive."""
    return {"ok": unwrap(meeting_service.reset_meeting(db, unique_id))}


# --- Suggestions ---


@router.post("/meetings/{unique_id}/suggest")
def suggest(unique_id: str, body: SuggestBody | None = None, db: Session = Depends(get_db)) -> dict[str, Any]:
    body = body or SuggestBody()
    row = unwrap(
        suggestion_service.create_suggestion(
            db,
            unique_id,
            suggested_by=body.suggested_by,
            constraints=body.constraints,
            max_results=body.max_results,
        )
    )
    return {"suggestion": suggestion_service.suggestion_to_dict(row)}


# --- Dashboard ---


@router.get("/dashboard")
def dashboard(uid: str = Query(..., min_length=1), db: Session = Depends(get_db)) -> dict[str, Any]:
    """Meetings created by uid, newest first."""
    meetings = meeting_service.list_meetings_for_creator(db, uid.strip())
    return {"meetings": meetings, "count": len(meetings)}
