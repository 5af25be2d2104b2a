"""
Participant registry and organizer-flow availability.

Participants are named entries (not voter identities). One host per meeting: the first
is_host=True wins and later host creations are rejected. Availability is one row per
participant and is replaced wholesale on resubmission, like the vote ledger.
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from slotking.core.constants import MAX_NAME_LENGTH
from slotking.core.errors import ErrorKind, Outcome
from slotking.core.locks import meeting_lock
from slotking.models.availability import Availability
from slotking.models.participant import Participant
from slotking.services import events
from slotking.services.aggregation import ledger_from_availabilities
from slotking.services.ledger import VoteLedger
from slotking.services.meeting_service import (
    MSG_MEETING_NOT_FOUND,
    as_utc,
    find_meeting,
    is_open,
    meeting_window,
)
from slotking.services.time_slots import invalid_slot_message, unknown_slot_ids

logger = logging.getLogger(__name__)


def participant_to_dict(p: Participant) -> dict:
    created = as_utc(p.created_at)
    return {
        "id": p.id,
        "meeting_id": p.meeting_id,
        "name": p.name,
        "is_host": bool(p.is_host),
        "created_at": created.isoformat() if created else None,
    }


def availability_to_dict(a: Availability) -> dict:
    updated = as_utc(a.updated_at)
    return {
        "id": a.id,
        "participant_id": a.participant_id,
        "meeting_id": a.meeting_id,
        "time_slots": list(a.time_slots or []),
        "updated_at": updated.isoformat() if updated else None,
    }


def create_participant(db: Session, unique_id: str, name: str, is_host: bool = False) -> Outcome[Participant]:
    name = (name or "").strip()
    if not name:
        return Outcome.failure(ErrorKind.VALIDATION_ERROR, "name is required")
    if len(name) > MAX_NAME_LENGTH:
        return Outcome.failure(ErrorKind.VALIDATION_ERROR, f"name must be at most {MAX_NAME_LENGTH} characters")
    with meeting_lock(unique_id):
        meeting = find_meeting(db, unique_id)
        if meeting is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, MSG_MEETING_NOT_FOUND)
        if is_host:
            existing_host = (
                db.query(Participant.id)
                .filter(Participant.meeting_id == meeting.id, Participant.is_host.is_(True))
                .first()
            )
            if existing_host:
                return Outcome.failure(ErrorKind.HOST_ALREADY_ASSIGNED, "This meeting already has a host")
        participant = Participant(meeting_id=meeting.id, name=name, is_host=is_host)
        db.add(participant)
        db.commit()
        db.refresh(participant)
    logger.info("Meeting %s: participant %s joined (host=%s)", unique_id, participant.id, is_host)
    events.publish(events.PARTICIPANT_JOINED, unique_id, participant=participant_to_dict(participant))
    return Outcome.success(participant)


def list_participants(db: Session, unique_id: str) -> Outcome[list[Participant]]:
    meeting = find_meeting(db, unique_id)
    if meeting is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, MSG_MEETING_NOT_FOUND)
    rows = (
        db.query(Participant)
        .filter(Participant.meeting_id == meeting.id)
        .order_by(Participant.created_at.asc(), Participant.id.asc())
        .all()
    )
    return Outcome.success(rows)


def save_availability(
    db: Session,
    unique_id: str,
    participant_id: int,
    slot_ids: list[str],
    now: datetime | None = None,
) -> Outcome[Availability]:
    """Create or replace the participant's availability. Same deadline and slot rules as votes."""
    selected = sorted(set(slot_ids))
    with meeting_lock(unique_id):
        meeting = find_meeting(db, unique_id)
        if meeting is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, MSG_MEETING_NOT_FOUND)
        participant = db.get(Participant, participant_id)
        if participant is None or participant.meeting_id != meeting.id:
            return Outcome.failure(ErrorKind.NOT_FOUND, "Participant not found")
        if not is_open(meeting, now):
            return Outcome.failure(ErrorKind.VOTING_CLOSED, "Voting for this meeting is closed")
        unknown = unknown_slot_ids(meeting_window(meeting), selected)
        if unknown:
            return Outcome.failure(ErrorKind.INVALID_SLOT, invalid_slot_message(unknown))
        row = db.query(Availability).filter(Availability.participant_id == participant.id).first()
        if row:
            row.time_slots = selected
        else:
            row = Availability(participant_id=participant.id, meeting_id=meeting.id, time_slots=selected)
            db.add(row)
        db.commit()
        db.refresh(row)
    logger.info("Meeting %s: participant %s marked %d slots", unique_id, participant_id, len(selected))
    events.publish(
        events.AVAILABILITY_UPDATED,
        unique_id,
        participant_id=participant_id,
        availability=availability_to_dict(row),
    )
    return Outcome.success(row)


def list_availabilities(db: Session, unique_id: str) -> Outcome[list[Availability]]:
    meeting = find_meeting(db, unique_id)
    if meeting is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, MSG_MEETING_NOT_FOUND)
    rows = (
        db.query(Availability)
        .filter(Availability.meeting_id == meeting.id)
        .order_by(Availability.participant_id.asc())
        .all()
    )
    return Outcome.success(rows)


def availability_ledger(db: Session, meeting_id: int) -> VoteLedger:
    """Organizer-flow availabilities of a meeting as a VoteLedger (for the aggregation engine)."""
    rows = db.query(Availability).filter(Availability.meeting_id == meeting_id).all()
    names = {
        p.id: p.name
        for p in db.query(Participant).filter(Participant.meeting_id == meeting_id).all()
    }
    return ledger_from_availabilities(rows, names)
