"""
Meeting lifecycle: create, read, vote, clear, reset.

State is derived, never stored: a meeting is OPEN while now < voting_deadline (or when it has
no deadline) and CLOSED otherwise. Every check recomputes it against the clock passed in.

Ledger writes for one meeting run under meeting_lock plus a row lock, and the meetings.version
column catches writers from other processes (StaleDataError -> re-read and re-apply).
A rejected write commits nothing.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from slotking.config import settings
from slotking.core.constants import (
    MAX_NAME_LENGTH,
    MAX_TITLE_LENGTH,
    STATE_CLOSED,
    STATE_OPEN,
    UNIQUE_ID_ALPHABET,
    UNIQUE_ID_MAX_ATTEMPTS,
    VOTE_WRITE_MAX_ATTEMPTS,
)
from slotking.core.errors import ErrorKind, Outcome
from slotking.core.locks import meeting_lock
from slotking.db.tables import RESET_TABLE_NAMES
from slotking.models.availability import Availability
from slotking.models.meeting import Meeting
from slotking.models.participant import Participant
from slotking.models.suggestion import Suggestion
from slotking.services import events
from slotking.services.aggregation import most_voted_slot, summarize_slots
from slotking.services.identity import is_reserved_uid
from slotking.services.ledger import VoteLedger, Voter
from slotking.services.time_slots import SlotWindow, generate, invalid_slot_message, validate_window

logger = logging.getLogger(__name__)

MSG_MEETING_NOT_FOUND = "Meeting not found"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now(now: datetime | None) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def meeting_state(meeting: Meeting, now: datetime | None = None) -> str:
    deadline = as_utc(meeting.voting_deadline)
    if deadline is None or _now(now) < deadline:
        return STATE_OPEN
    return STATE_CLOSED


def is_open(meeting: Meeting, now: datetime | None = None) -> bool:
    return meeting_state(meeting, now) == STATE_OPEN


def meeting_window(meeting: Meeting) -> SlotWindow:
    return SlotWindow.from_meeting(meeting)


def meeting_ledger(meeting: Meeting) -> VoteLedger:
    return VoteLedger.from_document(meeting.votes)


def find_meeting(db: Session, unique_id: str) -> Meeting | None:
    return db.query(Meeting).filter(Meeting.unique_id == unique_id).first()


def _load_for_update(db: Session, unique_id: str) -> Meeting | None:
    return (
        db.query(Meeting)
        .filter(Meeting.unique_id == unique_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def _generate_unique_id(db: Session, length: int) -> str:
    for _ in range(UNIQUE_ID_MAX_ATTEMPTS):
        candidate = "".join(secrets.choice(UNIQUE_ID_ALPHABET) for _ in range(length))
        if not db.query(Meeting.id).filter(Meeting.unique_id == candidate).first():
            return candidate
    raise RuntimeError(f"Could not generate a free meeting id after {UNIQUE_ID_MAX_ATTEMPTS} attempts")


def _resolve_cap(max_distinct_voters: int | None, premium: bool) -> int | None:
    """Premium: the given cap or unlimited. Free: never above the free-tier cap."""
    free_cap = settings.free_max_distinct_voters
    if premium:
        return max_distinct_voters
    if max_distinct_voters is None:
        return free_cap
    return min(max_distinct_voters, free_cap)


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


def create_meeting(
    db: Session,
    title: str,
    organizer_name: str,
    window: SlotWindow,
    creator: Voter | None = None,
    voting_deadline: datetime | None = None,
    max_distinct_voters: int | None = None,
    premium: bool = False,
) -> Outcome[Meeting]:
    """
    Create a meeting and register the organizer as its host participant.
    A deadline already in the past is allowed (the meeting is CLOSED from the start).
    """
    title = (title or "").strip()
    organizer_name = (organizer_name or "").strip()
    problems: list[str] = []
    if not title:
        problems.append("title is required")
    elif len(title) > MAX_TITLE_LENGTH:
        problems.append(f"title must be at most {MAX_TITLE_LENGTH} characters")
    if not organizer_name:
        problems.append("organizer_name is required")
    elif len(organizer_name) > MAX_NAME_LENGTH:
        problems.append(f"organizer_name must be at most {MAX_NAME_LENGTH} characters")
    if max_distinct_voters is not None and max_distinct_voters < 1:
        problems.append("max_distinct_voters must be at least 1")
    problems.extend(validate_window(window))
    if problems:
        return Outcome.failure(ErrorKind.VALIDATION_ERROR, "; ".join(problems))

    meeting = Meeting(
        unique_id=_generate_unique_id(db, settings.unique_id_length),
        title=title,
        organizer_name=organizer_name,
        start_date=window.start_date,
        end_date=window.end_date,
        start_hour=window.start_hour,
        end_hour=window.end_hour,
        slot_duration_minutes=window.slot_duration_minutes,
        voting_deadline=as_utc(voting_deadline),
        max_distinct_voters=_resolve_cap(max_distinct_voters, premium),
        creator_uid=creator.uid if creator else None,
        creator_display_name=creator.display_name if creator else organizer_name,
        creator_photo_url=creator.photo_url if creator else None,
        votes={},
    )
    db.add(meeting)
    db.flush()
    db.add(Participant(meeting_id=meeting.id, name=organizer_name, is_host=True))
    db.commit()
    db.refresh(meeting)
    logger.info(
        "Created meeting %s (%r) slots=%d cap=%s deadline=%s",
        meeting.unique_id,
        meeting.title,
        len(generate(window)),
        meeting.max_distinct_voters,
        meeting.voting_deadline,
    )
    return Outcome.success(meeting)


def get_meeting(db: Session, unique_id: str) -> Outcome[Meeting]:
    meeting = find_meeting(db, unique_id)
    if meeting is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, MSG_MEETING_NOT_FOUND)
    return Outcome.success(meeting)


def meeting_to_dict(meeting: Meeting, now: datetime | None = None) -> dict:
    """Meeting fields + derived state and tallies. Slots regenerated from the window on every call."""
    slots = generate(meeting_window(meeting))
    ledger = meeting_ledger(meeting)
    deadline = as_utc(meeting.voting_deadline)
    created = as_utc(meeting.created_at)
    return {
        "id": meeting.id,
        "unique_id": meeting.unique_id,
        "title": meeting.title,
        "organizer_name": meeting.organizer_name,
        "window": meeting_window(meeting).to_dict(),
        "voting_deadline": deadline.isoformat() if deadline else None,
        "state": meeting_state(meeting, now),
        "max_distinct_voters": meeting.max_distinct_voters,
        "creator": {
            "uid": meeting.creator_uid,
            "display_name": meeting.creator_display_name,
            "photo_url": meeting.creator_photo_url,
        },
        "votes": ledger.to_document(),
        "distinct_voter_count": ledger.distinct_voter_count(),
        "most_voted_slot": most_voted_slot(ledger, slots),
        "slots": [s.to_dict() for s in summarize_slots(ledger, slots)],
        "created_at": created.isoformat() if created else None,
    }


def list_meetings_for_creator(db: Session, creator_uid: str, now: datetime | None = None) -> list[dict]:
    """Dashboard rows for meetings created by uid, newest first."""
    rows = (
        db.query(Meeting)
        .filter(Meeting.creator_uid == creator_uid)
        .order_by(Meeting.created_at.desc(), Meeting.id.desc())
        .all()
    )
    result = []
    for m in rows:
        ledger = meeting_ledger(m)
        created = as_utc(m.created_at)
        result.append(
            {
                "unique_id": m.unique_id,
                "title": m.title,
                "state": meeting_state(m, now),
                "distinct_voter_count": ledger.distinct_voter_count(),
                "most_voted_slot": most_voted_slot(ledger, generate(meeting_window(m))),
                "created_at": created.isoformat() if created else None,
            }
        )
    return result


# ---------------------------------------------------------------------------
# Ledger writes
# ---------------------------------------------------------------------------

LedgerMutation = Callable[[Meeting, VoteLedger], Outcome[VoteLedger]]


def _write_ledger(db: Session, unique_id: str, mutate: LedgerMutation) -> Outcome[Meeting]:
    """
    Load the meeting, let mutate() validate and change its ledger, store the result.
    Runs under the meeting lock; a stale version (another process wrote first) is retried.
    """
    with meeting_lock(unique_id):
        last_error: StaleDataError | None = None
        for attempt in range(1, VOTE_WRITE_MAX_ATTEMPTS + 1):
            meeting = _load_for_update(db, unique_id)
            if meeting is None:
                db.rollback()
                return Outcome.failure(ErrorKind.NOT_FOUND, MSG_MEETING_NOT_FOUND)
            outcome = mutate(meeting, meeting_ledger(meeting))
            if not outcome.ok:
                db.rollback()
                return Outcome(error=outcome.error, detail=outcome.detail)
            meeting.votes = outcome.value.to_document()
            try:
                db.commit()
            except StaleDataError as e:
                db.rollback()
                last_error = e
                logger.info("Meeting %s changed concurrently (attempt %d), retrying", unique_id, attempt)
                continue
            db.refresh(meeting)
            return Outcome.success(meeting)
        raise last_error


def submit_vote(
    db: Session,
    unique_id: str,
    slot_ids: list[str],
    voter: Voter,
    now: datetime | None = None,
) -> Outcome[Meeting]:
    """
    Replace voter's selection with slot_ids (empty list clears it).
    Rejections: VALIDATION_ERROR (participant uid), NOT_FOUND, VOTING_CLOSED, INVALID_SLOT,
    CAP_EXCEEDED (new voters only).
    """
    if is_reserved_uid(voter.uid):
        return Outcome.failure(ErrorKind.VALIDATION_ERROR, "uid is reserved for meeting participants")
    selected = sorted(set(slot_ids))

    def mutate(meeting: Meeting, ledger: VoteLedger) -> Outcome[VoteLedger]:
        if not is_open(meeting, now):
            return Outcome.failure(ErrorKind.VOTING_CLOSED, "Voting for this meeting is closed")
        valid_ids = [s.id for s in generate(meeting_window(meeting))]
        unknown = sorted(set(selected) - set(valid_ids))
        if unknown:
            return Outcome.failure(ErrorKind.INVALID_SLOT, invalid_slot_message(unknown))
        stale = ledger.prune(valid_ids)
        if stale:
            logger.info("Meeting %s: dropped votes on %d stale slots", unique_id, len(stale))
        cap = meeting.max_distinct_voters
        if (
            selected
            and cap is not None
            and not ledger.has_voter(voter.uid)
            and ledger.distinct_voter_count() >= cap
        ):
            logger.info("Meeting %s: voter %s rejected, cap %d reached", unique_id, voter.uid, cap)
            return Outcome.failure(
                ErrorKind.CAP_EXCEEDED, f"This meeting accepts at most {cap} distinct voters"
            )
        return Outcome.success(ledger.submit(selected, voter))

    outcome = _write_ledger(db, unique_id, mutate)
    if outcome.ok:
        logger.info("Meeting %s: %s voted for %d slots", unique_id, voter.uid, len(selected))
        events.publish(
            events.VOTE_SUBMITTED,
            unique_id,
            voter=voter.to_snapshot(),
            slot_ids=selected,
            distinct_voter_count=meeting_ledger(outcome.value).distinct_voter_count(),
        )
    return outcome


def clear_votes(db: Session, unique_id: str, voter_uid: str, now: datetime | None = None) -> Outcome[Meeting]:
    """Remove every vote by voter_uid. Same as submitting an empty selection; tallies stay frozen once closed."""

    def mutate(meeting: Meeting, ledger: VoteLedger) -> Outcome[VoteLedger]:
        if not is_open(meeting, now):
            return Outcome.failure(ErrorKind.VOTING_CLOSED, "Voting for this meeting is closed")
        return Outcome.success(ledger.clear(voter_uid))

    outcome = _write_ledger(db, unique_id, mutate)
    if outcome.ok:
        logger.info("Meeting %s: cleared votes of %s", unique_id, voter_uid)
        events.publish(
            events.VOTE_SUBMITTED,
            unique_id,
            voter={"uid": voter_uid},
            slot_ids=[],
            distinct_voter_count=meeting_ledger(outcome.value).distinct_voter_count(),
        )
    return outcome


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------


def _participant_to_keep(participants: list[Participant]) -> Participant | None:
    hosts = [p for p in participants if p.is_host]
    if hosts:
        return hosts[0]
    return participants[0] if participants else None


def reset_meeting(db: Session, unique_id: str) -> Outcome[bool]:
    """
    Empty the ledger, delete availabilities and suggestions, and keep only the host participant
    (or the earliest participant when nobody is flagged). Title, window and deadline are untouched.
    """
    with meeting_lock(unique_id):
        meeting = _load_for_update(db, unique_id)
        if meeting is None:
            db.rollback()
            return Outcome.failure(ErrorKind.NOT_FOUND, MSG_MEETING_NOT_FOUND)
        deleted: dict[str, int] = {}
        for table, model in zip(RESET_TABLE_NAMES, (Availability, Suggestion)):
            deleted[table] = (
                db.query(model).filter(model.meeting_id == meeting.id).delete(synchronize_session=False)
            )
        participants = (
            db.query(Participant)
            .filter(Participant.meeting_id == meeting.id)
            .order_by(Participant.created_at.asc(), Participant.id.asc())
            .all()
        )
        keep = _participant_to_keep(participants)
        removed = 0
        for p in participants:
            if keep is None or p.id != keep.id:
                db.delete(p)
                removed += 1
        deleted["participants"] = removed
        meeting.votes = {}
        db.commit()
    logger.info("Reset meeting %s: %s", unique_id, deleted)
    events.publish(events.MEETING_RESET, unique_id, kept_participant_id=keep.id if keep else None)
    return Outcome.success(True)
