"""
Best-slot suggestions: rank the meeting's slots from votes plus organizer-flow availability
and keep a record of what was suggested. Constraints from the caller are stored, not interpreted.
"""
import logging
from typing import Any

from sqlalchemy.orm import Session

from slotking.core.constants import DEFAULT_SUGGESTED_BY, DEFAULT_SUGGESTION_RESULTS
from slotking.core.errors import ErrorKind, Outcome
from slotking.models.suggestion import Suggestion
from slotking.services import events
from slotking.services.aggregation import availability_ratio, merge_ledgers, rank_slots
from slotking.services.meeting_service import (
    MSG_MEETING_NOT_FOUND,
    as_utc,
    find_meeting,
    meeting_ledger,
    meeting_window,
)
from slotking.services.participant_service import availability_ledger
from slotking.services.time_slots import generate

logger = logging.getLogger(__name__)

REASONING_FROM_AVAILABILITY = "Based on current participant availability"
REASONING_NO_VOTES = "Nobody has marked any time slot yet"


def suggestion_to_dict(s: Suggestion) -> dict:
    created = as_utc(s.created_at)
    return {
        "id": s.id,
        "meeting_id": s.meeting_id,
        "suggested_by": s.suggested_by,
        "suggested_slots": list(s.suggested_slots or []),
        "reasoning": s.reasoning,
        "score": s.score,
        "metadata": s.payload,
        "created_at": created.isoformat() if created else None,
    }


def create_suggestion(
    db: Session,
    unique_id: str,
    suggested_by: str | None = None,
    constraints: dict[str, Any] | None = None,
    max_results: int = DEFAULT_SUGGESTION_RESULTS,
) -> Outcome[Suggestion]:
    """Rank slots (votes + availabilities), store the top max_results. score = support % of the best slot."""
    meeting = find_meeting(db, unique_id)
    if meeting is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, MSG_MEETING_NOT_FOUND)
    if max_results < 1:
        return Outcome.failure(ErrorKind.VALIDATION_ERROR, "max_results must be at least 1")

    ledger = merge_ledgers(meeting_ledger(meeting), availability_ledger(db, meeting.id))
    total = ledger.distinct_voter_count()
    ranked = rank_slots(ledger, generate(meeting_window(meeting)), min_availability=1, max_results=max_results)
    suggested = []
    for slot in ranked:
        available, _ = availability_ratio(ledger, slot.id, total)
        suggested.append({"slot_id": slot.id, "available": available, "total": total})
    score = round(100 * suggested[0]["available"] / total) if suggested and total else 0

    row = Suggestion(
        meeting_id=meeting.id,
        suggested_by=(suggested_by or "").strip() or DEFAULT_SUGGESTED_BY,
        suggested_slots=suggested,
        reasoning=REASONING_FROM_AVAILABILITY if suggested else REASONING_NO_VOTES,
        score=score,
        payload=constraints or None,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Meeting %s: suggestion %s with %d slots (score=%d)", unique_id, row.id, len(suggested), score)
    events.publish(events.SUGGESTION_ADDED, unique_id, suggestion=suggestion_to_dict(row))
    return Outcome.success(row)
