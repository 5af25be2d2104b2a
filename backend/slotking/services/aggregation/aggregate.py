"""
Compute per-slot support from a VoteLedger and the meeting's slot grid.

Nothing here reads the database or the clock, so any caller (API, suggestions, scripts,
tests) gets the same counts and the same tie-break.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Sequence

from slotking.core.constants import PARTICIPANT_UID_PREFIX
from slotking.services.identity import avatar_url
from slotking.services.ledger import VoteLedger, Voter
from slotking.services.time_slots import TimeSlot


class AvailabilityLike(Protocol):
    """Organizer-flow row: which participant marked which slot ids."""
    participant_id: int
    time_slots: list[str]


@dataclass(frozen=True)
class SlotSummary:
    slot: TimeSlot
    vote_count: int
    available: int
    total: int
    voters: tuple[Voter, ...]

    @property
    def percent(self) -> int:
        """Share of active voters on this slot (0-100), for calendar colouring."""
        if self.total <= 0:
            return 0
        return round(100 * self.available / self.total)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.slot.to_dict(),
            "vote_count": self.vote_count,
            "available": self.available,
            "total": self.total,
            "percent": self.percent,
            "voters": [v.to_snapshot() for v in self.voters],
        }


def vote_count(ledger: VoteLedger, slot_id: str) -> int:
    return ledger.count(slot_id)


def most_voted_slot(ledger: VoteLedger, slots: Sequence[TimeSlot]) -> str | None:
    """
    Slot id with the most votes. Ties go to the slot that comes first in canonical (date, time)
    order; only a strictly greater count replaces the running best. None when nobody voted.
    """
    best_id: str | None = None
    best_count = 0
    for s in sorted(slots):
        c = vote_count(ledger, s.id)
        if c > best_count:
            best_id, best_count = s.id, c
    return best_id


def availability_ratio(
    ledger: VoteLedger,
    slot_id: str,
    total_active_voters: int | None = None,
) -> tuple[int, int]:
    """
    (available, total). total is the number of distinct voters who voted anywhere in the
    meeting, so an unvoted slot reads 0/5 rather than 0/0 once five people have voted.
    """
    total = ledger.distinct_voter_count() if total_active_voters is None else total_active_voters
    return ledger.count(slot_id), total


def rank_slots(
    ledger: VoteLedger,
    slots: Sequence[TimeSlot],
    min_availability: int = 1,
    max_results: int | None = None,
) -> list[TimeSlot]:
    """Slots with at least min_availability votes, by vote count desc then slot id asc."""
    counted = [(vote_count(ledger, s.id), s) for s in slots]
    ranked = sorted(
        ((c, s) for c, s in counted if c >= min_availability),
        key=lambda cs: (-cs[0], cs[1].id),
    )
    if max_results is not None:
        ranked = ranked[: max(0, max_results)]
    return [s for _, s in ranked]


def summarize_slots(ledger: VoteLedger, slots: Sequence[TimeSlot]) -> list[SlotSummary]:
    """One SlotSummary per slot in canonical order, all sharing the same active-voter total."""
    total = ledger.distinct_voter_count()
    summaries = []
    for s in sorted(slots):
        voters = tuple(ledger.voters_for(s.id))
        summaries.append(
            SlotSummary(slot=s, vote_count=len(voters), available=len(voters), total=total, voters=voters)
        )
    return summaries


def ledger_from_availabilities(rows: Iterable[AvailabilityLike], names: dict[int, str] | None = None) -> VoteLedger:
    """
    Organizer-flow availabilities as a ledger (participant -> uid 'participant-<id>'), so
    both flows are aggregated by the same functions.
    """
    names = names or {}
    ledger = VoteLedger()
    for row in rows:
        name = names.get(row.participant_id) or f"Participant {row.participant_id}"
        uid = f"{PARTICIPANT_UID_PREFIX}{row.participant_id}"
        voter = Voter(uid=uid, display_name=name, photo_url=avatar_url(name))
        ledger.submit(row.time_slots or [], voter)
    return ledger


def merge_ledgers(*ledgers: VoteLedger) -> VoteLedger:
    """Union of several ledgers. Uids are assumed distinct across sources (e.g. votes vs participants)."""
    merged = VoteLedger()
    by_uid: dict[str, tuple[Voter, list[str]]] = {}
    for ledger in ledgers:
        for sid in ledger.slot_ids():
            for voter in ledger.voters_for(sid):
                entry = by_uid.setdefault(voter.uid, (voter, []))
                entry[1].append(sid)
    for voter, sids in by_uid.values():
        merged.submit(sids, voter)
    return merged
