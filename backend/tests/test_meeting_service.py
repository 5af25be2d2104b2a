import threading
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from slotking.core.errors import ErrorKind
from slotking.models import Availability, Meeting, Participant, Suggestion
from slotking.services import events, meeting_service
from slotking.services.meeting_service import (
    as_utc,
    clear_votes,
    create_meeting,
    get_meeting,
    meeting_ledger,
    meeting_state,
    meeting_to_dict,
    meeting_window,
    reset_meeting,
    submit_vote,
)
from slotking.services.participant_service import create_participant, save_availability
from slotking.services.suggestion_service import create_suggestion
from slotking.services.time_slots import SlotWindow

from tests.conftest import make_voter

NINE = "2024-01-01T09:00"
TEN = "2024-01-01T10:00"
NOW = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


def _meeting(db, window, **kwargs):
    kwargs.setdefault("title", "Team sync")
    kwargs.setdefault("organizer_name", "Olivia")
    outcome = create_meeting(db, window=window, **kwargs)
    assert outcome.ok, outcome.detail
    return outcome.value


# --- create / read ---


def test_create_meeting_registers_host(db, two_slot_window):
    meeting = _meeting(db, two_slot_window, creator=make_voter("u-olivia", "Olivia"))
    assert len(meeting.unique_id) == 10
    assert meeting.votes == {}
    assert meeting.creator_uid == "u-olivia"
    participants = db.query(Participant).filter(Participant.meeting_id == meeting.id).all()
    assert [(p.name, p.is_host) for p in participants] == [("Olivia", True)]


def test_create_meeting_rejects_bad_input(db):
    window = SlotWindow(
        start_date=date(2024, 1, 2),
        end_date=date(2024, 1, 1),
        start_hour=9,
        end_hour=10,
        slot_duration_minutes=60,
    )
    outcome = create_meeting(db, title="  ", organizer_name="Olivia", window=window)
    assert outcome.error == ErrorKind.VALIDATION_ERROR
    assert "title is required" in outcome.detail
    assert "end_date" in outcome.detail
    assert db.query(Meeting).count() == 0


def test_free_meeting_gets_free_cap(db, two_slot_window):
    assert _meeting(db, two_slot_window).max_distinct_voters == 10
    assert _meeting(db, two_slot_window, max_distinct_voters=3).max_distinct_voters == 3
    assert _meeting(db, two_slot_window, max_distinct_voters=50).max_distinct_voters == 10


def test_premium_meeting_cap(db, two_slot_window):
    assert _meeting(db, two_slot_window, premium=True).max_distinct_voters is None
    assert _meeting(db, two_slot_window, premium=True, max_distinct_voters=50).max_distinct_voters == 50


def test_get_meeting_not_found(db):
    outcome = get_meeting(db, "missing")
    assert not outcome.ok
    assert outcome.error == ErrorKind.NOT_FOUND


def test_meeting_to_dict_reports_tallies(db, two_slot_window):
    meeting = _meeting(db, two_slot_window)
    submit_vote(db, meeting.unique_id, [NINE, TEN], make_voter("a"), now=NOW)
    meeting = submit_vote(db, meeting.unique_id, [TEN], make_voter("b"), now=NOW).value
    data = meeting_to_dict(meeting, now=NOW)
    assert data["state"] == "open"
    assert data["distinct_voter_count"] == 2
    assert data["most_voted_slot"] == TEN
    assert [(s["id"], s["available"], s["total"]) for s in data["slots"]] == [(NINE, 1, 2), (TEN, 2, 2)]
    assert set(data["votes"][TEN]) == {"a", "b"}


# --- votes ---


def test_vote_is_full_replace(db, two_slot_window):
    meeting = _meeting(db, two_slot_window)
    submit_vote(db, meeting.unique_id, [NINE, TEN], make_voter("a"), now=NOW)
    meeting = submit_vote(db, meeting.unique_id, [TEN], make_voter("a"), now=NOW).value
    ledger = meeting_ledger(meeting)
    assert ledger.slots_for("a") == [TEN]
    assert ledger.count(NINE) == 0


def test_vote_unknown_meeting(db):
    outcome = submit_vote(db, "missing", [NINE], make_voter("a"), now=NOW)
    assert outcome.error == ErrorKind.NOT_FOUND


def test_vote_unknown_slot_is_rejected_without_writing(db, two_slot_window):
    meeting = _meeting(db, two_slot_window)
    submit_vote(db, meeting.unique_id, [NINE], make_voter("a"), now=NOW)
    outcome = submit_vote(db, meeting.unique_id, [TEN, "2024-01-01T11:00"], make_voter("a"), now=NOW)
    assert outcome.error == ErrorKind.INVALID_SLOT
    assert "2024-01-01T11:00" in outcome.detail
    db.expire_all()
    assert meeting_ledger(get_meeting(db, meeting.unique_id).value).slots_for("a") == [NINE]


def test_voting_closes_at_deadline(db, two_slot_window):
    deadline = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    meeting = _meeting(db, two_slot_window, voting_deadline=deadline)
    before = deadline - timedelta(seconds=1)
    assert submit_vote(db, meeting.unique_id, [NINE], make_voter("a"), now=before).ok
    assert meeting_state(meeting, now=before) == "open"
    assert meeting_state(meeting, now=deadline) == "closed"

    outcome = submit_vote(db, meeting.unique_id, [TEN], make_voter("b"), now=deadline)
    assert outcome.error == ErrorKind.VOTING_CLOSED
    cleared = clear_votes(db, meeting.unique_id, "a", now=deadline)
    assert cleared.error == ErrorKind.VOTING_CLOSED
    db.expire_all()
    ledger = meeting_ledger(get_meeting(db, meeting.unique_id).value)
    assert ledger.distinct_voter_count() == 1
    assert ledger.slots_for("a") == [NINE]


def test_meeting_without_deadline_stays_open(db, two_slot_window):
    meeting = _meeting(db, two_slot_window)
    assert meeting_state(meeting, now=datetime(2099, 1, 1, tzinfo=timezone.utc)) == "open"


def test_past_deadline_meeting_is_closed_from_the_start(db, two_slot_window):
    meeting = _meeting(db, two_slot_window, voting_deadline=NOW - timedelta(days=1))
    assert meeting_state(meeting, now=NOW) == "closed"
    assert submit_vote(db, meeting.unique_id, [NINE], make_voter("a"), now=NOW).error == ErrorKind.VOTING_CLOSED


def test_cap_counts_distinct_voters(db, two_slot_window):
    meeting = _meeting(db, two_slot_window, max_distinct_voters=2, premium=True)
    uid = meeting.unique_id
    assert submit_vote(db, uid, [NINE], make_voter("a"), now=NOW).ok
    assert submit_vote(db, uid, [TEN], make_voter("b"), now=NOW).ok

    third = submit_vote(db, uid, [NINE], make_voter("c"), now=NOW)
    assert third.error == ErrorKind.CAP_EXCEEDED

    # Existing voters may still change their selection
    assert submit_vote(db, uid, [NINE, TEN], make_voter("a"), now=NOW).ok
    # A newcomer's empty selection changes nothing and is accepted
    assert submit_vote(db, uid, [], make_voter("c"), now=NOW).ok

    # Once someone leaves, a newcomer fits again
    assert clear_votes(db, uid, "b", now=NOW).ok
    assert submit_vote(db, uid, [TEN], make_voter("c"), now=NOW).ok
    db.expire_all()
    assert meeting_ledger(get_meeting(db, uid).value).distinct_voter_uids() == {"a", "c"}


def test_clear_votes(db, two_slot_window):
    meeting = _meeting(db, two_slot_window)
    submit_vote(db, meeting.unique_id, [NINE, TEN], make_voter("a"), now=NOW)
    submit_vote(db, meeting.unique_id, [TEN], make_voter("b"), now=NOW)
    meeting = clear_votes(db, meeting.unique_id, "a", now=NOW).value
    ledger = meeting_ledger(meeting)
    assert ledger.distinct_voter_uids() == {"b"}
    assert ledger.count(NINE) == 0


def test_stale_slots_are_pruned_on_next_write(db, two_slot_window):
    meeting = _meeting(db, two_slot_window)
    submit_vote(db, meeting.unique_id, [NINE, TEN], make_voter("a"), now=NOW)
    # Shrink the window so 10:00 no longer exists
    meeting.end_hour = 10
    db.commit()
    meeting = submit_vote(db, meeting.unique_id, [NINE], make_voter("b"), now=NOW).value
    assert meeting_ledger(meeting).slot_ids() == [NINE]
    assert TEN not in meeting.votes


def test_vote_publishes_event(db, two_slot_window, captured_events):
    meeting = _meeting(db, two_slot_window)
    submit_vote(db, meeting.unique_id, [TEN, NINE], make_voter("a", "Ann"), now=NOW)
    event_type, message = captured_events[-1]
    assert event_type == events.VOTE_SUBMITTED
    assert message["meeting_id"] == meeting.unique_id
    assert message["slot_ids"] == [NINE, TEN]
    assert message["voter"]["display_name"] == "Ann"
    assert message["distinct_voter_count"] == 1


def test_rejected_vote_publishes_nothing(db, two_slot_window, captured_events):
    meeting = _meeting(db, two_slot_window)
    submit_vote(db, meeting.unique_id, ["bogus"], make_voter("a"), now=NOW)
    assert captured_events == []


def test_failing_event_handler_does_not_fail_vote(db, two_slot_window):
    def broken(event_type, message):
        raise RuntimeError("transport down")

    events.subscribe(broken)
    try:
        meeting = _meeting(db, two_slot_window)
        assert submit_vote(db, meeting.unique_id, [NINE], make_voter("a"), now=NOW).ok
    finally:
        events.unsubscribe(broken)


# --- reset ---


def test_reset_keeps_host_only(db, two_slot_window, captured_events):
    meeting = _meeting(db, two_slot_window, voting_deadline=NOW + timedelta(days=7))
    uid = meeting.unique_id
    guest = create_participant(db, uid, "Dana").value
    assert save_availability(db, uid, guest.id, [NINE], now=NOW).ok
    assert create_suggestion(db, uid).ok
    submit_vote(db, uid, [NINE], make_voter("a"), now=NOW)

    assert reset_meeting(db, uid).value is True

    db.expire_all()
    meeting = get_meeting(db, uid).value
    assert meeting.votes == {}
    assert meeting.title == "Team sync"
    assert meeting_window(meeting) == two_slot_window
    assert as_utc(meeting.voting_deadline) == NOW + timedelta(days=7)
    assert meeting_state(meeting, now=NOW) == "open"
    participants = db.query(Participant).filter(Participant.meeting_id == meeting.id).all()
    assert [(p.name, p.is_host) for p in participants] == [("Olivia", True)]
    assert db.query(Availability).count() == 0
    assert db.query(Suggestion).count() == 0
    assert captured_events[-1] == (
        events.MEETING_RESET,
        {"meeting_id": uid, "kept_participant_id": participants[0].id},
    )


def test_reset_without_host_keeps_earliest_participant(db, two_slot_window):
    meeting = _meeting(db, two_slot_window)
    db.query(Participant).filter(Participant.meeting_id == meeting.id).delete()
    db.commit()
    first = create_participant(db, meeting.unique_id, "First").value
    create_participant(db, meeting.unique_id, "Second")

    assert reset_meeting(db, meeting.unique_id).ok
    remaining = db.query(Participant).filter(Participant.meeting_id == meeting.id).all()
    assert [p.id for p in remaining] == [first.id]


def test_reset_unknown_meeting(db):
    assert reset_meeting(db, "missing").error == ErrorKind.NOT_FOUND


def test_reset_does_not_reopen_closed_meeting(db, two_slot_window):
    meeting = _meeting(db, two_slot_window, voting_deadline=NOW)
    assert reset_meeting(db, meeting.unique_id).ok
    db.expire_all()
    assert meeting_state(get_meeting(db, meeting.unique_id).value, now=NOW) == "closed"


# --- concurrency ---


def test_concurrent_votes_all_land(file_engine, two_slot_window):
    factory = sessionmaker(bind=file_engine, autocommit=False, autoflush=False)
    with factory() as db:
        unique_id = _meeting(db, two_slot_window, premium=True).unique_id

    errors = []

    def vote(i):
        session = factory()
        try:
            outcome = submit_vote(session, unique_id, [NINE, TEN][: 1 + i % 2], make_voter(f"v{i}"), now=NOW)
            if not outcome.ok:
                errors.append(outcome.detail)
        except Exception as e:  # surfaced through the assertion below
            errors.append(repr(e))
        finally:
            session.close()

    threads = [threading.Thread(target=vote, args=(i,)) for i in range(12)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    with factory() as db:
        ledger = meeting_ledger(get_meeting(db, unique_id).value)
    assert ledger.distinct_voter_count() == 12
    assert ledger.count(NINE) == 12
    assert ledger.count(TEN) == 6


def test_write_from_another_process_is_retried(file_engine, two_slot_window, monkeypatch):
    """A concurrent writer bumps the version between our read and our commit; we re-read and re-apply."""
    factory = sessionmaker(bind=file_engine, autocommit=False, autoflush=False)
    with factory() as db:
        unique_id = _meeting(db, two_slot_window).unique_id

    real_meeting_ledger = meeting_service.meeting_ledger
    calls = {"n": 0}

    def racing_meeting_ledger(meeting):
        calls["n"] += 1
        if calls["n"] == 1:
            outsider = make_voter("outsider")
            with file_engine.begin() as conn:
                conn.execute(
                    update(Meeting.__table__)
                    .where(Meeting.__table__.c.unique_id == unique_id)
                    .values(
                        votes={TEN: {"outsider": outsider.to_snapshot()}},
                        version=Meeting.__table__.c.version + 1,
                    )
                )
        return real_meeting_ledger(meeting)

    monkeypatch.setattr(meeting_service, "meeting_ledger", racing_meeting_ledger)

    with factory() as db:
        outcome = submit_vote(db, unique_id, [NINE], make_voter("a"), now=NOW)
        assert outcome.ok
        assert calls["n"] >= 2

    monkeypatch.undo()
    with factory() as db:
        ledger = meeting_ledger(get_meeting(db, unique_id).value)
    assert ledger.distinct_voter_uids() == {"a", "outsider"}
    assert ledger.slots_for("outsider") == [TEN]

