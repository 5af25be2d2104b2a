"""
Time slot grid for a meeting window (date range x hour range x duration).

This module is the only place slot ids are built or parsed. Ids are pure functions of
(date, start time) so votes stored against them stay valid across regenerations.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence

from slotking.core.constants import (
    MAX_SLOT_DURATION_MINUTES,
    MAX_WINDOW_DAYS,
    MIN_SLOT_DURATION_MINUTES,
    SLOT_ID_DATE_TIME_SEPARATOR,
)


@dataclass(frozen=True)
class SlotWindow:
    start_date: date
    end_date: date
    start_hour: int
    end_hour: int
    slot_duration_minutes: int

    @classmethod
    def from_meeting(cls, meeting) -> "SlotWindow":
        return cls(
            start_date=meeting.start_date,
            end_date=meeting.end_date,
            start_hour=meeting.start_hour,
            end_hour=meeting.end_hour,
            slot_duration_minutes=meeting.slot_duration_minutes,
        )

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "start_hour": self.start_hour,
            "end_hour": self.end_hour,
            "slot_duration_minutes": self.slot_duration_minutes,
        }


@dataclass(frozen=True, order=True)
class TimeSlot:
    # Field order gives canonical (date, time) ordering
    date: date
    time: time
    duration_minutes: int

    @property
    def id(self) -> str:
        return slot_id(self.date, self.time)

    @property
    def end_time(self) -> time:
        end = datetime.combine(self.date, self.time) + timedelta(minutes=self.duration_minutes)
        return end.time()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "time": self.time.strftime("%H:%M"),
            "duration_minutes": self.duration_minutes,
        }


def slot_id(day: date, start: time) -> str:
    """Stable slot key, e.g. '2024-01-01T09:00'."""
    return f"{day.isoformat()}{SLOT_ID_DATE_TIME_SEPARATOR}{start.strftime('%H:%M')}"


def parse_slot_id(value: str) -> tuple[date, time]:
    """Inverse of slot_id. Raises ValueError for anything that is not 'YYYY-MM-DDTHH:MM'."""
    if not isinstance(value, str):
        raise ValueError(f"Slot id must be a string, got {type(value).__name__}")
    day_part, sep, time_part = value.partition(SLOT_ID_DATE_TIME_SEPARATOR)
    if not sep or len(time_part) != 5:
        raise ValueError(f"Invalid slot id {value!r}. Use YYYY-MM-DDTHH:MM.")
    return date.fromisoformat(day_part), time.fromisoformat(time_part)


def validate_window(window: SlotWindow) -> list[str]:
    """Return human-readable problems with the window; empty list when valid."""
    problems: list[str] = []
    if window.end_date < window.start_date:
        problems.append("end_date must not be before start_date")
    elif (window.end_date - window.start_date).days + 1 > MAX_WINDOW_DAYS:
        problems.append(f"window must not span more than {MAX_WINDOW_DAYS} days")
    for name in ("start_hour", "end_hour"):
        hour = getattr(window, name)
        if not 0 <= hour <= 24:
            problems.append(f"{name} must be between 0 and 24")
    if window.end_hour < window.start_hour:
        problems.append("end_hour must not be before start_hour")
    if not MIN_SLOT_DURATION_MINUTES <= window.slot_duration_minutes <= MAX_SLOT_DURATION_MINUTES:
        problems.append(
            f"slot_duration_minutes must be between {MIN_SLOT_DURATION_MINUTES} and {MAX_SLOT_DURATION_MINUTES}"
        )
    return problems


def generate(window: SlotWindow) -> list[TimeSlot]:
    """
    Every slot of the window in canonical (date, time) order.
    Per day: start at start_hour:00 and step by the duration while start < end_hour:00;
    a trailing partial step is truncated. start_hour == end_hour gives an empty list.
    """
    slots: list[TimeSlot] = []
    step = window.slot_duration_minutes
    if step <= 0:
        return slots
    day_start = window.start_hour * 60
    day_end = window.end_hour * 60
    day = window.start_date
    while day <= window.end_date:
        minute = day_start
        while minute < day_end:
            slots.append(TimeSlot(date=day, time=time(minute // 60, minute % 60), duration_minutes=step))
            minute += step
        day += timedelta(days=1)
    return slots


def slot_ids(window: SlotWindow) -> list[str]:
    return [s.id for s in generate(window)]


def unknown_slot_ids(window: SlotWindow, candidate_ids: Iterable[str]) -> list[str]:
    """Ids from candidate_ids that are not in the window, sorted."""
    valid = set(slot_ids(window))
    return sorted({c for c in candidate_ids if c not in valid}, key=str)


def is_slot_id(value: str) -> bool:
    try:
        parse_slot_id(value)
    except ValueError:
        return False
    return True


def invalid_slot_message(unknown: Sequence[str]) -> str:
    """Rejection detail for ids outside the window; malformed ids are called out first."""
    malformed = [c for c in unknown if not is_slot_id(c)]
    if malformed:
        return f"Malformed slot ids (use YYYY-MM-DDTHH:MM): {', '.join(map(str, malformed))}"
    return f"Unknown time slots: {', '.join(unknown)}"


def group_consecutive(slots: Sequence[TimeSlot]) -> list[dict]:
    """
    Merge back-to-back slots of the same day into blocks:
    [{date, start, end, slot_count}], in canonical order. Used for "3 slots in 2 blocks" summaries.
    """
    blocks: list[dict] = []
    current: dict | None = None
    for s in sorted(set(slots)):
        if (
            current is not None
            and current["date"] == s.date
            and current["end"] == s.time
        ):
            current["end"] = s.end_time
            current["slot_count"] += 1
            continue
        if current is not None:
            blocks.append(current)
        current = {"date": s.date, "start": s.time, "end": s.end_time, "slot_count": 1}
    if current is not None:
        blocks.append(current)
    return [
        {
            "date": b["date"].isoformat(),
            "start": b["start"].strftime("%H:%M"),
            "end": b["end"].strftime("%H:%M"),
            "slot_count": b["slot_count"],
        }
        for b in blocks
    ]
