"""
Centralized error handling for meeting/vote operations.

Services return an Outcome instead of raising for expected business results
(voting closed, cap reached, unknown slot, ...). Routes turn a failed Outcome
into an HTTPException through ERROR_RULES so status codes live in one place.
Unexpected failures (database down) are not Outcomes; they propagate.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from fastapi import HTTPException

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_SLOT = "invalid_slot"
    VOTING_CLOSED = "voting_closed"
    CAP_EXCEEDED = "cap_exceeded"
    HOST_ALREADY_ASSIGNED = "host_already_assigned"
    VALIDATION_ERROR = "validation_error"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a service call: either value or error (with a human-readable detail)."""

    value: T | None = None
    error: ErrorKind | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, detail: str) -> "Outcome[T]":
        return cls(error=error, detail=detail)


# ---------------------------------------------------------------------------
# HTTP mapping: (status_code, default message). Add new kinds here.
# ---------------------------------------------------------------------------

STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_FORBIDDEN = 403
STATUS_BAD_REQUEST = 400
STATUS_UNPROCESSABLE = 422

ERROR_RULES: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.NOT_FOUND: (STATUS_NOT_FOUND, "Not found"),
    ErrorKind.INVALID_SLOT: (STATUS_UNPROCESSABLE, "Time slot is not part of this meeting"),
    ErrorKind.VOTING_CLOSED: (STATUS_CONFLICT, "Voting for this meeting is closed"),
    ErrorKind.CAP_EXCEEDED: (STATUS_FORBIDDEN, "This meeting has reached its voter limit"),
    ErrorKind.HOST_ALREADY_ASSIGNED: (STATUS_CONFLICT, "This meeting already has a host"),
    ErrorKind.VALIDATION_ERROR: (STATUS_BAD_REQUEST, "Invalid input"),
}


def outcome_to_http(outcome: Outcome) -> HTTPException:
    """Map a failed Outcome to an HTTPException; detail carries the machine-readable kind."""
    status_code, default_message = ERROR_RULES[outcome.error]
    return HTTPException(
        status_code=status_code,
        detail={"error": outcome.error.value, "message": outcome.detail or default_message},
    )


def unwrap(outcome: Outcome[T]) -> T:
    """Return the value of a successful Outcome or raise the mapped HTTPException."""
    if not outcome.ok:
        raise outcome_to_http(outcome)
    return outcome.value
