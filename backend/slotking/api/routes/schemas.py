"""Request bodies shared by the meeting routes."""
from typing import Any

from pydantic import BaseModel, Field, field_validator

from slotking.services.identity import is_reserved_uid, resolve_voter
from slotking.services.ledger import Voter


class VoterBody(BaseModel):
    """Identity resolved by the auth layer (or a locally stored guest identity)."""

    uid: str = Field(..., min_length=1, max_length=128)
    display_name: str | None = Field(None, max_length=100)
    photo_url: str | None = Field(None, max_length=512)
    is_guest: bool | None = None

    @field_validator("uid", mode="after")
    @classmethod
    def strip_uid(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("uid must not be blank")
        if is_reserved_uid(v):
            raise ValueError("uid is reserved for meeting participants")
        return v

    def to_voter(self, weight: int = 1, annotations: dict[str, Any] | None = None) -> Voter:
        return resolve_voter(
            self.uid,
            display_name=self.display_name,
            photo_url=self.photo_url,
            is_guest=self.is_guest,
            weight=weight,
            annotations=annotations,
        )
