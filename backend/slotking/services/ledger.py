"""
Vote ledger: per meeting, slot id -> {uid -> voter snapshot}.

Invariants:
  - a uid is listed under a slot iff that voter currently selects the slot;
  - submit() is a full replace of the voter's previous selection (no merge);
  - the distinct voter count is the size of the union of uids over all slots.
Empty slots are dropped so the stored document only holds slots with votes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable


@dataclass(frozen=True)
class Voter:
    """Resolved identity of whoever casts votes; snapshot is denormalized into the ledger at vote time."""

    uid: str
    display_name: str
    photo_url: str
    is_guest: bool = False
    weight: int = 1
    # Opaque to aggregation; stored with the snapshot as-is
    annotations: dict[str, Any] | None = field(default=None, compare=False, hash=False)

    def to_snapshot(self) -> dict[str, Any]:
        snap: dict[str, Any] = {
            "uid": self.uid,
            "display_name": self.display_name,
            "photo_url": self.photo_url,
            "is_guest": self.is_guest,
            "weight": self.weight,
        }
        if self.annotations:
            snap["annotations"] = dict(self.annotations)
        return snap

    @classmethod
    def from_snapshot(cls, snap: dict[str, Any]) -> "Voter":
        return cls(
            uid=str(snap["uid"]),
            display_name=snap.get("display_name") or "",
            photo_url=snap.get("photo_url") or "",
            is_guest=bool(snap.get("is_guest", False)),
            weight=int(snap.get("weight") or 1),
            annotations=snap.get("annotations"),
        )


class VoteLedger:
    """Mutable in-memory view of a meeting's votes document. Callers serialize writes per meeting."""

    __slots__ = ("_slots",)

    def __init__(self, slots: dict[str, dict[str, Voter]] | None = None):
        self._slots: dict[str, dict[str, Voter]] = {}
        for sid, voters in (slots or {}).items():
            if voters:
                self._slots[sid] = dict(voters)

    # --- storage ---

    @classmethod
    def from_document(cls, doc: dict[str, dict[str, dict]] | None) -> "VoteLedger":
        """Build from the stored JSON document {slot_id: {uid: snapshot}}. Tolerates None/empty."""
        slots: dict[str, dict[str, Voter]] = {}
        for sid, by_uid in (doc or {}).items():
            if not isinstance(by_uid, dict):
                continue
            voters = {}
            for uid, snap in by_uid.items():
                if isinstance(snap, dict):
                    voters[uid] = Voter.from_snapshot({**snap, "uid": uid})
            if voters:
                slots[sid] = voters
        return cls(slots)

    def to_document(self) -> dict[str, dict[str, dict]]:
        """Fresh dict (never shares structure with the ledger) with slots and uids sorted."""
        return {
            sid: {uid: self._slots[sid][uid].to_snapshot() for uid in sorted(self._slots[sid])}
            for sid in sorted(self._slots)
        }

    # --- writes ---

    def submit(self, slot_ids: Iterable[str], voter: Voter) -> "VoteLedger":
        """Replace voter's whole selection with slot_ids. Empty slot_ids clears the voter. Returns self."""
        selected = set(slot_ids)
        self._remove_uid(voter.uid)
        for sid in selected:
            self._slots.setdefault(sid, {})[voter.uid] = voter
        return self

    def clear(self, voter_uid: str) -> "VoteLedger":
        self._remove_uid(voter_uid)
        return self

    def prune(self, valid_slot_ids: Iterable[str]) -> list[str]:
        """Drop slots that are no longer in the meeting window. Returns the removed slot ids."""
        valid = set(valid_slot_ids)
        stale = sorted(sid for sid in self._slots if sid not in valid)
        for sid in stale:
            del self._slots[sid]
        return stale

    def _remove_uid(self, uid: str) -> None:
        for sid in list(self._slots):
            voters = self._slots[sid]
            if uid in voters:
                del voters[uid]
                if not voters:
                    del self._slots[sid]

    # --- reads ---

    def voters_for(self, slot_id: str) -> list[Voter]:
        """Voters on the slot, ordered by uid."""
        voters = self._slots.get(slot_id) or {}
        return [voters[uid] for uid in sorted(voters)]

    def count(self, slot_id: str) -> int:
        return len(self._slots.get(slot_id) or ())

    def distinct_voter_uids(self) -> set[str]:
        uids: set[str] = set()
        for voters in self._slots.values():
            uids.update(voters)
        return uids

    def distinct_voter_count(self) -> int:
        return len(self.distinct_voter_uids())

    def has_voter(self, uid: str) -> bool:
        return any(uid in voters for voters in self._slots.values())

    def slots_for(self, uid: str) -> list[str]:
        """Slot ids currently selected by uid, sorted (canonical order)."""
        return sorted(sid for sid, voters in self._slots.items() if uid in voters)

    def slot_ids(self) -> list[str]:
        """Slot ids with at least one vote, sorted."""
        return sorted(self._slots)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VoteLedger):
            return NotImplemented
        return self.to_document() == other.to_document()

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return f"VoteLedger(slots={len(self._slots)}, voters={self.distinct_voter_count()})"
