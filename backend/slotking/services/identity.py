"""
Voter identities. Authentication happens elsewhere; here we only normalize the resolved
{uid, display_name, photo_url, is_guest} shape and mint guest identities.
"""
import secrets
import string
from urllib.parse import quote

from slotking.core.constants import (
    ANONYMOUS_DISPLAY_NAME,
    AVATAR_URL_TEMPLATE,
    GUEST_NAME_PREFIX,
    GUEST_UID_PREFIX,
    PARTICIPANT_UID_PREFIX,
)
from slotking.services.ledger import Voter

_GUEST_ID_ALPHABET = string.ascii_lowercase + string.digits
_GUEST_ID_LENGTH = 8


def avatar_url(seed: str) -> str:
    return AVATAR_URL_TEMPLATE.format(seed=quote(seed or ANONYMOUS_DISPLAY_NAME, safe=""))


def is_guest_uid(uid: str) -> bool:
    return (uid or "").startswith(GUEST_UID_PREFIX)


def is_reserved_uid(uid: str) -> bool:
    """Participant uids are minted server-side; a voter may not claim one."""
    return (uid or "").startswith(PARTICIPANT_UID_PREFIX)


def resolve_voter(
    uid: str,
    display_name: str | None = None,
    photo_url: str | None = None,
    is_guest: bool | None = None,
    weight: int = 1,
    annotations: dict | None = None,
) -> Voter:
    """
    Normalize an identity from the auth layer. Missing name -> 'Anonymous'; missing photo ->
    generated avatar seeded by the name. is_guest defaults to the uid prefix.
    """
    uid = (uid or "").strip()
    if not uid:
        raise ValueError("uid is required")
    if is_reserved_uid(uid):
        raise ValueError(f"uid must not start with {PARTICIPANT_UID_PREFIX!r}")
    name = (display_name or "").strip() or ANONYMOUS_DISPLAY_NAME
    return Voter(
        uid=uid,
        display_name=name,
        photo_url=(photo_url or "").strip() or avatar_url(name),
        is_guest=is_guest_uid(uid) if is_guest is None else is_guest,
        weight=max(1, int(weight or 1)),
        annotations=annotations or None,
    )


def new_guest_identity() -> Voter:
    """Fresh guest: uid 'guest-xxxxxxxx', name 'Guest-xxxxxxxx'. The client persists it locally."""
    suffix = "".join(secrets.choice(_GUEST_ID_ALPHABET) for _ in range(_GUEST_ID_LENGTH))
    name = f"{GUEST_NAME_PREFIX}{suffix}"
    return Voter(
        uid=f"{GUEST_UID_PREFIX}{suffix}",
        display_name=name,
        photo_url=avatar_url(name),
        is_guest=True,
    )
