"""Guest identities for voters without an account. The client stores the returned identity locally."""
from fastapi import APIRouter

from slotking.services.identity import new_guest_identity

router = APIRouter()


@router.post("/guests", status_code=201)
def create_guest() -> dict:
    return new_guest_identity().to_snapshot()
