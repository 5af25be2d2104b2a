from slotking.models.availability import Availability
from slotking.models.meeting import Meeting
from slotking.models.participant import Participant
from slotking.models.suggestion import Suggestion

__all__ = [
    "Availability",
    "Meeting",
    "Participant",
    "Suggestion",
]
