"""
Domain events emitted after a successful mutation. Transports (WebSocket, pub/sub) subscribe here.

Fire-and-forget, at-most-once: a failing handler is logged and never fails the mutation.
"""
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

PARTICIPANT_JOINED = "participant_joined"
AVAILABILITY_UPDATED = "availability_updated"
VOTE_SUBMITTED = "vote_submitted"
MEETING_RESET = "meeting_reset"
SUGGESTION_ADDED = "suggestion_added"

EVENT_TYPES = (
    PARTICIPANT_JOINED,
    AVAILABILITY_UPDATED,
    VOTE_SUBMITTED,
    MEETING_RESET,
    SUGGESTION_ADDED,
)

Handler = Callable[[str, dict[str, Any]], None]

_handlers: list[Handler] = []


def subscribe(handler: Handler) -> None:
    """Register a handler(event_type, payload) for every event."""
    if handler not in _handlers:
        _handlers.append(handler)
        logger.info("Subscribed event handler: %s", getattr(handler, "__name__", handler))


def unsubscribe(handler: Handler) -> None:
    if handler in _handlers:
        _handlers.remove(handler)


def publish(event_type: str, meeting_id: str, **payload: Any) -> dict[str, Any]:
    """Deliver {meeting_id, ...payload} to all handlers. Returns the message that was sent."""
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {event_type}. Available: {list(EVENT_TYPES)}")
    message = {"meeting_id": meeting_id, **payload}
    logger.debug("event %s meeting=%s", event_type, meeting_id)
    for handler in list(_handlers):
        try:
            handler(event_type, message)
        except Exception as e:
            logger.warning("Event handler failed for %s (meeting=%s): %s", event_type, meeting_id, e, exc_info=True)
    return message
