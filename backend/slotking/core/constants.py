"""
Centralized constants for meetings, slots and voting (Encapsulate What Changes).

Change limits or identifiers here instead of scattering literals across services and routes.
"""

# Slot ids are "YYYY-MM-DDTHH:MM"; lexicographic order equals chronological order
SLOT_ID_DATE_TIME_SEPARATOR = "T"

# Window bounds (validated on create)
MAX_WINDOW_DAYS = 90
MIN_SLOT_DURATION_MINUTES = 1
MAX_SLOT_DURATION_MINUTES = 24 * 60
MAX_TITLE_LENGTH = 200
MAX_NAME_LENGTH = 100

# Public share token alphabet (same character set nanoid uses)
UNIQUE_ID_ALPHABET = "_-0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
UNIQUE_ID_MAX_ATTEMPTS = 5

# Identity
GUEST_UID_PREFIX = "guest-"
# Reserved for organizer-flow participants when both flows are aggregated together
PARTICIPANT_UID_PREFIX = "participant-"
GUEST_NAME_PREFIX = "Guest-"
ANONYMOUS_DISPLAY_NAME = "Anonymous"
AVATAR_URL_TEMPLATE = "https://api.dicebear.com/7.x/thumbs/svg?seed={seed}"

# Concurrent writers: re-read and re-apply a vote this many times on a stale version
VOTE_WRITE_MAX_ATTEMPTS = 3

# Suggestions / ranking
DEFAULT_SUGGESTION_RESULTS = 5
DEFAULT_SUGGESTED_BY = "system"
MAX_RANK_RESULTS = 500

# Meeting states (derived from voting_deadline on every read)
STATE_OPEN = "open"
STATE_CLOSED = "closed"
