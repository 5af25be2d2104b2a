"""
Single source of truth for database tables created by migration 001.

Use these names when writing raw SQL. The alembic env asserts the models match this list.
"""
ALL_TABLE_NAMES = (
    "meetings",
    "participants",
    "availabilities",
    "suggestions",
)

# Rows removed when a meeting is reset (meetings row itself is kept, ledger emptied).
RESET_TABLE_NAMES = (
    "availabilities",
    "suggestions",
)
