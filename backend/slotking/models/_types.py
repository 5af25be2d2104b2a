"""Column types shared by models: JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)."""
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

JSONDocument = JSON().with_variant(JSONB(), "postgresql")
