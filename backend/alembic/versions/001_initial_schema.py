"""Initial schema: meetings (with votes document), participants, availabilities, suggestions

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "meetings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("unique_id", sa.String(32), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("organizer_name", sa.String(100), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("start_hour", sa.Integer(), nullable=False),
        sa.Column("end_hour", sa.Integer(), nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("voting_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_distinct_voters", sa.Integer(), nullable=True),
        sa.Column("creator_uid", sa.String(128), nullable=True),
        sa.Column("creator_display_name", sa.String(100), nullable=True),
        sa.Column("creator_photo_url", sa.String(512), nullable=True),
        sa.Column("votes", _JSON, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_meetings_unique_id", "meetings", ["unique_id"], unique=True)
    op.create_index("ix_meetings_creator_uid", "meetings", ["creator_uid"])

    op.create_table(
        "participants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("meeting_id", sa.Integer(), sa.ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_host", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_participants_meeting_id", "participants", ["meeting_id"])

    op.create_table(
        "availabilities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "participant_id", sa.Integer(), sa.ForeignKey("participants.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("meeting_id", sa.Integer(), sa.ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("time_slots", _JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_availabilities_participant_id", "availabilities", ["participant_id"], unique=True)
    op.create_index("ix_availabilities_meeting_id", "availabilities", ["meeting_id"])

    op.create_table(
        "suggestions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("meeting_id", sa.Integer(), sa.ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("suggested_by", sa.String(128), nullable=False),
        sa.Column("suggested_slots", _JSON, nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("metadata", _JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_suggestions_meeting_id", "suggestions", ["meeting_id"])


def downgrade() -> None:
    op.drop_index("ix_suggestions_meeting_id", table_name="suggestions")
    op.drop_table("suggestions")
    op.drop_index("ix_availabilities_meeting_id", table_name="availabilities")
    op.drop_index("ix_availabilities_participant_id", table_name="availabilities")
    op.drop_table("availabilities")
    op.drop_index("ix_participants_meeting_id", table_name="participants")
    op.drop_table("participants")
    op.drop_index("ix_meetings_creator_uid", table_name="meetings")
    op.drop_index("ix_meetings_unique_id", table_name="meetings")
    op.drop_table("meetings")
