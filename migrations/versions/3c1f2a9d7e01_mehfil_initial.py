"""mehfil initial schema

Revision ID: 3c1f2a9d7e01
Revises:
Create Date: 2026-10-18 09:12:44.310582

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1f2a9d7e01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _thought_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["thought_id"], ["mehfil_thought.id"], ondelete="CASCADE")


def upgrade() -> None:
    """Create the Mehfil tables."""
    op.create_table(
        "mehfil_user",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("avatar", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("spam_strike_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_shadow_banned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ban_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("banned_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("banned_forever", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ban_reason", sa.Text(), nullable=True),
        sa.Column("banned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "is_moderation_exempt", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("post_ttl_minutes", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "mehfil_thought",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("author_name", sa.Text(), nullable=False),
        sa.Column("author_avatar", sa.Text(), nullable=True),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=16), nullable=False),
        sa.Column("requested_room", sa.String(length=16), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("moderation_reason", sa.Text(), nullable=True),
        sa.Column("is_toxic", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ai_tags", sa.JSON(), nullable=False),
        sa.Column("ai_score", sa.Float(), nullable=True),
        sa.Column("relatable_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_mehfil_thought_feed", "mehfil_thought", ["category", "status", "created_at"]
    )
    op.create_index("ix_mehfil_thought_user_id", "mehfil_thought", ["user_id"])
    op.create_index("ix_mehfil_thought_expires_at", "mehfil_thought", ["expires_at"])

    op.create_table(
        "mehfil_reaction",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("thought_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        _thought_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("thought_id", "user_id", name="uq_mehfil_reaction_thought_user"),
    )
    op.create_table(
        "mehfil_comment",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("thought_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        _thought_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_mehfil_comment_thought_id", "mehfil_comment", ["thought_id"])

    op.create_table(
        "mehfil_save",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("thought_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        _thought_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "thought_id", name="uq_mehfil_save_user_thought"),
    )
    op.create_table(
        "mehfil_report",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("thought_id", sa.String(length=36), nullable=False),
        sa.Column("reporter_id", sa.String(length=64), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actioned_at", sa.DateTime(timezone=True), nullable=True),
        _thought_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_mehfil_report_thought_reporter", "mehfil_report", ["thought_id", "reporter_id"]
    )

    op.create_table(
        "mehfil_share",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("thought_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("platform", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        _thought_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_mehfil_share_thought_id", "mehfil_share", ["thought_id"])


def downgrade() -> None:
    """Drop the Mehfil tables."""
    op.drop_index("ix_mehfil_share_thought_id", table_name="mehfil_share")
    op.drop_table("mehfil_share")
    op.drop_index("ix_mehfil_report_thought_reporter", table_name="mehfil_report")
    op.drop_table("mehfil_report")
    op.drop_table("mehfil_save")
    op.drop_index("ix_mehfil_comment_thought_id", table_name="mehfil_comment")
    op.drop_table("mehfil_comment")
    op.drop_table("mehfil_reaction")
    op.drop_index("ix_mehfil_thought_expires_at", table_name="mehfil_thought")
    op.drop_index("ix_mehfil_thought_user_id", table_name="mehfil_thought")
    op.drop_index("ix_mehfil_thought_feed", table_name="mehfil_thought")
    op.drop_table("mehfil_thought")
    op.drop_table("mehfil_user")
