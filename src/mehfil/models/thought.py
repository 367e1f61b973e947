"""SQLAlchemy models for thoughts and their reactions."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mehfil.db.session import Base
from mehfil.db.time import UTCDateTime, utcnow

ANONYMOUS_AUTHOR_NAME = "Anonymous User"


class Category(StrEnum):
    """Closed set of classifier outcomes stored on every thought."""

    ACADEMIC = "ACADEMIC"
    REFLECTIVE = "REFLECTIVE"
    REJECTED = "REJECTED"


class ThoughtStatus(StrEnum):
    """Lifecycle status; flagged rows are kept for audit only."""

    APPROVED = "approved"
    FLAGGED = "flagged"


class Thought(Base):
    """A single post in the Mehfil feed.

    The true author id is always stored, even for anonymous posts, so edit,
    delete and moderation decisions can be attributed. Anonymity is applied
    when the row is serialized for readers.
    """

    __tablename__ = "mehfil_thought"
    __table_args__ = (
        Index("ix_mehfil_thought_feed", "category", "status", "created_at"),
        Index("ix_mehfil_thought_user_id", "user_id"),
        Index("ix_mehfil_thought_expires_at", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    author_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author_avatar: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[str] = mapped_column(String(16), nullable=False, default=Category.ACADEMIC)
    # Room the author submitted into; the classifier decides the real room.
    requested_room: Mapped[str | None] = mapped_column(String(16), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ThoughtStatus.APPROVED)

    # Classifier output; the rationale is never shown to the author.
    moderation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_toxic: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ai_tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    ai_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    relatable_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    edited_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    # Soft deletion by time: rows past expiry are excluded from every read.
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    def is_visible(self, now: datetime) -> bool:
        """Return True if readers may see this thought at ``now``."""
        if self.status != ThoughtStatus.APPROVED:
            return False
        if self.category == Category.REJECTED:
            return False
        return self.expires_at is None or self.expires_at > now


class Reaction(Base):
    """A "relatable" reaction; the row's existence is the signal."""

    __tablename__ = "mehfil_reaction"
    __table_args__ = (
        UniqueConstraint("thought_id", "user_id", name="uq_mehfil_reaction_thought_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    thought_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mehfil_thought.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
