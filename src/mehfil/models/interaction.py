"""Models for the lightweight interactions that sit beside the feed."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mehfil.db.session import Base
from mehfil.db.time import UTCDateTime, utcnow


class ReportStatus(StrEnum):
    """Processing state of a report."""

    PENDING = "pending"
    ACTIONED = "actioned"


class Comment(Base):
    """Plain-text reply attached to a thought."""

    __tablename__ = "mehfil_comment"
    __table_args__ = (Index("ix_mehfil_comment_thought_id", "thought_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    thought_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mehfil_thought.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class Save(Base):
    """Bookmark of a thought by a user."""

    __tablename__ = "mehfil_save"
    __table_args__ = (
        UniqueConstraint("user_id", "thought_id", name="uq_mehfil_save_user_thought"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    thought_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mehfil_thought.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class Report(Base):
    """Peer report against a thought; distinct reporters drive posting bans."""

    __tablename__ = "mehfil_report"
    __table_args__ = (Index("ix_mehfil_report_thought_reporter", "thought_id", "reporter_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    thought_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mehfil_thought.id", ondelete="CASCADE"),
        nullable=False,
    )
    reporter_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ReportStatus.PENDING)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    actioned_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class Share(Base):
    """Audit row recording that a thought was shared externally."""

    __tablename__ = "mehfil_share"
    __table_args__ = (Index("ix_mehfil_share_thought_id", "thought_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    thought_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mehfil_thought.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    platform: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
