"""SQLAlchemy model for the moderation state attached to a portal user."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mehfil.db.session import Base
from mehfil.db.time import UTCDateTime, utcnow

PERMANENT_BAN_LEVEL = 3


class User(Base):
    """Mirror of a portal identity plus the fields Mehfil moderation owns.

    Identity (id, name, avatar) is refreshed on every socket registration;
    everything else is mutated only through conditional updates in
    :class:`mehfil.repositories.user_repo.UserRepository`.
    """

    __tablename__ = "mehfil_user"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    # Spam strikes -> shadow ban track.
    spam_strike_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_shadow_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Reports -> posting ban track. Level 3 is permanent.
    ban_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    banned_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    banned_forever: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ban_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    banned_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    is_moderation_exempt: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Optional expiry applied to every approved post by this author.
    post_ttl_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
