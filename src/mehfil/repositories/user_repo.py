"""Data access helpers for user moderation state.

Every state transition is a single conditional UPDATE so that two gateway
processes racing on the same author cannot double-escalate or lose a strike.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mehfil.models import User

__all__ = ["UserRepository"]


class UserRepository:
    """Thin wrapper around database access for :class:`User` rows."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with an async SQLAlchemy session."""
        self.session = session

    async def get(self, user_id: str) -> User | None:
        """Return the user with ``user_id`` or None."""
        return await self.session.get(User, user_id)

    async def refresh(self, user: User) -> User:
        """Reload ``user`` from the database after conditional updates."""
        await self.session.refresh(user)
        return user

    async def ensure(self, user_id: str, name: str, avatar: str | None) -> User:
        """Return the user, creating it or refreshing its display identity."""
        user = await self.get(user_id)
        if user is None:
            user = User(id=user_id, name=name, avatar=avatar)
            self.session.add(user)
        else:
            user.name = name
            user.avatar = avatar
        await self.session.flush()
        return user

    async def increment_strikes(self, user_id: str) -> int:
        """Atomically add one spam strike and return the new total."""
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(spam_strike_count=User.spam_strike_count + 1)
        )
        result = await self.session.execute(
            select(User.spam_strike_count).where(User.id == user_id)
        )
        return int(result.scalar_one_or_none() or 0)

    async def shadow_ban_if_over(self, user_id: str, threshold: int) -> bool:
        """Set the shadow-ban flag once strikes reach ``threshold``.

        Returns True only for the call that actually flipped the flag.
        """
        result = await self.session.execute(
            update(User)
            .where(
                User.id == user_id,
                User.spam_strike_count >= threshold,
                User.is_shadow_banned.is_(False),
            )
            .values(is_shadow_banned=True)
        )
        return bool(result.rowcount)

    async def clear_expired_ban(self, user_id: str, now: datetime) -> bool:
        """Drop a timed ban whose expiry has passed; the level is kept."""
        result = await self.session.execute(
            update(User)
            .where(
                User.id == user_id,
                User.banned_forever.is_(False),
                User.banned_until.is_not(None),
                User.banned_until <= now,
            )
            .values(banned_until=None)
        )
        return bool(result.rowcount)

    async def apply_ban(
        self,
        user_id: str,
        *,
        expected_level: int,
        new_level: int,
        banned_until: datetime | None,
        forever: bool,
        reason: str,
        now: datetime,
    ) -> bool:
        """Move the author from ``expected_level`` to ``new_level``.

        Compare-and-set on the current level: returns False if another
        escalation already moved the author.
        """
        result = await self.session.execute(
            update(User)
            .where(
                User.id == user_id,
                User.ban_level == expected_level,
                User.banned_forever.is_(False),
            )
            .values(
                ban_level=new_level,
                banned_until=banned_until,
                banned_forever=forever,
                ban_reason=reason,
                banned_at=now,
            )
        )
        return bool(result.rowcount)
