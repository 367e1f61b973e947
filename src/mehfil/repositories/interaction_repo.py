"""Data access helpers for comments, saves, reports and shares."""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mehfil.db.time import utcnow
from mehfil.models import (
    Comment,
    Reaction,
    Report,
    ReportStatus,
    Save,
    Share,
    Thought,
    ThoughtStatus,
    User,
)

__all__ = ["InteractionRepository", "UserActivity"]


@dataclass(frozen=True)
class UserActivity:
    """Per-user interaction totals."""

    total_thoughts: int
    total_reactions: int
    total_comments: int
    total_saves: int
    total_shares: int
    joined_at: datetime | None


class InteractionRepository:
    """Database access for the interactions that sit beside the feed."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with an async SQLAlchemy session."""
        self.session = session

    async def list_comments(self, thought_id: str) -> list[tuple[Comment, User | None]]:
        """Return comments on a thought, oldest first, with their authors."""
        result = await self.session.execute(
            select(Comment, User)
            .join(User, User.id == Comment.user_id, isouter=True)
            .where(Comment.thought_id == thought_id)
            .order_by(Comment.created_at.asc())
        )
        return [(comment, user) for comment, user in result.all()]

    async def add_comment(self, thought_id: str, user_id: str, content: str) -> Comment:
        comment = Comment(
            id=str(uuid.uuid4()),
            thought_id=thought_id,
            user_id=user_id,
            content=content,
            created_at=utcnow(),
        )
        self.session.add(comment)
        await self.session.flush()
        return comment

    async def toggle_save(self, user_id: str, thought_id: str) -> bool:
        """Flip a bookmark and return whether the thought is now saved."""
        removed = await self.session.execute(
            delete(Save).where(Save.user_id == user_id, Save.thought_id == thought_id)
        )
        if removed.rowcount:
            return False
        self.session.add(
            Save(id=str(uuid.uuid4()), user_id=user_id, thought_id=thought_id, created_at=utcnow())
        )
        await self.session.flush()
        return True

    async def is_saved(self, user_id: str, thought_id: str) -> bool:
        result = await self.session.execute(
            select(Save.id).where(Save.user_id == user_id, Save.thought_id == thought_id)
        )
        return result.first() is not None

    async def list_saves(self, user_id: str) -> list[Save]:
        """Return the user's bookmarks, most recent first."""
        result = await self.session.execute(
            select(Save).where(Save.user_id == user_id).order_by(Save.created_at.desc())
        )
        return list(result.scalars())

    async def add_report(self, thought_id: str, reporter_id: str, reason: str) -> Report:
        report = Report(
            id=str(uuid.uuid4()),
            thought_id=thought_id,
            reporter_id=reporter_id,
            reason=reason,
            status=ReportStatus.PENDING.value,
            created_at=utcnow(),
        )
        self.session.add(report)
        await self.session.flush()
        return report

    async def count_pending_reporters(self, thought_id: str) -> int:
        """Return the number of distinct users with a pending report on a thought."""
        result = await self.session.execute(
            select(func.count(func.distinct(Report.reporter_id))).where(
                Report.thought_id == thought_id,
                Report.status == ReportStatus.PENDING,
            )
        )
        return int(result.scalar_one())

    async def mark_reports_actioned(self, thought_id: str, now: datetime) -> int:
        """Close every pending report on a thought so it is not reprocessed."""
        result = await self.session.execute(
            update(Report)
            .where(Report.thought_id == thought_id, Report.status == ReportStatus.PENDING)
            .values(status=ReportStatus.ACTIONED.value, actioned_at=now)
        )
        return int(result.rowcount or 0)

    async def log_share(self, thought_id: str, user_id: str, platform: str | None) -> Share:
        share = Share(
            id=str(uuid.uuid4()),
            thought_id=thought_id,
            user_id=user_id,
            platform=platform,
            created_at=utcnow(),
        )
        self.session.add(share)
        await self.session.flush()
        return share

    async def activity_for(self, user_id: str) -> UserActivity:
        """Return interaction totals for ``user_id``."""

        async def _count(model: type, column, *extra) -> int:  # type: ignore[no-untyped-def]
            result = await self.session.execute(
                select(func.count()).select_from(model).where(column == user_id, *extra)
            )
            return int(result.scalar_one())

        user = await self.session.get(User, user_id)
        return UserActivity(
            total_thoughts=await _count(
                Thought, Thought.user_id, Thought.status == ThoughtStatus.APPROVED
            ),
            total_reactions=await _count(Reaction, Reaction.user_id),
            total_comments=await _count(Comment, Comment.user_id),
            total_saves=await _count(Save, Save.user_id),
            total_shares=await _count(Share, Share.user_id),
            joined_at=user.created_at if user is not None else None,
        )
