"""Data access helpers for thoughts and reactions."""
from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import ColumnElement, and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mehfil.db.time import utcnow
from mehfil.models import Comment, Reaction, Report, Save, Share, Thought
from mehfil.models.thought import Category, ThoughtStatus

__all__ = ["ReactionToggle", "ThoughtRepository", "visible_clause"]


def visible_clause(now: datetime) -> ColumnElement[bool]:
    """Return the SQL predicate matching thoughts readers may see."""
    return and_(
        Thought.status == ThoughtStatus.APPROVED,
        Thought.category != Category.REJECTED,
        or_(Thought.expires_at.is_(None), Thought.expires_at > now),
    )


@dataclass(frozen=True)
class ReactionToggle:
    """Outcome of flipping a user's reaction on a thought."""

    thought: Thought
    has_reacted: bool
    relatable_count: int


class ThoughtRepository:
    """Thin wrapper around database access for thought entities.

    Methods flush but never commit; the caller owns the unit of work.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with an async SQLAlchemy session."""
        self.session = session

    async def get_by_id(self, thought_id: str) -> Thought | None:
        """Return a thought by identifier regardless of visibility."""
        result = await self.session.execute(select(Thought).where(Thought.id == thought_id))
        return result.scalars().first()

    async def get_visible(self, thought_id: str, now: datetime | None = None) -> Thought | None:
        """Return a thought only if readers may currently see it."""
        now = now or utcnow()
        result = await self.session.execute(
            select(Thought).where(Thought.id == thought_id, visible_clause(now))
        )
        return result.scalars().first()

    async def list_visible(
        self,
        categories: Sequence[Category],
        *,
        offset: int,
        limit: int,
        now: datetime | None = None,
    ) -> list[Thought]:
        """Return visible thoughts in ``categories``, newest first."""
        now = now or utcnow()
        stmt = (
            select(Thought)
            .where(visible_clause(now), Thought.category.in_([c.value for c in categories]))
            .order_by(Thought.created_at.desc(), Thought.id.desc())
            .offset(max(0, offset))
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def list_visible_by_ids(
        self,
        thought_ids: Iterable[str],
        now: datetime | None = None,
    ) -> dict[str, Thought]:
        """Return the visible subset of ``thought_ids`` keyed by id."""
        ids = list(thought_ids)
        if not ids:
            return {}
        now = now or utcnow()
        result = await self.session.execute(
            select(Thought).where(Thought.id.in_(ids), visible_clause(now))
        )
        return {thought.id: thought for thought in result.scalars()}

    async def create(
        self,
        *,
        user_id: str,
        author_name: str,
        author_avatar: str | None,
        is_anonymous: bool,
        content: str,
        image_url: str | None,
        category: Category,
        status: ThoughtStatus,
        requested_room: str | None = None,
        moderation_reason: str | None = None,
        is_toxic: bool = False,
        ai_tags: list[str] | None = None,
        ai_score: float | None = None,
        created_at: datetime | None = None,
        expires_at: datetime | None = None,
    ) -> Thought:
        """Insert a new thought and return the persisted ORM instance."""
        thought = Thought(
            id=str(uuid.uuid4()),
            user_id=user_id,
            author_name=author_name,
            author_avatar=author_avatar,
            is_anonymous=is_anonymous,
            content=content,
            image_url=image_url,
            category=category.value,
            status=status.value,
            requested_room=requested_room,
            moderation_reason=moderation_reason,
            is_toxic=is_toxic,
            ai_tags=list(ai_tags or []),
            ai_score=ai_score,
            relatable_count=0,
            created_at=created_at or utcnow(),
            expires_at=expires_at,
        )
        self.session.add(thought)
        await self.session.flush()
        return thought

    async def update_content(
        self,
        thought: Thought,
        content: str,
        *,
        edited_at: datetime,
        category: Category | None = None,
    ) -> Thought:
        """Replace a thought's content, optionally moving it to a new category."""
        thought.content = content
        thought.edited_at = edited_at
        if category is not None:
            thought.category = category.value
        await self.session.flush()
        return thought

    async def delete(self, thought_id: str) -> bool:
        """Hard-delete a thought together with everything attached to it."""
        for model in (Reaction, Comment, Save, Report, Share):
            await self.session.execute(delete(model).where(model.thought_id == thought_id))
        result = await self.session.execute(delete(Thought).where(Thought.id == thought_id))
        return bool(result.rowcount)

    async def reacted_ids(self, user_id: str, thought_ids: Iterable[str]) -> set[str]:
        """Return the subset of ``thought_ids`` the user has reacted to."""
        ids = list(thought_ids)
        if not ids:
            return set()
        result = await self.session.execute(
            select(Reaction.thought_id).where(
                Reaction.user_id == user_id,
                Reaction.thought_id.in_(ids),
            )
        )
        return set(result.scalars())

    async def count_reactions(self, thought_id: str) -> int:
        result = await self.session.execute(
            select(Reaction.id).where(Reaction.thought_id == thought_id)
        )
        return len(result.all())

    async def toggle_reaction(
        self,
        user_id: str,
        thought_id: str,
        now: datetime | None = None,
    ) -> ReactionToggle | None:
        """Flip the (user, thought) reaction and adjust the stored count by one.

        Returns None when the thought is missing or not visible. The count is
        changed with single conditional UPDATE statements so it never drops
        below zero even when several gateway processes share the table.
        """
        now = now or utcnow()
        thought = await self.get_visible(thought_id, now)
        if thought is None:
            return None

        removed = await self.session.execute(
            delete(Reaction).where(
                Reaction.thought_id == thought_id,
                Reaction.user_id == user_id,
            )
        )
        if removed.rowcount:
            await self.session.execute(
                update(Thought)
                .where(Thought.id == thought_id, Thought.relatable_count > 0)
                .values(relatable_count=Thought.relatable_count - 1)
            )
            has_reacted = False
        else:
            # The unique (thought_id, user_id) constraint rejects a concurrent
            # duplicate before the count is touched.
            self.session.add(
                Reaction(
                    id=str(uuid.uuid4()),
                    thought_id=thought_id,
                    user_id=user_id,
                    created_at=now,
                )
            )
            await self.session.flush()
            await self.session.execute(
                update(Thought)
                .where(Thought.id == thought_id)
                .values(relatable_count=Thought.relatable_count + 1)
            )
            has_reacted = True

        await self.session.refresh(thought, ["relatable_count"])
        return ReactionToggle(
            thought=thought,
            has_reacted=has_reacted,
            relatable_count=thought.relatable_count,
        )
