"""Read and author-side write operations on the Mehfil feed."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from mehfil.core.errors import (
    ContentValidationError,
    ModerationRejectedError,
    ThoughtNotFoundError,
    ThoughtPermissionError,
)
from mehfil.core.settings import Settings, settings as default_settings
from mehfil.db.time import utcnow
from mehfil.models import Category, Thought
from mehfil.repositories.thought_repo import ReactionToggle, ThoughtRepository
from mehfil.services.classifier import ContentClassifier
from mehfil.services.moderation import GUIDELINES_MESSAGE
from mehfil.services.rooms import FeedView, categories_for_view

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedPage:
    """One page of visible thoughts for a feed view."""

    thoughts: list[Thought]
    page: int
    has_more: bool
    reacted_ids: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class EditOutcome:
    """An applied edit and the category the thought had before it."""

    thought: Thought
    previous_category: Category

    @property
    def moved(self) -> bool:
        return Category(self.thought.category) != self.previous_category


class FeedService:
    """Feed pagination, reactions, edits and deletes.

    Like :class:`~mehfil.services.moderation.ModerationService` this flushes
    but never commits.
    """

    def __init__(
        self,
        session: AsyncSession,
        classifier: ContentClassifier | None = None,
        config: Settings | None = None,
    ) -> None:
        self.session = session
        self.classifier = classifier
        self.config = config or default_settings
        self.thoughts = ThoughtRepository(session)

    def clamp_limit(self, limit: int | None) -> int:
        """Apply the default page size and the hard cap."""
        if not limit or limit < 1:
            return self.config.feed_page_size
        return min(limit, self.config.feed_page_size_max)

    async def load_page(
        self,
        view: FeedView,
        *,
        page: int = 1,
        limit: int | None = None,
        viewer_id: str | None = None,
        now: datetime | None = None,
    ) -> FeedPage:
        """Return a newest-first page for ``view``.

        Pages start at 1. One extra row is fetched to decide ``has_more``.
        """
        page = max(1, page)
        size = self.clamp_limit(limit)
        rows = await self.thoughts.list_visible(
            categories_for_view(view),
            offset=(page - 1) * size,
            limit=size + 1,
            now=now,
        )
        has_more = len(rows) > size
        rows = rows[:size]
        reacted: set[str] = set()
        if viewer_id:
            reacted = await self.thoughts.reacted_ids(viewer_id, [row.id for row in rows])
        return FeedPage(thoughts=rows, page=page, has_more=has_more, reacted_ids=reacted)

    async def toggle_reaction(
        self,
        user_id: str,
        thought_id: str,
        now: datetime | None = None,
    ) -> ReactionToggle:
        """Flip the user's reaction on a visible thought.

        Raises:
            ThoughtNotFoundError: If the thought is missing or hidden.
        """
        toggle = await self.thoughts.toggle_reaction(user_id, thought_id, now)
        if toggle is None:
            raise ThoughtNotFoundError()
        return toggle

    async def _authored(self, user_id: str, thought_id: str) -> Thought:
        thought = await self.thoughts.get_visible(thought_id)
        if thought is None:
            raise ThoughtNotFoundError()
        if thought.user_id != user_id:
            raise ThoughtPermissionError("You can only change your own thoughts")
        return thought

    async def edit_thought(
        self,
        user_id: str,
        thought_id: str,
        content: str,
        now: datetime | None = None,
    ) -> EditOutcome:
        """Replace the content of the author's own visible thought.

        Length bounds are always re-checked. The classifier only runs when
        ``RECLASSIFY_ON_EDIT`` is enabled; a rejected edit is refused and the
        stored thought is left untouched.

        Raises:
            ThoughtNotFoundError: If the thought is missing or hidden.
            ThoughtPermissionError: If ``user_id`` is not the true author.
            ContentValidationError: If the new content is out of bounds.
            ModerationRejectedError: If reclassification rejects the edit.
        """
        now = now or utcnow()
        thought = await self._authored(user_id, thought_id)
        text = content.strip()
        if len(text) < self.config.min_content_length:
            raise ContentValidationError(
                f"Thought must be at least {self.config.min_content_length} characters"
            )
        if len(text) > self.config.max_content_length:
            raise ContentValidationError(
                f"Thought must be at most {self.config.max_content_length} characters"
            )

        previous = Category(thought.category)
        category: Category | None = None
        if self.config.reclassify_on_edit and self.classifier is not None:
            verdict = await self.classifier.classify(text)
            if verdict.is_rejected:
                logger.info("Refused edit of thought %s by user %s", thought_id, user_id)
                raise ModerationRejectedError(GUIDELINES_MESSAGE)
            category = verdict.category

        await self.thoughts.update_content(thought, text, edited_at=now, category=category)
        return EditOutcome(thought=thought, previous_category=previous)

    async def delete_thought(self, user_id: str, thought_id: str) -> Category:
        """Hard-delete the author's own thought and return the category it had.

        Rejected audit rows are kept until they expire and cannot be deleted.

        Raises:
            ThoughtNotFoundError: If the thought does not exist or is a rejected audit row.
            ThoughtPermissionError: If ``user_id`` is not the true author.
        """
        thought = await self.thoughts.get_by_id(thought_id)
        if thought is None or thought.category == Category.REJECTED:
            raise ThoughtNotFoundError()
        if thought.user_id != user_id:
            raise ThoughtPermissionError("You can only change your own thoughts")
        category = Category(thought.category)
        await self.thoughts.delete(thought_id)
        logger.info("Deleted thought %s by user %s", thought_id, user_id)
        return category
