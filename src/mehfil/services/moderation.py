"""Moderation policy for Mehfil submissions and peer reports.

Two independent escalation tracks live here:

* spam strikes -> shadow ban, driven by rejected submissions;
* peer reports -> timed, then permanent, posting bans.

Every state transition goes through a conditional UPDATE in
:class:`~mehfil.repositories.user_repo.UserRepository`.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from mehfil.core.errors import ContentValidationError
from mehfil.core.settings import Settings, settings as default_settings
from mehfil.db.time import utcnow
from mehfil.models import PERMANENT_BAN_LEVEL, Category, Thought, ThoughtStatus, User
from mehfil.repositories.interaction_repo import InteractionRepository
from mehfil.repositories.thought_repo import ThoughtRepository
from mehfil.repositories.user_repo import UserRepository
from mehfil.services.classifier import Classification, ContentClassifier
from mehfil.services.rooms import FeedView, requested_room

logger = logging.getLogger(__name__)

GUIDELINES_MESSAGE = "Your thought doesn't meet our community guidelines."
ACCEPTED_MESSAGE = "Your thought has been shared."
REROUTED_REASON = "Your thought fits the {room} room better, so we moved it there."
TIMED_BAN_MESSAGE = (
    "You are banned from posting in Mehfil until {until} because of community reports."
)
PERMANENT_BAN_MESSAGE = (
    "You are permanently banned from posting in Mehfil because of community reports."
)
REPORT_BAN_REASON = "Reported by {count} community member(s)."
LOW_EFFORT_REASON = "Content shorter than {minimum} characters."


class SubmissionKind(StrEnum):
    """Outcome of a submission through the policy engine."""

    BANNED = "banned"
    SHADOW_ECHO = "shadow_echo"
    REJECTED = "rejected"
    ACCEPTED = "accepted"


@dataclass(frozen=True)
class BanStatus:
    """Posting-ban state as shown to the author."""

    is_active: bool
    is_permanent: bool = False
    banned_until: datetime | None = None
    message: str = ""


@dataclass(frozen=True)
class BanStep:
    """Next rung on the report escalation ladder."""

    level: int
    banned_until: datetime | None
    forever: bool


@dataclass(frozen=True)
class SubmissionResult:
    """Decision for one submission.

    ``thought`` is the persisted post for ACCEPTED, the flagged audit row for
    REJECTED and an unsaved instance for SHADOW_ECHO.
    """

    kind: SubmissionKind
    message: str
    thought: Thought | None = None
    category: Category | None = None
    rerouted: bool = False
    strikes_remaining: int | None = None
    ban: BanStatus | None = None

    @property
    def broadcast(self) -> bool:
        """Return True only when the post may be fanned out to a room."""
        return self.kind == SubmissionKind.ACCEPTED


@dataclass(frozen=True)
class ReportOutcome:
    """Result of running report escalation for one thought."""

    author_id: str
    escalated: bool
    ban: BanStatus


def resolve_ban_status(user: User | None, now: datetime) -> BanStatus:
    """Return the posting-ban status of ``user`` at ``now``."""
    if user is None:
        return BanStatus(is_active=False)
    if user.banned_forever:
        return BanStatus(is_active=True, is_permanent=True, message=PERMANENT_BAN_MESSAGE)
    if user.banned_until is not None and user.banned_until > now:
        return BanStatus(
            is_active=True,
            banned_until=user.banned_until,
            message=TIMED_BAN_MESSAGE.format(until=user.banned_until.isoformat()),
        )
    return BanStatus(is_active=False)


def next_ban_step(
    current_level: int,
    now: datetime,
    *,
    first_ban_days: int = 2,
    second_ban_days: int = 7,
) -> BanStep:
    """Return the sanction that follows ``current_level``.

    Level 0 leads to a short ban, level 1 to a week-long ban and anything
    higher to a permanent ban with no expiry.
    """
    if current_level <= 0:
        return BanStep(level=1, banned_until=now + timedelta(days=first_ban_days), forever=False)
    if current_level == 1:
        return BanStep(level=2, banned_until=now + timedelta(days=second_ban_days), forever=False)
    return BanStep(level=PERMANENT_BAN_LEVEL, banned_until=None, forever=True)


class ModerationService:
    """Apply the submission policy and the report escalation ladder.

    The service flushes but never commits; callers own the transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        classifier: ContentClassifier,
        config: Settings | None = None,
    ) -> None:
        self.session = session
        self.classifier = classifier
        self.config = config or default_settings
        self.users = UserRepository(session)
        self.thoughts = ThoughtRepository(session)
        self.interactions = InteractionRepository(session)

    async def posting_ban_status(self, user_id: str, now: datetime | None = None) -> BanStatus:
        """Return the author's ban status, clearing an expired timed ban."""
        now = now or utcnow()
        user = await self.users.get(user_id)
        return await self._current_ban(user, now)

    async def _current_ban(self, user: User | None, now: datetime) -> BanStatus:
        if user is None:
            return BanStatus(is_active=False)
        status = resolve_ban_status(user, now)
        if not status.is_active and user.banned_until is not None:
            if await self.users.clear_expired_ban(user.id, now):
                logger.info("Cleared expired posting ban for user %s", user.id)
            await self.users.refresh(user)
        return status

    async def submit_thought(
        self,
        *,
        user_id: str,
        author_name: str,
        author_avatar: str | None,
        content: str,
        view: FeedView,
        image_url: str | None = None,
        is_anonymous: bool = False,
        now: datetime | None = None,
    ) -> SubmissionResult:
        """Run one submission through the policy.

        Args:
            user_id: True author id, kept even for anonymous posts.
            author_name: Display name captured at submission time.
            author_avatar: Display avatar captured at submission time.
            content: Raw content as sent by the client.
            view: Room the author submitted into.
            image_url: Optional attachment URL.
            is_anonymous: Hide the author identity from readers.
            now: Clock override used by tests.

        Returns:
            The decision and the thought it produced, if any.

        Raises:
            ContentValidationError: If the content is longer than allowed.
        """
        now = now or utcnow()
        user = await self.users.get(user_id)
        if user is None:
            user = await self.users.ensure(user_id, author_name, author_avatar)

        ban = await self._current_ban(user, now)
        if ban.is_active:
            return SubmissionResult(kind=SubmissionKind.BANNED, message=ban.message, ban=ban)

        target = requested_room(view)
        text = content.strip()

        if user.is_shadow_banned and not user.is_moderation_exempt:
            logger.info("Shadow echo for user %s", user_id)
            category = Category(target.value) if target is not None else Category.REFLECTIVE
            echo = self._transient_thought(
                user_id=user_id,
                author_name=author_name,
                author_avatar=author_avatar,
                is_anonymous=is_anonymous,
                content=text,
                image_url=image_url,
                category=category,
                requested=target.value if target is not None else None,
                now=now,
            )
            return SubmissionResult(
                kind=SubmissionKind.SHADOW_ECHO,
                message=ACCEPTED_MESSAGE,
                thought=echo,
                category=category,
            )

        if len(text) < self.config.min_content_length:
            return await self._reject(
                user,
                text,
                author_name=author_name,
                author_avatar=author_avatar,
                is_anonymous=is_anonymous,
                image_url=image_url,
                requested=target.value if target is not None else None,
                reason=LOW_EFFORT_REASON.format(minimum=self.config.min_content_length),
                classification=None,
                now=now,
            )

        if len(text) > self.config.max_content_length:
            raise ContentValidationError(
                f"Thought must be at most {self.config.max_content_length} characters"
            )

        verdict = await self.classifier.classify(text)
        if verdict.is_rejected:
            return await self._reject(
                user,
                text,
                author_name=author_name,
                author_avatar=author_avatar,
                is_anonymous=is_anonymous,
                image_url=image_url,
                requested=target.value if target is not None else None,
                reason=verdict.rationale,
                classification=verdict,
                now=now,
            )

        expires_at = None
        if user.post_ttl_minutes:
            expires_at = now + timedelta(minutes=user.post_ttl_minutes)

        thought = await self.thoughts.create(
            user_id=user_id,
            author_name=author_name,
            author_avatar=author_avatar,
            is_anonymous=is_anonymous,
            content=text,
            image_url=image_url,
            category=verdict.category,
            status=ThoughtStatus.APPROVED,
            requested_room=target.value if target is not None else None,
            moderation_reason=verdict.rationale or None,
            is_toxic=False,
            ai_tags=verdict.tags,
            ai_score=verdict.score,
            created_at=now,
            expires_at=expires_at,
        )
        rerouted = target is not None and target.value != verdict.category.value
        logger.info(
            "Accepted thought %s from user %s into %s (source=%s, rerouted=%s)",
            thought.id,
            user_id,
            verdict.category,
            verdict.source,
            rerouted,
        )
        return SubmissionResult(
            kind=SubmissionKind.ACCEPTED,
            message=ACCEPTED_MESSAGE,
            thought=thought,
            category=verdict.category,
            rerouted=rerouted,
        )

    async def _reject(
        self,
        user: User,
        text: str,
        *,
        author_name: str,
        author_avatar: str | None,
        is_anonymous: bool,
        image_url: str | None,
        requested: str | None,
        reason: str,
        classification: Classification | None,
        now: datetime,
    ) -> SubmissionResult:
        audit = await self.thoughts.create(
            user_id=user.id,
            author_name=author_name,
            author_avatar=author_avatar,
            is_anonymous=is_anonymous,
            content=text,
            image_url=image_url,
            category=Category.REJECTED,
            status=ThoughtStatus.FLAGGED,
            requested_room=requested,
            moderation_reason=reason,
            is_toxic=classification.is_toxic if classification else False,
            ai_tags=classification.tags if classification else [],
            ai_score=classification.score if classification else None,
            created_at=now,
            expires_at=now + timedelta(minutes=self.config.rejected_post_ttl_minutes),
        )

        strikes_remaining: int | None = None
        if not user.is_moderation_exempt:
            threshold = self.config.shadow_ban_strike_threshold
            strikes = await self.users.increment_strikes(user.id)
            if await self.users.shadow_ban_if_over(user.id, threshold):
                logger.warning("User %s shadow banned after %d strikes", user.id, strikes)
            strikes_remaining = max(0, threshold - strikes)
            await self.users.refresh(user)

        logger.info("Rejected thought %s from user %s: %s", audit.id, user.id, reason)
        return SubmissionResult(
            kind=SubmissionKind.REJECTED,
            message=GUIDELINES_MESSAGE,
            thought=audit,
            category=Category.REJECTED,
            strikes_remaining=strikes_remaining,
        )

    @staticmethod
    def _transient_thought(
        *,
        user_id: str,
        author_name: str,
        author_avatar: str | None,
        is_anonymous: bool,
        content: str,
        image_url: str | None,
        category: Category,
        requested: str | None,
        now: datetime,
    ) -> Thought:
        # Never added to the session.
        return Thought(
            id=str(uuid.uuid4()),
            user_id=user_id,
            author_name=author_name,
            author_avatar=author_avatar,
            is_anonymous=is_anonymous,
            content=content,
            image_url=image_url,
            category=category.value,
            requested_room=requested,
            status=ThoughtStatus.APPROVED.value,
            is_toxic=False,
            ai_tags=[],
            ai_score=None,
            relatable_count=0,
            created_at=now,
            edited_at=None,
            expires_at=None,
        )

    async def handle_report(
        self,
        thought_id: str,
        now: datetime | None = None,
    ) -> ReportOutcome | None:
        """Escalate the author's posting ban once enough peers reported a thought.

        Returns None when the thought no longer exists or its author has no
        moderation record.
        """
        now = now or utcnow()
        thought = await self.thoughts.get_by_id(thought_id)
        if thought is None:
            return None
        author = await self.users.get(thought.user_id)
        if author is None:
            return None

        reporters = await self.interactions.count_pending_reporters(thought_id)
        if reporters < self.config.report_ban_threshold or author.is_moderation_exempt:
            return ReportOutcome(
                author_id=author.id,
                escalated=False,
                ban=await self._current_ban(author, now),
            )

        current = await self._current_ban(author, now)
        if current.is_active:
            return ReportOutcome(author_id=author.id, escalated=False, ban=current)

        step = next_ban_step(
            author.ban_level,
            now,
            first_ban_days=self.config.first_ban_days,
            second_ban_days=self.config.second_ban_days,
        )
        applied = await self.users.apply_ban(
            author.id,
            expected_level=author.ban_level,
            new_level=step.level,
            banned_until=step.banned_until,
            forever=step.forever,
            reason=REPORT_BAN_REASON.format(count=reporters),
            now=now,
        )
        if applied:
            await self.interactions.mark_reports_actioned(thought_id, now)
            logger.warning(
                "Escalated posting ban for user %s to level %d after reports on thought %s",
                author.id,
                step.level,
                thought_id,
            )
        else:
            logger.info("Ban escalation for user %s lost a race; keeping current level", author.id)

        await self.users.refresh(author)
        return ReportOutcome(
            author_id=author.id,
            escalated=applied,
            ban=resolve_ban_status(author, now),
        )
