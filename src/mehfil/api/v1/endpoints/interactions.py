"""Comment, bookmark, report and share endpoints for Mehfil thoughts."""

import logging

from fastapi import APIRouter, HTTPException, status

from mehfil.db.time import utcnow
from mehfil.models import Thought
from mehfil.repositories.interaction_repo import InteractionRepository
from mehfil.repositories.thought_repo import ThoughtRepository
from mehfil.repositories.user_repo import UserRepository
from mehfil.schemas.interaction import (
    AnalyticsOut,
    CommentCreate,
    CommentCreated,
    CommentList,
    CommentOut,
    ReportAck,
    ReportCreate,
    SavedPosts,
    SaveStatus,
    ShareAck,
    ShareCreate,
    ThoughtRef,
)
from mehfil.schemas.realtime import to_thought_out
from mehfil.services.moderation import ModerationService

from ..dependencies import ClassifierDep, CurrentUserIdDep, GatewayDep, SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mehfil", tags=["mehfil"])

UNKNOWN_AUTHOR = "Unknown"


async def _get_thought_or_404(
    repo: ThoughtRepository,
    thought_id: str,
    *,
    visible: bool,
) -> Thought:
    if visible:
        thought = await repo.get_visible(thought_id)
    else:
        thought = await repo.get_by_id(thought_id)
    if thought is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thought not found")
    return thought


@router.get("/comments/{thought_id}", response_model=CommentList, response_model_by_alias=True)
async def list_comments(
    thought_id: str,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
) -> CommentList:
    """Return comments on a visible thought, oldest first."""
    await _get_thought_or_404(ThoughtRepository(db), thought_id, visible=True)
    rows = await InteractionRepository(db).list_comments(thought_id)
    return CommentList(
        comments=[
            CommentOut(
                id=comment.id,
                thought_id=comment.thought_id,
                user_id=comment.user_id,
                author_name=user.name if user is not None and user.name else UNKNOWN_AUTHOR,
                author_avatar=user.avatar if user is not None else None,
                content=comment.content,
                created_at=comment.created_at,
            )
            for comment, user in rows
        ]
    )


@router.post(
    "/comments",
    response_model=CommentCreated,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    body: CommentCreate,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
) -> CommentCreated:
    """Attach a comment to a visible thought."""
    content = body.content.strip()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="ThoughtId and content are required",
        )
    await _get_thought_or_404(ThoughtRepository(db), body.thought_id, visible=True)
    comment = await InteractionRepository(db).add_comment(body.thought_id, current_user_id, content)
    user = await UserRepository(db).get(current_user_id)
    await db.commit()
    return CommentCreated(
        comment=CommentOut(
            id=comment.id,
            thought_id=comment.thought_id,
            user_id=comment.user_id,
            author_name=user.name if user is not None and user.name else UNKNOWN_AUTHOR,
            author_avatar=user.avatar if user is not None else None,
            content=comment.content,
            created_at=comment.created_at,
        )
    )


@router.post("/save", response_model=SaveStatus, response_model_by_alias=True)
async def toggle_save(
    body: ThoughtRef,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
) -> SaveStatus:
    """Bookmark a thought, or remove the bookmark if it exists."""
    await _get_thought_or_404(ThoughtRepository(db), body.thought_id, visible=False)
    saved = await InteractionRepository(db).toggle_save(current_user_id, body.thought_id)
    await db.commit()
    return SaveStatus(saved=saved)


@router.get("/save/{thought_id}", response_model=SaveStatus, response_model_by_alias=True)
async def get_save_status(
    thought_id: str,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
) -> SaveStatus:
    saved = await InteractionRepository(db).is_saved(current_user_id, thought_id)
    return SaveStatus(saved=saved)


@router.get("/saved-posts", response_model=SavedPosts, response_model_by_alias=True)
async def list_saved_posts(
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
) -> SavedPosts:
    """Return the caller's saved thoughts that are still visible, newest save first."""
    saves = await InteractionRepository(db).list_saves(current_user_id)
    if not saves:
        return SavedPosts(posts=[], reacted_thought_ids=[])

    thoughts = ThoughtRepository(db)
    visible = await thoughts.list_visible_by_ids(save.thought_id for save in saves)
    ordered = [visible[save.thought_id] for save in saves if save.thought_id in visible]
    reacted = await thoughts.reacted_ids(current_user_id, [thought.id for thought in ordered])
    return SavedPosts(
        posts=[
            to_thought_out(
                thought,
                viewer_id=current_user_id,
                has_reacted=thought.id in reacted,
            )
            for thought in ordered
        ],
        reacted_thought_ids=sorted(reacted),
    )


@router.post("/report", response_model=ReportAck, response_model_by_alias=True)
async def report_thought(
    body: ReportCreate,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
    classifier: ClassifierDep,
    gateway: GatewayDep,
) -> ReportAck:
    """Record a report and run posting-ban escalation for the author.

    When a ban becomes active the author's live socket, if any, is told
    right away.
    """
    thought = await _get_thought_or_404(ThoughtRepository(db), body.thought_id, visible=False)
    if thought.user_id == current_user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot report your own thought",
        )

    reason = body.reason.strip()
    await InteractionRepository(db).add_report(body.thought_id, current_user_id, reason)
    outcome = await ModerationService(db, classifier).handle_report(body.thought_id)
    await db.commit()
    logger.info("User %s reported thought %s", current_user_id, body.thought_id)

    if gateway is not None and outcome is not None and outcome.escalated and outcome.ban.is_active:
        await gateway.notify_ban_status(outcome.author_id, outcome.ban)
    return ReportAck()


@router.post("/share", response_model=ShareAck, response_model_by_alias=True)
async def share_thought(
    body: ShareCreate,
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
) -> ShareAck:
    await _get_thought_or_404(ThoughtRepository(db), body.thought_id, visible=True)
    await InteractionRepository(db).log_share(body.thought_id, current_user_id, body.platform)
    await db.commit()
    return ShareAck()


@router.get("/analytics", response_model=AnalyticsOut, response_model_by_alias=True)
async def get_analytics(
    current_user_id: CurrentUserIdDep,
    db: SessionDep,
) -> AnalyticsOut:
    """Return the caller's Mehfil activity totals."""
    activity = await InteractionRepository(db).activity_for(current_user_id)
    return AnalyticsOut(
        total_thoughts=activity.total_thoughts,
        total_reactions=activity.total_reactions,
        total_comments=activity.total_comments,
        total_saves=activity.total_saves,
        total_shares=activity.total_shares,
        joined_date=activity.joined_at or utcnow(),
    )
