"""Schemas for the interaction REST endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from .realtime import CamelModel, ThoughtOut


class CommentCreate(CamelModel):
    """Schema for posting a comment on a thought."""

    thought_id: str = Field(..., min_length=1, max_length=36)
    content: str = Field(..., min_length=1, max_length=1000)


class CommentOut(CamelModel):
    id: str
    thought_id: str
    user_id: str
    author_name: str
    author_avatar: str | None
    content: str
    created_at: datetime


class CommentList(CamelModel):
    comments: list[CommentOut]


class CommentCreated(CamelModel):
    comment: CommentOut


class ThoughtRef(CamelModel):
    """Body naming one thought (save toggle)."""

    thought_id: str = Field(..., min_length=1, max_length=36)


class SaveStatus(CamelModel):
    saved: bool


class SavedPosts(CamelModel):
    """Visible saved thoughts plus the ones the caller reacted to."""

    posts: list[ThoughtOut]
    reacted_thought_ids: list[str]


class ReportCreate(CamelModel):
    thought_id: str = Field(..., min_length=1, max_length=36)
    reason: str = Field(..., min_length=1, max_length=500)


class ReportAck(CamelModel):
    reported: bool = True


class ShareCreate(CamelModel):
    thought_id: str = Field(..., min_length=1, max_length=36)
    platform: str | None = Field(default=None, max_length=50)


class ShareAck(CamelModel):
    shared: bool = True


class AnalyticsOut(CamelModel):
    """Interaction totals for the calling user."""

    total_thoughts: int
    total_reactions: int
    total_comments: int
    total_saves: int
    total_shares: int
    joined_date: datetime
