"""Pydantic schemas for the Mehfil Socket.IO protocol.

Inbound payloads are validated with these models before any handler logic
runs; outbound payloads are dumped with camelCase keys.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mehfil.models import ANONYMOUS_AUTHOR_NAME, Thought
from mehfil.services.moderation import BanStatus
from mehfil.services.rooms import FeedView, parse_feed_view


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        """Return the JSON-ready dict sent over the socket."""
        return self.model_dump(by_alias=True, mode="json")


def _parse_view(value: object) -> FeedView | None:
    if value is None or isinstance(value, FeedView):
        return value
    return parse_feed_view(value)


RoomName = Annotated[FeedView, BeforeValidator(_parse_view)]


# Client -> server


class RegisterPayload(CamelModel):
    """Bind the socket to a portal identity."""

    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(default="", max_length=200)
    avatar: str | None = None
    room: RoomName | None = None


class JoinRoomPayload(CamelModel):
    room: RoomName


class LoadThoughtsPayload(CamelModel):
    """Request one newest-first page; the room defaults to the current view."""

    page: int = Field(default=1, ge=1)
    limit: int | None = Field(default=None, ge=1)
    room: RoomName | None = None


class NewThoughtPayload(CamelModel):
    """Submission; length bounds are enforced by the moderation policy."""

    content: str
    image_url: str | None = None
    is_anonymous: bool = False
    room: RoomName | None = None


class ThoughtRefPayload(CamelModel):
    """Payload naming a single thought (reactions and deletes)."""

    thought_id: str = Field(..., min_length=1, max_length=36)


class EditThoughtPayload(ThoughtRefPayload):
    content: str


# Server -> client


class ThoughtOut(CamelModel):
    """A thought as shown to one reader."""

    id: str
    user_id: str
    author_name: str
    author_avatar: str | None
    is_anonymous: bool
    content: str
    image_url: str | None
    category: str
    tags: list[str]
    relatable_count: int
    created_at: datetime
    edited_at: datetime | None
    has_reacted: bool = False
    is_own: bool = False


def to_thought_out(
    thought: Thought,
    *,
    viewer_id: str | None = None,
    has_reacted: bool = False,
) -> ThoughtOut:
    """Convert a Thought ORM instance into its reader-facing form.

    Anonymous thoughts hide the author's id, name and avatar; only the
    author's own view learns it is theirs through ``is_own``.
    """
    anonymous = bool(thought.is_anonymous)
    return ThoughtOut(
        id=thought.id,
        user_id="" if anonymous else thought.user_id,
        author_name=ANONYMOUS_AUTHOR_NAME if anonymous else thought.author_name,
        author_avatar=None if anonymous else thought.author_avatar,
        is_anonymous=anonymous,
        content=thought.content,
        image_url=thought.image_url,
        category=str(thought.category),
        tags=list(thought.ai_tags or []),
        relatable_count=max(0, thought.relatable_count or 0),
        created_at=thought.created_at,
        edited_at=thought.edited_at,
        has_reacted=has_reacted,
        is_own=viewer_id is not None and viewer_id == thought.user_id,
    )


class ThoughtsPageOut(CamelModel):
    thoughts: list[ThoughtOut]
    room: FeedView
    page: int
    has_more: bool


class ThoughtAcceptedOut(CamelModel):
    message: str
    category: str


class ThoughtRejectedOut(CamelModel):
    message: str
    strikes_remaining: int | None = None

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class ThoughtReroutedOut(CamelModel):
    room: str
    reason: str


class ReactionUpdatedOut(CamelModel):
    thought_id: str
    relatable_count: int
    user_id: str
    has_reacted: bool


class ThoughtDeletedOut(CamelModel):
    thought_id: str


class BanStatusOut(CamelModel):
    is_active: bool
    is_permanent: bool
    banned_until: datetime | None
    message: str

    @classmethod
    def from_status(cls, status: BanStatus) -> BanStatusOut:
        return cls(
            is_active=status.is_active,
            is_permanent=status.is_permanent,
            banned_until=status.banned_until,
            message=status.message,
        )


class ErrorOut(CamelModel):
    message: str
