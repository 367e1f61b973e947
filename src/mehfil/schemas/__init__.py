"""
Pydantic schemas for socket payloads and REST request/response models.

Every schema reads and writes camelCase keys on the wire.
"""

from .interaction import (
    AnalyticsOut,
    CommentCreate,
    CommentOut,
    ReportCreate,
    SavedPosts,
    ShareCreate,
    ThoughtRef,
)
from .realtime import (
    BanStatusOut,
    EditThoughtPayload,
    JoinRoomPayload,
    LoadThoughtsPayload,
    NewThoughtPayload,
    RegisterPayload,
    ThoughtOut,
    ThoughtRefPayload,
    to_thought_out,
)

__all__ = [
    "AnalyticsOut", "CommentCreate", "CommentOut", "ReportCreate",
    "SavedPosts", "ShareCreate", "ThoughtRef",
    "BanStatusOut", "EditThoughtPayload", "JoinRoomPayload", "LoadThoughtsPayload",
    "NewThoughtPayload", "RegisterPayload", "ThoughtOut", "ThoughtRefPayload",
    "to_thought_out",
]
