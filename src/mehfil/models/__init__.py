"""SQLAlchemy models for the Mehfil service."""

from .interaction import Comment, Report, ReportStatus, Save, Share
from .thought import ANONYMOUS_AUTHOR_NAME, Category, Reaction, Thought, ThoughtStatus
from .user import PERMANENT_BAN_LEVEL, User

__all__ = [
    "ANONYMOUS_AUTHOR_NAME", "Category", "Reaction", "Thought", "ThoughtStatus",
    "Comment", "Report", "ReportStatus", "Save", "Share",
    "PERMANENT_BAN_LEVEL", "User",
]
