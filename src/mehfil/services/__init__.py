"""Business logic services for the Mehfil feed."""

from .classifier import Classification, ContentClassifier, get_classifier
from .feed import FeedService
from .moderation import ModerationService, SubmissionKind, SubmissionResult
from .registry import ConnectionRegistry

__all__ = [
    "Classification",
    "ContentClassifier",
    "get_classifier",
    "FeedService",
    "ModerationService",
    "SubmissionKind",
    "SubmissionResult",
    "ConnectionRegistry",
]
