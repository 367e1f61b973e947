"""Domain exceptions shared by the realtime gateway and the REST layer."""

from __future__ import annotations


class MehfilError(RuntimeError):
    """Base exception for Mehfil domain failures.

    The message is safe to show to the originating client.
    """


class ContentValidationError(MehfilError):
    """Raised when a payload violates the client contract.

    Covers missing fields, malformed room names and content outside the
    accepted length bounds. Never counted as a moderation strike.
    """


class NotRegisteredError(MehfilError):
    """Raised when a socket acts before binding a user identity."""

    def __init__(self, message: str = "Not registered") -> None:
        super().__init__(message)


class ThoughtNotFoundError(MehfilError):
    """Raised when a thought does not exist or is no longer visible."""

    def __init__(self, message: str = "Thought not found") -> None:
        super().__init__(message)


class ThoughtPermissionError(MehfilError):
    """Raised when a user acts on a thought they did not author."""


class ModerationRejectedError(MehfilError):
    """Raised when an edit fails moderation; no strike is recorded."""
