"""Room routing for the Mehfil feed.

Accepted thoughts live in exactly one topic room, picked by their final
category. Sockets subscribe to one room or to the combined ALL view.
"""

from __future__ import annotations

from enum import StrEnum

from mehfil.models.thought import Category


class Room(StrEnum):
    """Topic rooms a thought can be delivered to."""

    ACADEMIC = "ACADEMIC"
    REFLECTIVE = "REFLECTIVE"


class FeedView(StrEnum):
    """Subscription choices offered to clients."""

    ACADEMIC = "ACADEMIC"
    REFLECTIVE = "REFLECTIVE"
    ALL = "ALL"


DEFAULT_FEED_VIEW = FeedView.ALL
ROOM_GROUP_PREFIX = "room:"


def group_name(room: Room) -> str:
    """Return the Socket.IO group that receives broadcasts for ``room``."""
    return f"{ROOM_GROUP_PREFIX}{room.value}"


ALL_ROOM_GROUPS: tuple[str, ...] = tuple(group_name(room) for room in Room)


def parse_feed_view(raw: object) -> FeedView:
    """Parse a client supplied room name.

    Raises:
        ValueError: If ``raw`` is not ACADEMIC, REFLECTIVE or ALL.
    """
    if not isinstance(raw, str):
        raise ValueError("Room must be one of ACADEMIC, REFLECTIVE or ALL")
    try:
        return FeedView(raw.strip().upper())
    except ValueError as err:
        raise ValueError(f"Unknown room {raw!r}") from err


def room_for_category(category: Category | str) -> Room:
    """Return the room a thought of ``category`` is delivered to.

    Raises:
        ValueError: For REJECTED thoughts, which are never delivered.
    """
    category = Category(category)
    if category == Category.REJECTED:
        raise ValueError("Rejected thoughts have no room")
    return Room(category.value)


def rooms_for_view(view: FeedView) -> tuple[Room, ...]:
    """Return the rooms a socket subscribed to ``view`` listens to."""
    if view == FeedView.ALL:
        return tuple(Room)
    return (Room(view.value),)


def groups_for_view(view: FeedView) -> tuple[str, ...]:
    """Return the Socket.IO groups a socket joins for ``view``."""
    return tuple(group_name(room) for room in rooms_for_view(view))


def categories_for_view(view: FeedView) -> tuple[Category, ...]:
    """Return the thought categories listed by a feed page for ``view``."""
    return tuple(Category(room.value) for room in rooms_for_view(view))


def requested_room(view: FeedView) -> Room | None:
    """Return the concrete room behind ``view``; ALL names no single room."""
    if view == FeedView.ALL:
        return None
    return Room(view.value)
