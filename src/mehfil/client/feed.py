"""Client-side mirror of the Mehfil feed.

Holds what a UI renders: the current page of thoughts, the viewer's own
reactions, ban status and the online counter. Reactions are applied
optimistically and rolled back if the server refuses them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from mehfil.services.rooms import DEFAULT_FEED_VIEW, FeedView, parse_feed_view

logger = logging.getLogger(__name__)

Payload = dict[str, Any]


@dataclass
class Notice:
    """Submitter-only message (accepted, rejected, rerouted)."""

    kind: str
    message: str
    data: Payload = field(default_factory=dict)


@dataclass
class _PendingReaction:
    has_reacted: bool
    relatable_count: int


class FeedState:
    """In-memory feed state for one signed-in viewer."""

    def __init__(self, user_id: str, view: FeedView = DEFAULT_FEED_VIEW) -> None:
        self.user_id = user_id
        self.view = view
        self.thoughts: list[Payload] = []
        self.user_reactions: set[str] = set()
        self.page = 0
        self.has_more = True
        self.online_count = 0
        self.ban_status: Payload | None = None
        self.last_error: str | None = None
        self.notices: list[Notice] = []
        self._pending: dict[str, _PendingReaction] = {}

    # Lookups

    def get(self, thought_id: str) -> Payload | None:
        for thought in self.thoughts:
            if thought.get("id") == thought_id:
                return thought
        return None

    def _index(self, thought_id: str) -> int | None:
        for index, thought in enumerate(self.thoughts):
            if thought.get("id") == thought_id:
                return index
        return None

    def _in_view(self, thought: Payload) -> bool:
        if self.view == FeedView.ALL:
            return True
        return thought.get("category") == self.view.value

    @property
    def can_post(self) -> bool:
        """False while the server reports an active posting ban."""
        return not (self.ban_status and self.ban_status.get("isActive"))

    # Server events

    def set_view(self, view: FeedView | str) -> None:
        """Switch rooms; the list is cleared until the next page arrives."""
        self.view = view if isinstance(view, FeedView) else parse_feed_view(view)
        self.thoughts = []
        self.page = 0
        self.has_more = True

    def apply_thoughts(self, payload: Payload) -> None:
        """Apply a ``thoughts`` page response."""
        page = int(payload.get("page", 1))
        incoming = list(payload.get("thoughts", []))
        if page <= 1:
            self.thoughts = []
        known = {thought.get("id") for thought in self.thoughts}
        for thought in incoming:
            if thought.get("id") in known:
                continue
            self.thoughts.append(dict(thought))
            if thought.get("hasReacted"):
                self.user_reactions.add(thought["id"])
            else:
                self.user_reactions.discard(thought["id"])
        self.page = page
        self.has_more = bool(payload.get("hasMore", False))

    def add_thought(self, thought: Payload) -> bool:
        """Prepend a ``thoughtCreated`` post; returns False if ignored."""
        if not thought.get("id") or self.get(thought["id"]) is not None:
            return False
        if not self._in_view(thought):
            return False
        self.thoughts.insert(0, dict(thought))
        return True

    def apply_thought_updated(self, thought: Payload) -> None:
        """Merge an edit; local reaction state and ownership are kept."""
        index = self._index(thought.get("id", ""))
        if index is None:
            self.add_thought(thought)
            return
        current = self.thoughts[index]
        merged = {**current, **thought}
        merged["hasReacted"] = thought["id"] in self.user_reactions
        merged["isOwn"] = bool(current.get("isOwn") or thought.get("isOwn"))
        if not self._in_view(merged):
            del self.thoughts[index]
            return
        self.thoughts[index] = merged

    def apply_thought_deleted(self, payload: Payload) -> None:
        thought_id = payload.get("thoughtId")
        self.thoughts = [t for t in self.thoughts if t.get("id") != thought_id]
        self.user_reactions.discard(thought_id)
        self._pending.pop(thought_id, None)

    def apply_reaction_update(self, payload: Payload) -> None:
        """Apply a ``reactionUpdated`` event from any user."""
        thought_id = payload.get("thoughtId")
        thought = self.get(thought_id) if thought_id else None
        if payload.get("userId") == self.user_id:
            self._pending.pop(thought_id, None)
            if payload.get("hasReacted"):
                self.user_reactions.add(thought_id)
            else:
                self.user_reactions.discard(thought_id)
            if thought is not None:
                thought["hasReacted"] = bool(payload.get("hasReacted"))
        if thought is not None:
            thought["relatableCount"] = max(0, int(payload.get("relatableCount", 0)))

    def apply_ban_status(self, payload: Payload) -> None:
        self.ban_status = dict(payload)

    def apply_online_count(self, count: Any) -> None:
        self.online_count = int(count)

    def apply_error(self, payload: Payload) -> None:
        """Record an ``error`` event and undo every unconfirmed reaction."""
        self.last_error = str(payload.get("message", ""))
        for thought_id in list(self._pending):
            self.rollback_reaction(thought_id)

    def add_notice(self, kind: str, payload: Payload) -> None:
        message = str(payload.get("message", ""))
        self.notices.append(Notice(kind=kind, message=message, data=payload))

    # Optimistic reactions

    def optimistic_toggle(self, thought_id: str) -> bool:
        """Flip the viewer's reaction locally and return the new state."""
        thought = self.get(thought_id)
        reacted = thought_id in self.user_reactions
        count = int(thought.get("relatableCount", 0)) if thought is not None else 0
        self._pending.setdefault(thought_id, _PendingReaction(reacted, count))

        if reacted:
            self.user_reactions.discard(thought_id)
            count = max(0, count - 1)
        else:
            self.user_reactions.add(thought_id)
            count += 1
        if thought is not None:
            thought["relatableCount"] = count
            thought["hasReacted"] = not reacted
        return not reacted

    def rollback_reaction(self, thought_id: str) -> None:
        """Restore the state captured before an optimistic toggle."""
        snapshot = self._pending.pop(thought_id, None)
        if snapshot is None:
            return
        logger.debug("Rolling back reaction on %s", thought_id)
        if snapshot.has_reacted:
            self.user_reactions.add(thought_id)
        else:
            self.user_reactions.discard(thought_id)
        thought = self.get(thought_id)
        if thought is not None:
            thought["relatableCount"] = snapshot.relatable_count
            thought["hasReacted"] = snapshot.has_reacted

    @property
    def pending_reactions(self) -> set[str]:
        return set(self._pending)
