"""In-process registry of connected, registered Mehfil sockets."""

from __future__ import annotations

from dataclasses import dataclass

from mehfil.services.rooms import DEFAULT_FEED_VIEW, FeedView


@dataclass
class ConnectedSession:
    """Ephemeral state bound to one socket after ``register``."""

    sid: str
    user_id: str
    name: str
    avatar: str | None
    view: FeedView = DEFAULT_FEED_VIEW


class ConnectionRegistry:
    """Two-way map between user ids and socket ids.

    Owned by a single gateway instance; all mutations are plain dict
    operations that never await, so handlers cannot interleave mid-update.
    A user has at most one bound socket: registering again from a new socket
    replaces the old binding.
    """

    def __init__(self) -> None:
        self._by_sid: dict[str, ConnectedSession] = {}
        self._sid_by_user: dict[str, str] = {}

    def register(
        self,
        sid: str,
        user_id: str,
        name: str,
        avatar: str | None = None,
    ) -> ConnectedSession:
        """Bind ``sid`` to ``user_id`` and return the new session."""
        previous_sid = self._sid_by_user.get(user_id)
        if previous_sid is not None and previous_sid != sid:
            self._by_sid.pop(previous_sid, None)

        existing = self._by_sid.get(sid)
        if existing is not None and existing.user_id != user_id:
            self._sid_by_user.pop(existing.user_id, None)

        view = existing.view if existing is not None else DEFAULT_FEED_VIEW
        session = ConnectedSession(sid=sid, user_id=user_id, name=name, avatar=avatar, view=view)
        self._by_sid[sid] = session
        self._sid_by_user[user_id] = sid
        return session

    def unregister(self, sid: str) -> ConnectedSession | None:
        """Drop the session bound to ``sid``, returning it if present."""
        session = self._by_sid.pop(sid, None)
        if session is not None and self._sid_by_user.get(session.user_id) == sid:
            del self._sid_by_user[session.user_id]
        return session

    def by_sid(self, sid: str) -> ConnectedSession | None:
        return self._by_sid.get(sid)

    def sid_for_user(self, user_id: str) -> str | None:
        return self._sid_by_user.get(user_id)

    def set_view(self, sid: str, view: FeedView) -> None:
        """Record the feed view selected by a registered socket."""
        session = self._by_sid.get(sid)
        if session is not None:
            session.view = view

    def __contains__(self, sid: object) -> bool:
        return sid in self._by_sid

    def __len__(self) -> int:
        return len(self._sid_by_user)

    @property
    def online_count(self) -> int:
        """Number of distinct registered users."""
        return len(self._sid_by_user)
