"""Async Socket.IO client for the Mehfil namespace.

Reconnects with capped backoff. On every (re)connect the identity is
registered again with the selected room and the first page is reloaded once
the server acknowledges, since it keeps no per-socket state across connections.
"""

from __future__ import annotations

import logging
from typing import Any

import socketio
from socketio.exceptions import SocketIOError

from mehfil.client.feed import FeedState
from mehfil.services.rooms import FeedView

logger = logging.getLogger(__name__)

RECONNECTION_ATTEMPTS = 5
RECONNECTION_DELAY = 1
RECONNECTION_DELAY_MAX = 5


class MehfilClient:
    """Drive a :class:`FeedState` from a live Mehfil connection."""

    def __init__(
        self,
        url: str,
        *,
        user_id: str,
        name: str,
        avatar: str | None = None,
        namespace: str = "/mehfil",
        state: FeedState | None = None,
        client: socketio.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.user_id = user_id
        self.name = name
        self.avatar = avatar
        self.namespace = namespace
        self.state = state or FeedState(user_id)
        self.sio = client or socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=RECONNECTION_ATTEMPTS,
            reconnection_delay=RECONNECTION_DELAY,
            reconnection_delay_max=RECONNECTION_DELAY_MAX,
        )
        self._bind_handlers()

    def _bind_handlers(self) -> None:
        handlers = {
            "connect": self._on_connect,
            "disconnect": self._on_disconnect,
            "thoughts": self.state.apply_thoughts,
            "thoughtCreated": self.state.add_thought,
            "thoughtUpdated": self.state.apply_thought_updated,
            "thoughtDeleted": self.state.apply_thought_deleted,
            "reactionUpdated": self.state.apply_reaction_update,
            "postingBanStatus": self.state.apply_ban_status,
            "onlineCount": self.state.apply_online_count,
            "error": self.state.apply_error,
            "thoughtAccepted": lambda data: self.state.add_notice("accepted", data),
            "thoughtRejected": lambda data: self.state.add_notice("rejected", data),
            "thoughtRerouted": lambda data: self.state.add_notice("rerouted", data),
        }
        for event, handler in handlers.items():
            self.sio.on(event, handler, namespace=self.namespace)

    async def _emit(self, event: str, data: Any = None) -> None:
        await self.sio.emit(event, data, namespace=self.namespace)

    async def _on_connect(self) -> None:
        logger.info("Connected to %s%s", self.url, self.namespace)
        # Acks arrive on this loop; the register round trip runs as its own task.
        self.sio.start_background_task(self.resume_session)

    async def resume_session(self) -> bool:
        """Register with the current room, then reload page one."""
        room = self.state.view.value
        payload = {"id": self.user_id, "name": self.name, "avatar": self.avatar, "room": room}
        try:
            ack = await self.sio.call("register", payload, namespace=self.namespace, timeout=10)
        except SocketIOError:
            logger.warning("Register on %s%s was not acknowledged", self.url, self.namespace)
            return False
        if not ack:
            return False
        await self._emit("loadThoughts", {"page": 1, "room": room})
        return True

    def _on_disconnect(self, *args: Any) -> None:
        logger.info("Disconnected from %s%s", self.url, self.namespace)

    async def connect(self, auth: dict[str, Any] | None = None) -> None:
        await self.sio.connect(self.url, namespaces=[self.namespace], auth=auth)

    async def disconnect(self) -> None:
        await self.sio.disconnect()

    async def join_room(self, view: FeedView | str) -> None:
        """Switch the subscription and reload the first page."""
        self.state.set_view(view)
        await self._emit("joinRoom", {"room": self.state.view.value})
        await self._emit("loadThoughts", {"page": 1, "room": self.state.view.value})

    async def load_more(self) -> bool:
        """Request the next page; returns False when nothing is left."""
        if not self.state.has_more:
            return False
        next_page = {"page": self.state.page + 1, "room": self.state.view.value}
        await self._emit("loadThoughts", next_page)
        return True

    async def post_thought(
        self,
        content: str,
        *,
        image_url: str | None = None,
        is_anonymous: bool = False,
    ) -> None:
        await self._emit(
            "newThought",
            {
                "content": content,
                "imageUrl": image_url,
                "isAnonymous": is_anonymous,
                "room": self.state.view.value,
            },
        )

    async def toggle_reaction(self, thought_id: str) -> bool:
        """Toggle optimistically; the change is undone if the emit fails."""
        reacted = self.state.optimistic_toggle(thought_id)
        try:
            await self._emit("toggleReaction", {"thoughtId": thought_id})
        except SocketIOError:
            logger.warning("Reaction on %s not sent; rolling back", thought_id)
            self.state.rollback_reaction(thought_id)
            raise
        return reacted

    async def edit_thought(self, thought_id: str, content: str) -> None:
        await self._emit("editThought", {"thoughtId": thought_id, "content": content})

    async def delete_thought(self, thought_id: str) -> None:
        await self._emit("deleteThought", {"thoughtId": thought_id})

    async def check_posting_ban(self) -> None:
        await self._emit("checkPostingBan")
