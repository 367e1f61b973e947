"""Socket.IO namespace serving the live Mehfil feed.

Clients speak camelCase event names (``newThought``, ``toggleReaction`` ...);
:meth:`MehfilNamespace.trigger_event` maps them onto ``handle_*`` methods and
runs each one inside a guard that turns every failure into an ``error`` event
for the originating socket only.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import socketio
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mehfil.core.errors import MehfilError, NotRegisteredError
from mehfil.core.settings import Settings, settings as default_settings
from mehfil.db.session import SessionLocal
from mehfil.repositories.user_repo import UserRepository
from mehfil.schemas.realtime import (
    BanStatusOut,
    EditThoughtPayload,
    ErrorOut,
    JoinRoomPayload,
    LoadThoughtsPayload,
    NewThoughtPayload,
    ReactionUpdatedOut,
    RegisterPayload,
    ThoughtAcceptedOut,
    ThoughtDeletedOut,
    ThoughtRefPayload,
    ThoughtRejectedOut,
    ThoughtReroutedOut,
    ThoughtsPageOut,
    to_thought_out,
)
from mehfil.services.classifier import ContentClassifier, get_classifier
from mehfil.services.feed import FeedService
from mehfil.services.moderation import (
    REROUTED_REASON,
    BanStatus,
    ModerationService,
    SubmissionKind,
    SubmissionResult,
)
from mehfil.services.registry import ConnectedSession, ConnectionRegistry
from mehfil.services.rooms import (
    ALL_ROOM_GROUPS,
    DEFAULT_FEED_VIEW,
    group_name,
    groups_for_view,
    room_for_category,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."

# Client event name -> handler suffix.
EVENT_HANDLERS: dict[str, str] = {
    "register": "register",
    "checkPostingBan": "check_posting_ban",
    "joinRoom": "join_room",
    "loadThoughts": "load_thoughts",
    "newThought": "new_thought",
    "toggleReaction": "toggle_reaction",
    "editThought": "edit_thought",
    "deleteThought": "delete_thought",
}


class MehfilNamespace(socketio.AsyncNamespace):
    """Realtime gateway for one process.

    Holds the in-memory :class:`ConnectionRegistry`; every durable change
    goes through a fresh database session per event.
    """

    def __init__(
        self,
        namespace: str | None = None,
        *,
        registry: ConnectionRegistry | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        classifier: ContentClassifier | None = None,
        config: Settings | None = None,
    ) -> None:
        self.config = config or default_settings
        super().__init__(namespace or self.config.mehfil_namespace)
        self.registry = registry or ConnectionRegistry()
        self.session_factory = session_factory or SessionLocal
        self.classifier = classifier or get_classifier()

    # Dispatch

    async def trigger_event(self, event: str, *args: Any) -> Any:
        suffix = EVENT_HANDLERS.get(event)
        if suffix is None:
            return await super().trigger_event(event, *args)
        sid = args[0]
        data = args[1] if len(args) > 1 else None
        handler = getattr(self, f"handle_{suffix}")
        return await self._guarded(sid, event, handler, data)

    async def _guarded(
        self,
        sid: str,
        event: str,
        handler: Callable[[str, Any], Awaitable[Any]],
        data: Any,
    ) -> Any:
        """Run ``handler``; its return value becomes the event ack."""
        try:
            return await handler(sid, data)
        except ValidationError as exc:
            logger.info("Invalid %s payload from %s: %s", event, sid, exc.errors()[:1])
            await self._error(sid, f"Invalid {event} payload")
        except MehfilError as exc:
            await self._error(sid, str(exc))
        except SQLAlchemyError:
            logger.exception("Store failure while handling %s for %s", event, sid)
            await self._error(sid, GENERIC_ERROR)
        except Exception:
            logger.exception("Unhandled error while handling %s for %s", event, sid)
            await self._error(sid, GENERIC_ERROR)
        return None

    async def _error(self, sid: str, message: str) -> None:
        await self.emit("error", ErrorOut(message=message).to_payload(), to=sid)

    def _require_session(self, sid: str) -> ConnectedSession:
        session = self.registry.by_sid(sid)
        if session is None:
            raise NotRegisteredError()
        return session

    @staticmethod
    def _payload(data: Any) -> dict[str, Any]:
        return data if isinstance(data, dict) else {}

    async def broadcast_online_count(self) -> None:
        await self.emit("onlineCount", self.registry.online_count)

    async def notify_ban_status(self, user_id: str, status: BanStatus) -> bool:
        """Push ``postingBanStatus`` to the user's live socket, if any."""
        sid = self.registry.sid_for_user(user_id)
        if sid is None:
            return False
        await self._emit_ban_status(sid, status)
        return True

    async def _emit_ban_status(self, sid: str, status: BanStatus) -> None:
        await self.emit("postingBanStatus", BanStatusOut.from_status(status).to_payload(), to=sid)

    # Lifecycle

    async def on_connect(self, sid: str, environ: dict, auth: Any = None) -> None:
        if self.config.mehfil_paused:
            logger.info("Refusing connection %s while Mehfil is paused", sid)
            raise ConnectionRefusedError(self.config.mehfil_paused_message)
        logger.debug("Socket %s connected", sid)

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        session = self.registry.unregister(sid)
        if session is not None:
            logger.info("User %s disconnected", session.user_id)
        await self.broadcast_online_count()

    # Handlers

    async def handle_register(self, sid: str, data: Any) -> dict[str, Any]:
        payload = RegisterPayload.model_validate(self._payload(data))

        async with self.session_factory() as db:
            await UserRepository(db).ensure(payload.id, payload.name, payload.avatar)
            moderation = ModerationService(db, self.classifier, self.config)
            status = await moderation.posting_ban_status(payload.id)
            await db.commit()

        previous_sid = self.registry.sid_for_user(payload.id)
        connected = self.registry.register(sid, payload.id, payload.name, payload.avatar)
        if payload.room is not None:
            self.registry.set_view(sid, payload.room)

        if previous_sid is not None and previous_sid != sid:
            # The replaced socket must stop receiving room broadcasts.
            for group in ALL_ROOM_GROUPS:
                await self.leave_room(previous_sid, group)
            logger.info("User %s moved from socket %s to %s", payload.id, previous_sid, sid)

        for group in ALL_ROOM_GROUPS:
            await self.leave_room(sid, group)
        for group in groups_for_view(connected.view):
            await self.enter_room(sid, group)
        logger.info("User %s registered on %s", payload.id, sid)

        if status.is_active:
            await self._emit_ban_status(sid, status)
        await self.broadcast_online_count()
        return {"registered": True, "room": connected.view.value}

    async def handle_check_posting_ban(self, sid: str, data: Any) -> None:
        connected = self._require_session(sid)
        async with self.session_factory() as db:
            moderation = ModerationService(db, self.classifier, self.config)
            status = await moderation.posting_ban_status(connected.user_id)
            await db.commit()
        await self._emit_ban_status(sid, status)

    async def handle_join_room(self, sid: str, data: Any) -> None:
        self._require_session(sid)
        payload = JoinRoomPayload.model_validate(self._payload(data))
        for group in ALL_ROOM_GROUPS:
            await self.leave_room(sid, group)
        for group in groups_for_view(payload.room):
            await self.enter_room(sid, group)
        self.registry.set_view(sid, payload.room)

    async def handle_load_thoughts(self, sid: str, data: Any) -> None:
        payload = LoadThoughtsPayload.model_validate(self._payload(data))
        connected = self.registry.by_sid(sid)
        view = payload.room or (connected.view if connected else DEFAULT_FEED_VIEW)
        viewer_id = connected.user_id if connected else None

        async with self.session_factory() as db:
            page = await FeedService(db, config=self.config).load_page(
                view,
                page=payload.page,
                limit=payload.limit,
                viewer_id=viewer_id,
            )

        out = ThoughtsPageOut(
            thoughts=[
                to_thought_out(
                    thought,
                    viewer_id=viewer_id,
                    has_reacted=thought.id in page.reacted_ids,
                )
                for thought in page.thoughts
            ],
            room=view,
            page=page.page,
            has_more=page.has_more,
        )
        await self.emit("thoughts", out.to_payload(), to=sid)

    async def handle_new_thought(self, sid: str, data: Any) -> None:
        connected = self._require_session(sid)
        payload = NewThoughtPayload.model_validate(self._payload(data))

        async with self.session_factory() as db:
            result = await ModerationService(db, self.classifier, self.config).submit_thought(
                user_id=connected.user_id,
                author_name=connected.name,
                author_avatar=connected.avatar,
                content=payload.content,
                view=payload.room or connected.view,
                image_url=payload.image_url,
                is_anonymous=payload.is_anonymous,
            )
            await db.commit()

        await self._deliver_submission(sid, connected, result)

    async def _deliver_submission(
        self,
        sid: str,
        connected: ConnectedSession,
        result: SubmissionResult,
    ) -> None:
        if result.kind == SubmissionKind.BANNED:
            rejected = ThoughtRejectedOut(message=result.message)
            await self.emit("thoughtRejected", rejected.to_payload(), to=sid)
            if result.ban is not None:
                await self._emit_ban_status(sid, result.ban)
            return

        if result.kind == SubmissionKind.REJECTED:
            rejected = ThoughtRejectedOut(
                message=result.message,
                strikes_remaining=result.strikes_remaining,
            )
            await self.emit("thoughtRejected", rejected.to_payload(), to=sid)
            return

        if result.thought is None or result.category is None:
            raise MehfilError(GENERIC_ERROR)
        accepted = ThoughtAcceptedOut(message=result.message, category=result.category.value)
        own_view = to_thought_out(result.thought, viewer_id=connected.user_id).to_payload()

        if result.broadcast:
            room = room_for_category(result.category)
            public_view = to_thought_out(result.thought).to_payload()
            await self.emit("thoughtCreated", public_view, room=group_name(room), skip_sid=sid)

        # Shadow echoes stop here: only the author ever sees them.
        await self.emit("thoughtCreated", own_view, to=sid)
        await self.emit("thoughtAccepted", accepted.to_payload(), to=sid)
        if result.rerouted:
            rerouted = ThoughtReroutedOut(
                room=result.category.value,
                reason=REROUTED_REASON.format(room=result.category.value.title()),
            )
            await self.emit("thoughtRerouted", rerouted.to_payload(), to=sid)

    async def handle_toggle_reaction(self, sid: str, data: Any) -> None:
        connected = self._require_session(sid)
        payload = ThoughtRefPayload.model_validate(self._payload(data))

        async with self.session_factory() as db:
            toggle = await FeedService(db, config=self.config).toggle_reaction(
                connected.user_id, payload.thought_id
            )
            await db.commit()

        update = ReactionUpdatedOut(
            thought_id=payload.thought_id,
            relatable_count=toggle.relatable_count,
            user_id=connected.user_id,
            has_reacted=toggle.has_reacted,
        ).to_payload()
        room = room_for_category(toggle.thought.category)
        await self.emit("reactionUpdated", update, room=group_name(room), skip_sid=sid)
        await self.emit("reactionUpdated", update, to=sid)

    async def handle_edit_thought(self, sid: str, data: Any) -> None:
        connected = self._require_session(sid)
        payload = EditThoughtPayload.model_validate(self._payload(data))

        async with self.session_factory() as db:
            service = FeedService(db, self.classifier, self.config)
            outcome = await service.edit_thought(
                connected.user_id, payload.thought_id, payload.content
            )
            reacted = await service.thoughts.reacted_ids(connected.user_id, [outcome.thought.id])
            await db.commit()

        thought = outcome.thought
        room = room_for_category(thought.category)
        if outcome.moved:
            old_room = room_for_category(outcome.previous_category)
            deleted = ThoughtDeletedOut(thought_id=thought.id).to_payload()
            await self.emit("thoughtDeleted", deleted, room=group_name(old_room), skip_sid=sid)
        await self.emit(
            "thoughtUpdated",
            to_thought_out(thought).to_payload(),
            room=group_name(room),
            skip_sid=sid,
        )
        own_view = to_thought_out(
            thought,
            viewer_id=connected.user_id,
            has_reacted=thought.id in reacted,
        )
        await self.emit("thoughtUpdated", own_view.to_payload(), to=sid)

    async def handle_delete_thought(self, sid: str, data: Any) -> None:
        connected = self._require_session(sid)
        payload = ThoughtRefPayload.model_validate(self._payload(data))

        async with self.session_factory() as db:
            category = await FeedService(db, config=self.config).delete_thought(
                connected.user_id, payload.thought_id
            )
            await db.commit()

        deleted = ThoughtDeletedOut(thought_id=payload.thought_id).to_payload()
        room = room_for_category(category)
        await self.emit("thoughtDeleted", deleted, room=group_name(room), skip_sid=sid)
        await self.emit("thoughtDeleted", deleted, to=sid)
