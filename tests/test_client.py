# tests/test_client.py
"""Tests for the client-side feed state and the Socket.IO client wrapper."""

import importlib.util
from typing import Any

import pytest
import socketio
from socketio.exceptions import BadNamespaceError, TimeoutError as SocketTimeoutError

from mehfil.client import FeedState, MehfilClient
from mehfil.services.rooms import FeedView


def _thought(thought_id: str, category: str = "ACADEMIC", **fields: Any) -> dict[str, Any]:
    return {
        "id": thought_id,
        "category": category,
        "content": f"Thought {thought_id}",
        "relatableCount": 0,
        "hasReacted": False,
        "isOwn": False,
        **fields,
    }


class FakeAsyncClient:
    """Stands in for ``socketio.AsyncClient``; records outgoing traffic."""

    def __init__(self, ack: Any = None, call_error: Exception | None = None) -> None:
        self.handlers: dict[str, Any] = {}
        self.emitted: list[tuple[str, Any]] = []
        self.calls: list[tuple[str, Any, float | None]] = []
        self.tasks: list[Any] = []
        self.ack = ack if ack is not None else {"registered": True, "room": "ALL"}
        self.call_error = call_error
        self.emit_error: Exception | None = None

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def emit(self, event, data=None, namespace=None, callback=None):
        if self.emit_error is not None:
            raise self.emit_error
        self.emitted.append((event, data))

    async def call(self, event, data=None, namespace=None, timeout=60):
        self.calls.append((event, data, timeout))
        if self.call_error is not None:
            raise self.call_error
        return self.ack

    def start_background_task(self, target, *args, **kwargs):
        self.tasks.append(target)

    async def connect(self, url, namespaces=None, auth=None):
        self.connected_to = (url, namespaces, auth)


@pytest.fixture()
def state() -> FeedState:
    return FeedState("me")


def test_first_page_replaces_and_later_pages_append(state: FeedState) -> None:
    """Test that page one resets the list and later pages skip duplicates."""
    state.thoughts = [_thought("stale")]
    state.apply_thoughts(
        {"thoughts": [_thought("a", hasReacted=True), _thought("b")], "page": 1, "hasMore": True}
    )
    assert [t["id"] for t in state.thoughts] == ["a", "b"]
    assert state.user_reactions == {"a"}

    state.apply_thoughts({"thoughts": [_thought("b"), _thought("c")], "page": 2, "hasMore": False})
    assert [t["id"] for t in state.thoughts] == ["a", "b", "c"]
    assert state.page == 2
    assert state.has_more is False


def test_add_thought_respects_the_current_view(state: FeedState) -> None:
    state.set_view("academic")
    assert state.view == FeedView.ACADEMIC

    assert state.add_thought(_thought("a")) is True
    assert state.add_thought(_thought("r", "REFLECTIVE")) is False
    assert state.add_thought(_thought("a")) is False
    assert [t["id"] for t in state.thoughts] == ["a"]


def test_new_thoughts_are_prepended(state: FeedState) -> None:
    state.apply_thoughts({"thoughts": [_thought("old")], "page": 1, "hasMore": False})
    state.add_thought(_thought("new", "REFLECTIVE"))
    assert [t["id"] for t in state.thoughts] == ["new", "old"]


def test_set_view_clears_the_list(state: FeedState) -> None:
    state.apply_thoughts({"thoughts": [_thought("a")], "page": 3, "hasMore": False})
    state.set_view(FeedView.REFLECTIVE)
    assert state.thoughts == []
    assert state.page == 0
    assert state.has_more is True


def test_update_keeps_local_reaction_and_ownership(state: FeedState) -> None:
    state.apply_thoughts(
        {"thoughts": [_thought("a", hasReacted=True, isOwn=True)], "page": 1, "hasMore": False}
    )
    state.apply_thought_updated(_thought("a", content="Edited text", editedAt="2026-01-01"))

    updated = state.get("a")
    assert updated["content"] == "Edited text"
    assert updated["hasReacted"] is True
    assert updated["isOwn"] is True


def test_update_that_leaves_the_view_drops_the_thought(state: FeedState) -> None:
    state.set_view(FeedView.ACADEMIC)
    state.add_thought(_thought("a"))
    state.apply_thought_updated(_thought("a", "REFLECTIVE"))
    assert state.get("a") is None


def test_update_for_unknown_thought_is_added(state: FeedState) -> None:
    state.apply_thought_updated(_thought("moved-in"))
    assert state.get("moved-in") is not None


def test_delete_removes_thought_and_reaction(state: FeedState) -> None:
    state.apply_thoughts(
        {"thoughts": [_thought("a", hasReacted=True), _thought("b")], "page": 1, "hasMore": False}
    )
    state.apply_thought_deleted({"thoughtId": "a"})
    assert [t["id"] for t in state.thoughts] == ["b"]
    assert "a" not in state.user_reactions


def test_reaction_updates_from_others_only_touch_the_count(state: FeedState) -> None:
    state.add_thought(_thought("a", relatableCount=2))
    state.apply_reaction_update(
        {"thoughtId": "a", "userId": "someone", "hasReacted": True, "relatableCount": 3}
    )
    thought = state.get("a")
    assert thought["relatableCount"] == 3
    assert thought["hasReacted"] is False
    assert "a" not in state.user_reactions


def test_own_reaction_update_confirms_the_optimistic_toggle(state: FeedState) -> None:
    state.add_thought(_thought("a", relatableCount=2))

    assert state.optimistic_toggle("a") is True
    assert state.get("a")["relatableCount"] == 3
    assert state.pending_reactions == {"a"}

    state.apply_reaction_update(
        {"thoughtId": "a", "userId": "me", "hasReacted": True, "relatableCount": 3}
    )
    assert state.pending_reactions == set()
    assert state.user_reactions == {"a"}
    assert state.get("a")["hasReacted"] is True


def test_rollback_restores_the_snapshot(state: FeedState) -> None:
    """Test that a refused toggle puts count and flag back where they were."""
    state.apply_thoughts(
        {
            "thoughts": [_thought("a", hasReacted=True, relatableCount=1)],
            "page": 1,
            "hasMore": False,
        }
    )

    assert state.optimistic_toggle("a") is False
    assert state.get("a")["relatableCount"] == 0
    # A second toggle before the server answers keeps the first snapshot.
    assert state.optimistic_toggle("a") is True

    state.rollback_reaction("a")
    thought = state.get("a")
    assert thought["relatableCount"] == 1
    assert thought["hasReacted"] is True
    assert state.user_reactions == {"a"}


def test_error_rolls_back_pending_reactions(state: FeedState) -> None:
    state.add_thought(_thought("a"))
    state.optimistic_toggle("a")

    state.apply_error({"message": "Thought not found"})

    assert state.last_error == "Thought not found"
    assert state.get("a")["relatableCount"] == 0
    assert state.user_reactions == set()
    assert state.pending_reactions == set()


def test_ban_status_controls_can_post(state: FeedState) -> None:
    assert state.can_post is True
    state.apply_ban_status({"isActive": True, "message": "Banned for 3 days"})
    assert state.can_post is False
    state.apply_ban_status({"isActive": False})
    assert state.can_post is True


def test_online_count_and_notices(state: FeedState) -> None:
    state.apply_online_count("4")
    state.add_notice("rejected", {"message": "Please keep it respectful"})
    assert state.online_count == 4
    assert state.notices[0].kind == "rejected"
    assert state.notices[0].message == "Please keep it respectful"


def _client(fake: FakeAsyncClient) -> MehfilClient:
    return MehfilClient(
        "http://mehfil.test", user_id="me", name="Me", namespace="/mehfil", client=fake
    )


def test_client_binds_server_events() -> None:
    fake = FakeAsyncClient()
    client = _client(fake)

    fake.handlers["thoughtCreated"](_thought("a"))
    fake.handlers["thoughtRerouted"]({"message": "Moved to REFLECTIVE"})

    assert client.state.get("a") is not None
    assert client.state.notices[0].kind == "rerouted"


@pytest.mark.asyncio
async def test_connect_schedules_session_resume() -> None:
    fake = FakeAsyncClient()
    client = _client(fake)

    await fake.handlers["connect"]()

    assert fake.tasks == [client.resume_session]


@pytest.mark.asyncio
async def test_resume_registers_with_room_then_loads_first_page() -> None:
    """Test that the first page is requested only after register is acknowledged."""
    fake = FakeAsyncClient(ack={"registered": True, "room": "REFLECTIVE"})
    client = _client(fake)
    client.state.set_view(FeedView.REFLECTIVE)

    assert await client.resume_session() is True

    event, payload, timeout = fake.calls[0]
    assert event == "register"
    assert payload == {"id": "me", "name": "Me", "avatar": None, "room": "REFLECTIVE"}
    assert timeout == 10
    assert fake.emitted == [("loadThoughts", {"page": 1, "room": "REFLECTIVE"})]


@pytest.mark.asyncio
async def test_resume_without_ack_skips_the_reload() -> None:
    fake = FakeAsyncClient(call_error=SocketTimeoutError())
    client = _client(fake)

    assert await client.resume_session() is False
    assert fake.emitted == []


@pytest.mark.asyncio
async def test_join_room_and_load_more() -> None:
    fake = FakeAsyncClient()
    client = _client(fake)

    await client.join_room("academic")
    client.state.apply_thoughts({"thoughts": [_thought("a")], "page": 1, "hasMore": True})
    assert await client.load_more() is True
    client.state.apply_thoughts({"thoughts": [], "page": 2, "hasMore": False})
    assert await client.load_more() is False

    assert fake.emitted == [
        ("joinRoom", {"room": "ACADEMIC"}),
        ("loadThoughts", {"page": 1, "room": "ACADEMIC"}),
        ("loadThoughts", {"page": 2, "room": "ACADEMIC"}),
    ]


@pytest.mark.asyncio
async def test_post_edit_delete_and_ban_check_payloads() -> None:
    fake = FakeAsyncClient()
    client = _client(fake)

    await client.post_thought("Looking for a study group", is_anonymous=True)
    await client.edit_thought("t1", "Looking for a calculus study group")
    await client.delete_thought("t1")
    await client.check_posting_ban()

    assert fake.emitted == [
        (
            "newThought",
            {
                "content": "Looking for a study group",
                "imageUrl": None,
                "isAnonymous": True,
                "room": "ALL",
            },
        ),
        ("editThought", {"thoughtId": "t1", "content": "Looking for a calculus study group"}),
        ("deleteThought", {"thoughtId": "t1"}),
        ("checkPostingBan", None),
    ]


@pytest.mark.asyncio
async def test_toggle_reaction_rolls_back_when_emit_fails() -> None:
    fake = FakeAsyncClient()
    client = _client(fake)
    client.state.add_thought(_thought("a", relatableCount=5))
    fake.emit_error = BadNamespaceError("/mehfil is not a connected namespace.")

    with pytest.raises(BadNamespaceError):
        await client.toggle_reaction("a")

    thought = client.state.get("a")
    assert thought["relatableCount"] == 5
    assert thought["hasReacted"] is False
    assert client.state.pending_reactions == set()


@pytest.mark.asyncio
async def test_toggle_reaction_sends_the_event() -> None:
    fake = FakeAsyncClient()
    client = _client(fake)
    client.state.add_thought(_thought("a"))

    assert await client.toggle_reaction("a") is True
    assert fake.emitted == [("toggleReaction", {"thoughtId": "a"})]
    assert client.state.pending_reactions == {"a"}


def test_default_client_uses_the_aiohttp_transport() -> None:
    """Test that the real Socket.IO client is built with its transport installed."""
    assert importlib.util.find_spec("aiohttp") is not None

    client = MehfilClient("http://mehfil.test", user_id="me", name="Me")

    assert isinstance(client.sio, socketio.AsyncClient)
    assert "/mehfil" in client.sio.handlers
    assert "thoughtCreated" in client.sio.handlers["/mehfil"]
