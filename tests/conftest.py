# tests/conftest.py
from __future__ import annotations

import os
from collections import defaultdict
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime
from typing import Any

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CLASSIFIER_API_KEY"] = ""
os.environ["MEHFIL_PAUSED"] = "false"

from mehfil.api.v1.dependencies import get_classifier_dep  # noqa: E402
from mehfil.core.security import create_access_token  # noqa: E402
from mehfil.core.settings import Settings  # noqa: E402
from mehfil.db.session import create_tables, get_db  # noqa: E402
from mehfil.main import app as fastapi_app  # noqa: E402
from mehfil.models import Category, Thought, ThoughtStatus, User  # noqa: E402
from mehfil.realtime.gateway import MehfilNamespace  # noqa: E402
from mehfil.repositories.thought_repo import ThoughtRepository  # noqa: E402
from mehfil.repositories.user_repo import UserRepository  # noqa: E402
from mehfil.services.classifier import ClassifierConfig, ContentClassifier  # noqa: E402
from mehfil.services.registry import ConnectionRegistry  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite://"


class FakeSocketServer:
    """Records what an AsyncNamespace emits and which groups each socket is in."""

    def __init__(self) -> None:
        self.connected: set[str] = set()
        self.groups: dict[str, set[str]] = defaultdict(set)
        self.received: dict[str, list[tuple[str, Any]]] = defaultdict(list)

    async def emit(
        self,
        event: str,
        data: Any = None,
        to: str | None = None,
        room: str | None = None,
        skip_sid: Any = None,
        namespace: str | None = None,
        **kwargs: Any,
    ) -> None:
        target = to if to is not None else room
        if target is None:
            recipients = set(self.connected)
        elif target in self.groups:
            recipients = set(self.groups[target])
        else:
            recipients = {target}
        if isinstance(skip_sid, (list, set, tuple)):
            skipped = set(skip_sid)
        else:
            skipped = {skip_sid}
        for sid in recipients - skipped:
            self.received[sid].append((event, data))

    async def enter_room(self, sid: str, room: str, namespace: str | None = None) -> None:
        self.groups[room].add(sid)

    async def leave_room(self, sid: str, room: str, namespace: str | None = None) -> None:
        self.groups[room].discard(sid)

    def events(self, sid: str, name: str | None = None) -> list[Any]:
        """Return the payloads ``sid`` received, optionally for one event."""
        return [data for event, data in self.received[sid] if name is None or event == name]

    def event_names(self, sid: str) -> list[str]:
        return [event for event, _ in self.received[sid]]

    def rooms_of(self, sid: str) -> set[str]:
        return {group for group, members in self.groups.items() if sid in members}

    def clear(self) -> None:
        self.received.clear()


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with the model classifier disabled and default thresholds."""
    return Settings(
        SECRET_KEY="test-secret-key",
        DATABASE_URL=TEST_DB_URL,
        CLASSIFIER_API_KEY=None,
        MEHFIL_PAUSED=False,
        RECLASSIFY_ON_EDIT=False,
    )


@pytest_asyncio.fixture()
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture()
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def classifier() -> ContentClassifier:
    """Heuristic-only classifier; no network access."""
    return ContentClassifier(
        ClassifierConfig(
            api_key=None,
            base_url="http://classifier.test",
            model="test-model",
            timeout_seconds=1.0,
        )
    )


@pytest.fixture()
def fake_server() -> FakeSocketServer:
    return FakeSocketServer()


@pytest.fixture()
def namespace(
    session_factory: async_sessionmaker[AsyncSession],
    classifier: ContentClassifier,
    test_settings: Settings,
    fake_server: FakeSocketServer,
) -> MehfilNamespace:
    gateway = MehfilNamespace(
        "/mehfil",
        registry=ConnectionRegistry(),
        session_factory=session_factory,
        classifier=classifier,
        config=test_settings,
    )
    gateway.server = fake_server
    return gateway


@pytest.fixture()
def connect(
    namespace: MehfilNamespace,
    fake_server: FakeSocketServer,
) -> Callable[..., Awaitable[Any]]:
    """Connect ``sid`` and register it as ``user_id``; returns the register ack."""

    async def _connect(
        sid: str,
        user_id: str,
        name: str = "",
        room: str | None = None,
        avatar: str | None = None,
    ) -> Any:
        fake_server.connected.add(sid)
        await namespace.on_connect(sid, {})
        payload: dict[str, Any] = {"id": user_id, "name": name or user_id.title()}
        if avatar is not None:
            payload["avatar"] = avatar
        if room is not None:
            payload["room"] = room
        return await namespace.trigger_event("register", sid, payload)

    return _connect


@pytest.fixture()
def make_user(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[User]]:
    """Persist a user, applying any moderation field overrides."""

    async def _make_user(user_id: str, name: str = "", **fields: Any) -> User:
        async with session_factory() as session:
            user = await UserRepository(session).ensure(user_id, name or user_id.title(), None)
            for key, value in fields.items():
                setattr(user, key, value)
            await session.commit()
            return user

    return _make_user


@pytest.fixture()
def make_thought(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[Thought]]:
    """Persist a thought directly, bypassing moderation."""

    async def _make_thought(
        user_id: str = "author",
        content: str = "Does anyone have good notes for the physics exam next week?",
        *,
        category: Category = Category.ACADEMIC,
        status: ThoughtStatus = ThoughtStatus.APPROVED,
        is_anonymous: bool = False,
        created_at: datetime | None = None,
        expires_at: datetime | None = None,
    ) -> Thought:
        async with session_factory() as session:
            thought = await ThoughtRepository(session).create(
                user_id=user_id,
                author_name=user_id.title(),
                author_avatar=None,
                is_anonymous=is_anonymous,
                content=content,
                image_url=None,
                category=category,
                status=status,
                created_at=created_at,
                expires_at=expires_at,
            )
            await session.commit()
            return thought

    return _make_thought


@pytest.fixture()
def app(
    session_factory: async_sessionmaker[AsyncSession],
    classifier: ContentClassifier,
    namespace: MehfilNamespace,
):
    async def _get_db_override() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    previous_gateway = getattr(fastapi_app.state, "mehfil_gateway", None)
    fastapi_app.dependency_overrides[get_db] = _get_db_override
    fastapi_app.dependency_overrides[get_classifier_dep] = lambda: classifier
    fastapi_app.state.mehfil_gateway = namespace
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.pop(get_db, None)
        fastapi_app.dependency_overrides.pop(get_classifier_dep, None)
        fastapi_app.state.mehfil_gateway = previous_gateway


@pytest_asyncio.fixture()
async def client(app) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Return a builder for bearer headers signed like the portal tokens."""

    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
