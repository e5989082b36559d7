"""Pytest configuration and fixtures for the forum engine.

Every test gets a fresh in-memory SQLite database (aiosqlite). Service
tests drive ForumService on one session; HTTP tests go through
app.main:app with get_db overridden to the same database.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["FORUM_EVENTS_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import Base, build_engine, get_db
from app.main import app
from app.models import forum as forum_models  # noqa: F401
from app.modules.forum.service import ForumService
from app.modules.forum.types import AuthorSnapshot, ReplyDraft, TopicDraft

ALICE = AuthorSnapshot(id="alice", name="Alice", email="alice@example.com")
BOB = AuthorSnapshot(id="bob", name="Bob")
CAROL = AuthorSnapshot(id="carol", name="Carol")


class RecordingPublisher:
    """EventPublisher that keeps everything it was asked to publish."""

    def __init__(self) -> None:
        self.events = []

    async def publish(self, event) -> None:
        self.events.append(event)


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def forum(db_session, publisher) -> ForumService:
    return ForumService(db_session, publisher=publisher)


@pytest.fixture
async def category(forum):
    return await forum.create_category(name="General Discussion")


@pytest.fixture
async def moderated_category(forum):
    return await forum.create_category(
        name="Announcements",
        requires_approval=True,
        moderators=["mod1", "mod2"],
    )


@pytest.fixture
async def topic(forum, category):
    return await forum.create_topic(
        TopicDraft(
            category_id=category.id,
            title="Hello World",
            content="First post",
            tags=["intro"],
        ),
        ALICE,
    )


async def add_reply(forum, topic_id, author=BOB, content="Nice topic", parent=None):
    """Post a reply on behalf of ``author``."""
    return await forum.create_reply(
        ReplyDraft(topic_id=topic_id, content=content, parent_reply_id=parent),
        author,
    )


@pytest.fixture
async def client(session_factory) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI)."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
