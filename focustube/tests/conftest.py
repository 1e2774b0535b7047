"""Shared fixtures: in-memory database, fake YouTube client and an authenticated API client."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from standardwebhooks.webhooks import Webhook

from focustube.core.config import settings
from focustube.db.models import Base, Profile
from focustube.db.session import get_session
from focustube.services.youtube import ChannelData, VideoData, YouTubeAPIError, get_youtube_client

JWT_SECRET = "test-jwt-secret"
BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _memory_db_url() -> str:
    return f"sqlite+aiosqlite:///file:focustube_{uuid.uuid4().hex}?mode=memory&cache=shared"


def channel_id_for(label: str) -> str:
    return ("UC" + label * 22)[:24]


def make_channel(label: str, **overrides) -> ChannelData:
    channel_id = channel_id_for(label)
    values = {
        "channel_id": channel_id,
        "title": f"Channel {label}",
        "description": f"About channel {label}",
        "thumbnail_url": f"https://img.example/{label}.jpg",
        "subscriber_count": "1200",
        "video_count": "42",
        "uploads_playlist_id": "UU" + channel_id[2:],
        "custom_url": f"@channel{label.lower()}",
    }
    values.update(overrides)
    return ChannelData(**values)


def make_videos(channel: ChannelData, count: int, *, start: datetime = BASE_TIME) -> list[VideoData]:
    return [
        VideoData(
            video_id=f"{channel.channel_id[-4:]}v{index:03d}",
            channel_id=channel.channel_id,
            title=f"{channel.title} video {index}",
            published_at=start - timedelta(hours=index),
            thumbnail_url=f"https://img.example/{index}.jpg",
            duration="PT10M5S",
            view_count="1500",
        )
        for index in range(count)
    ]


class FakeYouTube:
    """Stands in for ``YouTubeClient`` with canned channels and uploads."""

    def __init__(self) -> None:
        self.channels: dict[str, ChannelData] = {}
        self.handles: dict[str, str] = {}
        self.usernames: dict[str, str] = {}
        self.uploads: dict[str, list[VideoData]] = {}
        self.fail_videos_for: set[str] = set()
        self.error: Exception | None = None
        self.calls: list[tuple[str, str]] = []

    async def __aenter__(self) -> FakeYouTube:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    def add(self, channel: ChannelData, *, handle: str | None = None, videos: int = 3) -> ChannelData:
        self.channels[channel.channel_id] = channel
        if handle:
            self.handles[handle.lower()] = channel.channel_id
        if channel.uploads_playlist_id:
            self.uploads[channel.uploads_playlist_id] = make_videos(channel, videos)
        return channel

    def _record(self, method: str, value: str) -> None:
        self.calls.append((method, value))
        if self.error is not None:
            raise self.error

    async def get_channel_by_id(self, channel_id: str) -> ChannelData | None:
        self._record("id", channel_id)
        return self.channels.get(channel_id)

    async def get_channel_by_handle(self, handle: str) -> ChannelData | None:
        self._record("handle", handle)
        channel_id = self.handles.get(handle.lstrip("@").lower())
        return self.channels.get(channel_id) if channel_id else None

    async def get_channel_by_username(self, username: str) -> ChannelData | None:
        self._record("username", username)
        channel_id = self.usernames.get(username.lower())
        return self.channels.get(channel_id) if channel_id else None

    async def get_channel_by_custom_url(self, custom_url: str) -> ChannelData | None:
        self._record("custom_url", custom_url)
        for channel in self.channels.values():
            if channel.custom_url and channel.custom_url.lstrip("@").lower() == custom_url.lower():
                return channel
        return None

    async def search_channels(self, query: str, max_results: int = 10) -> list[ChannelData]:
        self._record("search", query)
        matches = [c for c in self.channels.values() if query.lower() in c.title.lower()]
        return matches[:max_results]

    async def get_channel_videos(self, uploads_playlist_id: str, max_results: int = 20) -> list[VideoData]:
        self._record("videos", uploads_playlist_id)
        if uploads_playlist_id in self.fail_videos_for:
            raise YouTubeAPIError("YouTube API error: 403 quotaExceeded")
        return self.uploads.get(uploads_playlist_id, [])[:max_results]


WEBHOOK_KEY = "whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"
PRO_PRODUCT = "pdt_pro_test"
UNLIMITED_PRODUCT = "pdt_unlimited_test"


class FakeCheckoutSessions:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    async def create(self, **kwargs) -> SimpleNamespace:
        self.calls.append(kwargs)
        return SimpleNamespace(checkout_url="https://checkout.example/session", session_id="cks_1")


class FakeCustomerPortal:
    async def create(self, customer_id: str) -> SimpleNamespace:
        return SimpleNamespace(link=f"https://portal.example/{customer_id}")


class FakeDodo:
    """Duck-typed stand-in for ``AsyncDodoPayments``."""

    def __init__(self) -> None:
        self.checkout_sessions = FakeCheckoutSessions()
        self.customers = SimpleNamespace(customer_portal=FakeCustomerPortal())


def signed_headers(body: str, webhook_id: str = "msg_1") -> dict[str, str]:
    timestamp = datetime.now(timezone.utc)
    signature = Webhook(WEBHOOK_KEY).sign(webhook_id, timestamp, body)
    return {
        "webhook-id": webhook_id,
        "webhook-timestamp": str(int(timestamp.timestamp())),
        "webhook-signature": signature,
    }


@pytest_asyncio.fixture
async def sessionmaker() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(_memory_db_url(), future=True, connect_args={"uri": True})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(sessionmaker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with sessionmaker() as session:
        yield session
        await session.rollback()


async def create_profile(session: AsyncSession, user_id: str = "user-1", **overrides) -> Profile:
    values = {
        "id": user_id,
        "email": f"{user_id}@example.com",
        "subscription_tier": "free",
        "time_zone": "UTC",
        "daily_watch_limit_minutes": 60,
        "watch_limit_enabled": False,
    }
    values.update(overrides)
    profile = Profile(**values)
    session.add(profile)
    await session.flush()
    return profile


@pytest_asyncio.fixture
async def profile(session: AsyncSession) -> Profile:
    return await create_profile(session)


@pytest.fixture
def youtube() -> FakeYouTube:
    return FakeYouTube()


def make_token(user_id: str = "user-1", *, email: str | None = None, expires_in: int = 3600) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "email": email or f"{user_id}@example.com",
        "aud": "authenticated",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "user_metadata": {"full_name": "Test User"},
    }
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def auth_headers(user_id: str = "user-1") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest_asyncio.fixture
async def api(
    monkeypatch: pytest.MonkeyPatch,
    sessionmaker: async_sessionmaker[AsyncSession],
    youtube: FakeYouTube,
) -> AsyncIterator[httpx.AsyncClient]:
    """ASGI client with the database and YouTube dependencies swapped for test doubles."""

    from focustube.main import app

    monkeypatch.setattr(settings, "auth_jwt_secret", JWT_SECRET)
    monkeypatch.setattr(settings, "auth_jwt_audience", "authenticated")

    async def _session() -> AsyncIterator[AsyncSession]:
        async with sessionmaker() as db_session:
            yield db_session

    async def _youtube() -> AsyncIterator[FakeYouTube]:
        yield youtube

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_youtube_client] = _youtube
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
