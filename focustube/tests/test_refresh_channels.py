from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import FakeYouTube, create_profile, make_channel
from focustube.db.models import ChannelSubscription, YouTubeVideo
from focustube.jobs import refresh_channels
from focustube.services import channel_registry
from focustube.services.youtube import YouTubeConfigError


@pytest.fixture
def job_sessions(monkeypatch: pytest.MonkeyPatch, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
    @asynccontextmanager
    async def scope() -> AsyncIterator[AsyncSession]:
        async with sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    monkeypatch.setattr(refresh_channels, "session_scope", scope)


async def _seed(sessionmaker: async_sessionmaker[AsyncSession], youtube: FakeYouTube) -> None:
    async with sessionmaker() as session:
        await create_profile(session, "user-1")
        for label in "ABC":
            channel = youtube.add(make_channel(label), videos=2)
            await channel_registry.upsert_channel(session, channel)
        session.add(ChannelSubscription(user_id="user-1", channel_id=make_channel("A").channel_id))
        await session.commit()


async def _video_count(sessionmaker: async_sessionmaker[AsyncSession]) -> int:
    async with sessionmaker() as session:
        return await session.scalar(select(func.count()).select_from(YouTubeVideo))


@pytest.mark.asyncio
async def test_refresh_once_skips_failing_channels(
    sessionmaker: async_sessionmaker[AsyncSession], youtube: FakeYouTube, job_sessions: None
) -> None:
    await _seed(sessionmaker, youtube)
    youtube.fail_videos_for.add(make_channel("B").uploads_playlist_id)

    written = await refresh_channels.refresh_once(youtube=youtube)

    assert written == 4
    assert await _video_count(sessionmaker) == 4
    video_calls = [value for method, value in youtube.calls if method == "videos"]
    assert sorted(video_calls) == sorted(make_channel(label).uploads_playlist_id for label in "ABC")


@pytest.mark.asyncio
async def test_refresh_once_for_one_user(
    sessionmaker: async_sessionmaker[AsyncSession], youtube: FakeYouTube, job_sessions: None
) -> None:
    await _seed(sessionmaker, youtube)

    assert await refresh_channels.refresh_once("user-1", youtube=youtube) == 2
    assert youtube.calls == [("videos", make_channel("A").uploads_playlist_id)]
    assert await refresh_channels.refresh_once("nobody", youtube=youtube) == 0


@pytest.mark.asyncio
async def test_refresh_once_aborts_without_api_key(
    sessionmaker: async_sessionmaker[AsyncSession], youtube: FakeYouTube, job_sessions: None
) -> None:
    await _seed(sessionmaker, youtube)
    youtube.error = YouTubeConfigError("YouTube API key is not configured")

    with pytest.raises(YouTubeConfigError):
        await refresh_channels.refresh_once(youtube=youtube)
    assert len(youtube.calls) == 1
    assert await _video_count(sessionmaker) == 0
