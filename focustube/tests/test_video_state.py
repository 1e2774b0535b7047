"""Tests for watched flags, resume progress, history and watch later."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_channel, make_videos
from focustube.db.models import Profile, utcnow
from focustube.services import channel_registry, video_state


async def _cache_videos(session: AsyncSession, count: int = 3) -> list[str]:
    channel = make_channel("A")
    await channel_registry.upsert_channel(session, channel)
    videos = make_videos(channel, count)
    await channel_registry.upsert_videos(session, videos)
    return [video.video_id for video in videos]


@pytest.mark.asyncio
async def test_watch_delta_marks_watched_after_threshold(session: AsyncSession, profile: Profile) -> None:
    first = await video_state.log_video_watch_delta(session, profile.id, "vid", 10, new_session=True)
    assert first.total_watched_seconds == 10
    assert first.watched is False

    second = await video_state.log_video_watch_delta(session, profile.id, "vid", 25)
    assert second.total_watched_seconds == 35
    assert second.watched is True

    state = await video_state.get_video_state(session, profile.id, "vid")
    assert state.watch_count == 1
    assert state.watched_at is not None
    assert state.first_watched_at is not None


@pytest.mark.asyncio
async def test_watch_delta_ignores_negative_and_never_rewinds(session: AsyncSession, profile: Profile) -> None:
    await video_state.log_video_watch_delta(session, profile.id, "vid", 5, progress_seconds=120)
    result = await video_state.log_video_watch_delta(session, profile.id, "vid", -50, progress_seconds=60)

    state = await video_state.get_video_state(session, profile.id, "vid")
    assert result.total_watched_seconds == 5
    assert state.progress_seconds == 120


@pytest.mark.asyncio
async def test_watch_delta_completed_marks_watched(session: AsyncSession, profile: Profile) -> None:
    result = await video_state.log_video_watch_delta(session, profile.id, "vid", 3, completed=True)
    assert result.watched is True
    assert (await video_state.get_video_state(session, profile.id, "vid")).completed is True


@pytest.mark.asyncio
async def test_update_progress_and_mark_watched(session: AsyncSession, profile: Profile) -> None:
    state = await video_state.update_video_progress(session, profile.id, "vid", 42)
    assert state.progress_seconds == 42
    assert state.watched is False

    state = await video_state.update_video_progress(session, profile.id, "vid", 600, completed=True)
    assert state.watched is True
    assert state.completed is True

    state = await video_state.mark_video_watched(session, profile.id, "vid", watched=False)
    assert state.watched is False
    assert state.watched_at is None


@pytest.mark.asyncio
async def test_state_is_per_user(session: AsyncSession, profile: Profile) -> None:
    await video_state.mark_video_watched(session, profile.id, "vid")
    assert await video_state.get_video_state(session, "user-2", "vid") is None


@pytest.mark.asyncio
async def test_history_respects_tier_window(session: AsyncSession, profile: Profile) -> None:
    recent, old, untouched = await _cache_videos(session)
    await video_state.mark_video_watched(session, profile.id, recent)
    old_state = await video_state.mark_video_watched(session, profile.id, old)
    old_state.watched_at = utcnow() - timedelta(days=10)
    old_state.updated_at = old_state.watched_at
    await session.flush()

    history = await video_state.get_watch_history(session, profile.id)
    assert [entry.state.video_id for entry in history] == [recent]
    assert history[0].video.title == "Channel A video 0"
    assert history[0].channel.title == "Channel A"

    profile.subscription_tier = "unlimited"
    history = await video_state.get_watch_history(session, profile.id)
    assert [entry.state.video_id for entry in history] == [recent, old]
    assert untouched not in [entry.state.video_id for entry in history]


@pytest.mark.asyncio
async def test_history_partial_filter(session: AsyncSession, profile: Profile) -> None:
    watched, partial, _ = await _cache_videos(session)
    await video_state.mark_video_watched(session, profile.id, watched)
    await video_state.update_video_progress(session, profile.id, partial, 30)

    assert {e.state.video_id for e in await video_state.get_watch_history(session, profile.id)} == {watched, partial}
    only_watched = await video_state.get_watch_history(session, profile.id, include_partial=False)
    assert [e.state.video_id for e in only_watched] == [watched]


@pytest.mark.asyncio
async def test_continue_watching(session: AsyncSession, profile: Profile) -> None:
    started, finished, _ = await _cache_videos(session)
    await video_state.update_video_progress(session, profile.id, started, 90)
    await video_state.update_video_progress(session, profile.id, finished, 300, completed=True)
    await video_state.update_video_progress(session, profile.id, "uncached", 50)

    entries = await video_state.get_continue_watching(session, profile.id)

    assert [entry.state.video_id for entry in entries] == [started]
    assert entries[0].state.progress_seconds == 90


@pytest.mark.asyncio
async def test_watch_later_lifecycle(session: AsyncSession, profile: Profile) -> None:
    first, second, _ = await _cache_videos(session)

    assert await video_state.add_to_watch_later(session, profile.id, first) is False
    assert await video_state.add_to_watch_later(session, profile.id, first) is True
    assert await video_state.toggle_watch_later(session, profile.id, second) is True

    status = await video_state.get_watch_later_status(session, profile.id, [first, second, "other"])
    assert status == {first: True, second: True, "other": False}

    queued = await video_state.get_watch_later(session, profile.id)
    assert {entry.video_id for entry in queued} == {first, second}

    assert await video_state.toggle_watch_later(session, profile.id, second) is False
    await video_state.remove_from_watch_later(session, profile.id, first)
    assert await video_state.get_watch_later(session, profile.id) == []
