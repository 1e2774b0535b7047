"""Per-user video state: watched flags, resume progress, history and watch later."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core import tiers
from focustube.db.models import (
    Profile,
    UserVideoState,
    WatchLaterItem,
    YouTubeChannel,
    YouTubeVideo,
    utcnow,
)

logger = logging.getLogger(__name__)

WATCHED_THRESHOLD_SECONDS = 30

# Most recent activity on a state row, whichever way it was recorded.
_last_activity = func.coalesce(UserVideoState.last_watched_at, UserVideoState.watched_at, UserVideoState.updated_at)


@dataclass(slots=True)
class WatchDeltaResult:
    total_watched_seconds: int
    watched: bool


@dataclass(slots=True)
class HistoryEntry:
    state: UserVideoState
    video: YouTubeVideo | None
    channel: YouTubeChannel | None


@dataclass(slots=True)
class WatchLaterEntry:
    video_id: str
    added_at: datetime
    video: YouTubeVideo
    channel: YouTubeChannel | None


async def get_video_state(session: AsyncSession, user_id: str, video_id: str) -> UserVideoState | None:
    return await session.scalar(
        select(UserVideoState).where(UserVideoState.user_id == user_id, UserVideoState.video_id == video_id)
    )


async def _get_or_new_state(session: AsyncSession, user_id: str, video_id: str) -> UserVideoState:
    state = await get_video_state(session, user_id, video_id)
    if state is None:
        state = UserVideoState(
            user_id=user_id,
            video_id=video_id,
            watched=False,
            progress_seconds=0,
            completed=False,
            total_watched_seconds=0,
            watch_count=0,
        )
        session.add(state)
    return state


async def mark_video_watched(
    session: AsyncSession, user_id: str, video_id: str, watched: bool = True
) -> UserVideoState:
    state = await _get_or_new_state(session, user_id, video_id)
    now = utcnow()
    state.watched = watched
    state.watched_at = now if watched else None
    state.updated_at = now
    await session.flush()
    return state


async def update_video_progress(
    session: AsyncSession,
    user_id: str,
    video_id: str,
    progress_seconds: int,
    completed: bool = False,
) -> UserVideoState:
    """Store the resume position; completing a video also marks it watched."""

    state = await _get_or_new_state(session, user_id, video_id)
    now = utcnow()
    state.progress_seconds = max(0, int(progress_seconds))
    state.completed = completed
    state.watched = completed
    if completed:
        state.watched_at = now
    state.updated_at = now
    await session.flush()
    return state


async def log_video_watch_delta(
    session: AsyncSession,
    user_id: str,
    video_id: str,
    delta_seconds: int,
    *,
    progress_seconds: int | None = None,
    completed: bool = False,
    new_session: bool = False,
) -> WatchDeltaResult:
    """Accumulate playback time reported periodically by the player.

    Negative deltas are ignored and the resume position never moves
    backwards. A video counts as watched once 30 seconds have been played or
    it was completed; ``new_session`` bumps the watch count.
    """

    state = await _get_or_new_state(session, user_id, video_id)
    now = utcnow()

    state.total_watched_seconds = (state.total_watched_seconds or 0) + max(0, int(delta_seconds))
    if new_session:
        state.watch_count = (state.watch_count or 0) + 1
    if progress_seconds is not None:
        state.progress_seconds = max(state.progress_seconds or 0, int(progress_seconds))
    state.last_watched_at = now
    if state.first_watched_at is None:
        state.first_watched_at = now
    if completed:
        state.completed = True

    should_mark_watched = completed or state.total_watched_seconds >= WATCHED_THRESHOLD_SECONDS
    if should_mark_watched:
        if not state.watched or state.watched_at is None:
            state.watched_at = now
            logger.debug(
                "Video marked watched",
                extra={"user_id": user_id, "video_id": video_id, "seconds": state.total_watched_seconds},
            )
        state.watched = True
    state.updated_at = now
    await session.flush()

    return WatchDeltaResult(total_watched_seconds=state.total_watched_seconds, watched=state.watched)


async def _load_videos(
    session: AsyncSession, video_ids: Iterable[str]
) -> tuple[dict[str, YouTubeVideo], dict[str, YouTubeChannel]]:
    ids = list(dict.fromkeys(video_ids))
    if not ids:
        return {}, {}
    videos = {v.video_id: v for v in await session.scalars(select(YouTubeVideo).where(YouTubeVideo.video_id.in_(ids)))}
    channel_ids = {v.channel_id for v in videos.values()}
    channels = {}
    if channel_ids:
        result = await session.scalars(select(YouTubeChannel).where(YouTubeChannel.channel_id.in_(channel_ids)))
        channels = {c.channel_id: c for c in result}
    return videos, channels


async def get_watch_history(
    session: AsyncSession,
    user_id: str,
    *,
    limit: int = 50,
    include_partial: bool = True,
) -> list[HistoryEntry]:
    """Most recently watched videos within the user's plan history window."""

    stmt = select(UserVideoState).where(UserVideoState.user_id == user_id)
    if include_partial:
        stmt = stmt.where(
            or_(
                UserVideoState.watched.is_(True),
                UserVideoState.total_watched_seconds > 0,
                UserVideoState.progress_seconds > 0,
            )
        )
    else:
        stmt = stmt.where(UserVideoState.watched.is_(True))

    profile = await session.get(Profile, user_id)
    window_days = tiers.history_window_days(profile.subscription_tier if profile else None)
    if window_days is not None:
        stmt = stmt.where(_last_activity >= utcnow() - timedelta(days=window_days))

    states = list(await session.scalars(stmt.order_by(_last_activity.desc()).limit(limit)))
    videos, channels = await _load_videos(session, (s.video_id for s in states))

    entries = []
    for state in states:
        video = videos.get(state.video_id)
        channel = channels.get(video.channel_id) if video else None
        entries.append(HistoryEntry(state=state, video=video, channel=channel))
    return entries


async def get_continue_watching(session: AsyncSession, user_id: str, *, limit: int = 10) -> list[HistoryEntry]:
    """Started but unfinished videos, most recent first; uncached videos are dropped."""

    states = list(
        await session.scalars(
            select(UserVideoState)
            .where(
                UserVideoState.user_id == user_id,
                UserVideoState.progress_seconds > 0,
                UserVideoState.completed.is_(False),
            )
            .order_by(_last_activity.desc())
            .limit(limit)
        )
    )
    videos, channels = await _load_videos(session, (s.video_id for s in states))
    return [
        HistoryEntry(state=state, video=videos[state.video_id], channel=channels.get(videos[state.video_id].channel_id))
        for state in states
        if state.video_id in videos
    ]


# Watch later


async def _watch_later_item(session: AsyncSession, user_id: str, video_id: str) -> WatchLaterItem | None:
    return await session.scalar(
        select(WatchLaterItem).where(WatchLaterItem.user_id == user_id, WatchLaterItem.video_id == video_id)
    )


async def add_to_watch_later(session: AsyncSession, user_id: str, video_id: str) -> bool:
    """Queue a video; returns True when it was already queued."""

    if await _watch_later_item(session, user_id, video_id) is not None:
        return True
    session.add(WatchLaterItem(user_id=user_id, video_id=video_id))
    await session.flush()
    return False


async def remove_from_watch_later(session: AsyncSession, user_id: str, video_id: str) -> None:
    await session.execute(
        delete(WatchLaterItem).where(WatchLaterItem.user_id == user_id, WatchLaterItem.video_id == video_id)
    )
    await session.flush()


async def toggle_watch_later(session: AsyncSession, user_id: str, video_id: str) -> bool:
    """Flip the video's watch-later membership; returns the new membership."""

    item = await _watch_later_item(session, user_id, video_id)
    if item is not None:
        await session.delete(item)
        await session.flush()
        return False
    session.add(WatchLaterItem(user_id=user_id, video_id=video_id))
    await session.flush()
    return True


async def get_watch_later_status(session: AsyncSession, user_id: str, video_ids: Iterable[str]) -> dict[str, bool]:
    ids = list(dict.fromkeys(video_ids))
    if not ids:
        return {}
    queued = set(
        await session.scalars(
            select(WatchLaterItem.video_id).where(
                WatchLaterItem.user_id == user_id, WatchLaterItem.video_id.in_(ids)
            )
        )
    )
    return {video_id: video_id in queued for video_id in ids}


async def get_watch_later(session: AsyncSession, user_id: str, *, limit: int = 50) -> list[WatchLaterEntry]:
    items = list(
        await session.scalars(
            select(WatchLaterItem)
            .where(WatchLaterItem.user_id == user_id)
            .order_by(WatchLaterItem.created_at.desc(), WatchLaterItem.id.desc())
            .limit(limit)
        )
    )
    videos, channels = await _load_videos(session, (item.video_id for item in items))
    entries = []
    for item in items:
        video = videos.get(item.video_id)
        if video is None:
            continue
        entries.append(
            WatchLaterEntry(
                video_id=item.video_id,
                added_at=item.created_at,
                video=video,
                channel=channels.get(video.channel_id),
            )
        )
    return entries
