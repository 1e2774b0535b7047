"""Helpers for the shared channel and video metadata cache."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.db.models import YouTubeChannel, YouTubeVideo, utcnow
from focustube.services.youtube import ChannelData, VideoData

_CHANNEL_FIELDS = (
    "title",
    "description",
    "thumbnail_url",
    "subscriber_count",
    "video_count",
    "uploads_playlist_id",
    "custom_url",
)
_VIDEO_FIELDS = (
    "channel_id",
    "title",
    "description",
    "thumbnail_url",
    "thumbnail_high_url",
    "published_at",
    "duration",
    "view_count",
    "like_count",
)


async def get_cached_channel(session: AsyncSession, channel_id: str) -> YouTubeChannel | None:
    """Fetch a cached channel by YouTube channel id."""

    return await session.scalar(select(YouTubeChannel).where(YouTubeChannel.channel_id == channel_id))


async def get_cached_channels(session: AsyncSession, channel_ids: Iterable[str]) -> Sequence[YouTubeChannel]:
    ids = list(channel_ids)
    if not ids:
        return []
    result = await session.scalars(select(YouTubeChannel).where(YouTubeChannel.channel_id.in_(ids)))
    return list(result)


async def upsert_channel(session: AsyncSession, data: ChannelData) -> YouTubeChannel:
    """Insert or refresh the cached copy of a channel; the latest write wins."""

    channel = await get_cached_channel(session, data.channel_id)
    if channel is None:
        channel = YouTubeChannel(channel_id=data.channel_id)
        session.add(channel)

    for field in _CHANNEL_FIELDS:
        setattr(channel, field, getattr(data, field))
    channel.updated_at = utcnow()
    await session.flush()
    return channel


async def upsert_videos(session: AsyncSession, videos: Iterable[VideoData]) -> int:
    """Insert or refresh cached videos keyed by video id; returns how many were written."""

    by_id = {video.video_id: video for video in videos}
    if not by_id:
        return 0

    existing = await session.scalars(select(YouTubeVideo).where(YouTubeVideo.video_id.in_(list(by_id))))
    rows = {row.video_id: row for row in existing}
    now = utcnow()

    for video_id, data in by_id.items():
        row = rows.get(video_id)
        if row is None:
            row = YouTubeVideo(video_id=video_id)
            session.add(row)
        for field in _VIDEO_FIELDS:
            setattr(row, field, getattr(data, field))
        row.updated_at = now

    await session.flush()
    return len(by_id)


async def touch_channel(session: AsyncSession, channel_id: str) -> None:
    channel = await get_cached_channel(session, channel_id)
    if channel is not None:
        channel.updated_at = utcnow()
        await session.flush()
