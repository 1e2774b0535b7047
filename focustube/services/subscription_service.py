"""Business logic for a user's channel subscriptions."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from focustube.core import tiers
from focustube.core.config import settings
from focustube.db.models import ChannelCategory, ChannelCategoryChannel, ChannelSubscription, Profile, YouTubeChannel
from focustube.services import channel_registry
from focustube.services.channel_resolver import parse_channel_input, resolve_channel
from focustube.services.youtube import (
    ChannelData,
    VideoData,
    YouTubeAPIError,
    YouTubeClient,
    YouTubeConfigError,
    YouTubeError,
)

logger = logging.getLogger(__name__)

MISSING_KEY_HINT = "Missing YouTube API key. Set FOCUSTUBE_YOUTUBE_API_KEY and restart the server."
API_ERROR_HINT = (
    "Check that your key is valid, the YouTube Data API v3 is enabled in Google Cloud, "
    "and you have quota left."
)
ADD_CHANNEL_FAILED = "Failed to add channel. Please try again."


@dataclass(slots=True)
class AddChannelResult:
    success: bool = False
    error: str | None = None
    channel: ChannelData | None = None


@dataclass(slots=True)
class SubscribedChannel:
    channel: YouTubeChannel
    subscribed_at: datetime
    category_ids: list[str] = field(default_factory=list)


def _with_channel_id(videos: Iterable[VideoData], channel_id: str) -> list[VideoData]:
    return [video if video.channel_id else dataclasses.replace(video, channel_id=channel_id) for video in videos]


async def count_user_channels(session: AsyncSession, user_id: str) -> int:
    count = await session.scalar(
        select(func.count()).select_from(ChannelSubscription).where(ChannelSubscription.user_id == user_id)
    )
    return int(count or 0)


async def is_subscribed(session: AsyncSession, user_id: str, channel_id: str) -> bool:
    existing = await session.scalar(
        select(ChannelSubscription.id).where(
            ChannelSubscription.user_id == user_id,
            ChannelSubscription.channel_id == channel_id,
        )
    )
    return existing is not None


async def _assign_categories(
    session: AsyncSession, user_id: str, channel_id: str, category_ids: Iterable[str]
) -> None:
    wanted = set(category_ids)
    owned = set(
        await session.scalars(
            select(ChannelCategory.id).where(ChannelCategory.user_id == user_id, ChannelCategory.id.in_(wanted))
        )
    )
    skipped = wanted - owned
    if skipped:
        logger.warning(
            "Ignoring unknown categories",
            extra={"user_id": user_id, "category_ids": sorted(skipped)},
        )
    for category_id in sorted(owned):
        session.add(ChannelCategoryChannel(user_id=user_id, category_id=category_id, channel_id=channel_id))
    await session.flush()


async def _cache_recent_videos(
    session: AsyncSession, youtube: YouTubeClient, channel: ChannelData, max_results: int
) -> int:
    if not channel.uploads_playlist_id:
        return 0
    videos = await youtube.get_channel_videos(channel.uploads_playlist_id, max_results)
    return await channel_registry.upsert_videos(session, _with_channel_id(videos, channel.channel_id))


async def add_channel_for_user(
    session: AsyncSession,
    youtube: YouTubeClient,
    *,
    user_id: str,
    raw_input: str,
    category_ids: Iterable[str] | None = None,
) -> AddChannelResult:
    """Subscribe ``user_id`` to the channel described by ``raw_input``.

    Shared by the dashboard and the browser extension. Failures are returned
    as ``AddChannelResult.error`` rather than raised; category assignment and
    video caching are best effort and never fail the subscription.
    """

    parsed = parse_channel_input(raw_input)
    if parsed is None:
        return AddChannelResult(error="Invalid channel input")

    try:
        channel = await resolve_channel(youtube, parsed)
        if channel is None:
            return AddChannelResult(error="Channel not found")

        if await is_subscribed(session, user_id, channel.channel_id):
            return AddChannelResult(error="You're already subscribed to this channel")

        profile = await session.get(Profile, user_id)
        tier = profile.subscription_tier if profile else tiers.DEFAULT_TIER
        current = await count_user_channels(session, user_id)
        if not tiers.has_capacity(tier, current):
            limit = tiers.channel_limit(tier)
            return AddChannelResult(
                error=f"You've reached the {limit} channel limit for your plan. Upgrade to add more."
            )

        await channel_registry.upsert_channel(session, channel)
        session.add(ChannelSubscription(user_id=user_id, channel_id=channel.channel_id))
        await session.flush()
    except YouTubeConfigError:
        return AddChannelResult(error=MISSING_KEY_HINT)
    except YouTubeAPIError as exc:
        return AddChannelResult(error=f"{exc}. {API_ERROR_HINT}")
    except SQLAlchemyError:
        logger.exception("Failed to save subscription", extra={"user_id": user_id})
        return AddChannelResult(error=ADD_CHANNEL_FAILED)
    except Exception as exc:
        logger.exception("Unexpected error adding channel", extra={"user_id": user_id})
        return AddChannelResult(error=str(exc) or ADD_CHANNEL_FAILED)

    logger.info("Subscribed to channel", extra={"user_id": user_id, "channel_id": channel.channel_id})

    # Savepoints keep the subscription when either follow-up step fails.
    if category_ids:
        try:
            async with session.begin_nested():
                await _assign_categories(session, user_id, channel.channel_id, category_ids)
        except Exception:
            logger.exception("Category assignment failed", extra={"channel_id": channel.channel_id})

    try:
        async with session.begin_nested():
            await _cache_recent_videos(session, youtube, channel, settings.add_channel_video_count)
    except Exception:
        logger.exception("Video fetch failed", extra={"channel_id": channel.channel_id})

    return AddChannelResult(success=True, channel=channel)


async def remove_channel(session: AsyncSession, user_id: str, channel_id: str) -> bool:
    """Unsubscribe; category assignments for the channel go first. Returns True when removed."""

    await session.execute(
        delete(ChannelCategoryChannel).where(
            ChannelCategoryChannel.user_id == user_id,
            ChannelCategoryChannel.channel_id == channel_id,
        )
    )
    result = await session.execute(
        delete(ChannelSubscription).where(
            ChannelSubscription.user_id == user_id,
            ChannelSubscription.channel_id == channel_id,
        )
    )
    await session.flush()
    removed = bool(result.rowcount)
    if removed:
        logger.info("Unsubscribed from channel", extra={"user_id": user_id, "channel_id": channel_id})
    return removed


async def list_user_channels(session: AsyncSession, user_id: str) -> list[SubscribedChannel]:
    """Subscribed channels, newest subscription first, with their category ids."""

    subscriptions = await session.scalars(
        select(ChannelSubscription)
        .options(selectinload(ChannelSubscription.channel))
        .where(ChannelSubscription.user_id == user_id)
        .order_by(ChannelSubscription.created_at.desc(), ChannelSubscription.id.desc())
    )

    assignments = await session.execute(
        select(ChannelCategoryChannel.channel_id, ChannelCategoryChannel.category_id).where(
            ChannelCategoryChannel.user_id == user_id
        )
    )
    categories_by_channel: dict[str, list[str]] = {}
    for channel_id, category_id in assignments:
        categories_by_channel.setdefault(channel_id, []).append(category_id)

    return [
        SubscribedChannel(
            channel=subscription.channel,
            subscribed_at=subscription.created_at,
            category_ids=categories_by_channel.get(subscription.channel_id, []),
        )
        for subscription in subscriptions
        if subscription.channel is not None
    ]


async def subscribed_channel_ids(session: AsyncSession, user_id: str) -> list[str]:
    result = await session.scalars(
        select(ChannelSubscription.channel_id).where(ChannelSubscription.user_id == user_id)
    )
    return list(result)


async def refresh_channel_videos(
    session: AsyncSession,
    youtube: YouTubeClient,
    channel_id: str,
    *,
    max_results: int = 20,
) -> int:
    """Re-fetch a channel's recent uploads into the cache; returns the number of videos written."""

    cached = await channel_registry.get_cached_channel(session, channel_id)
    uploads_playlist_id = cached.uploads_playlist_id if cached else None
    if not uploads_playlist_id:
        data = await youtube.get_channel_by_id(channel_id)
        if data is None:
            raise YouTubeAPIError(f"YouTube API error: channel {channel_id} not found")
        cached = await channel_registry.upsert_channel(session, data)
        uploads_playlist_id = cached.uploads_playlist_id
    if not uploads_playlist_id:
        return 0

    videos = await youtube.get_channel_videos(uploads_playlist_id, max_results)
    count = await channel_registry.upsert_videos(session, _with_channel_id(videos, channel_id))
    await channel_registry.touch_channel(session, channel_id)
    logger.info("Refreshed channel videos", extra={"channel_id": channel_id, "videos": count})
    return count


async def refresh_all_channels(session: AsyncSession, youtube: YouTubeClient, user_id: str) -> int:
    """Refresh every subscribed channel one at a time.

    Per-channel API failures are logged and skipped; a missing API key
    aborts the whole run.
    """

    total = 0
    for channel_id in await subscribed_channel_ids(session, user_id):
        try:
            total += await refresh_channel_videos(
                session, youtube, channel_id, max_results=settings.refresh_video_count
            )
        except YouTubeConfigError:
            raise
        except YouTubeError:
            logger.exception("Channel refresh failed", extra={"channel_id": channel_id})
    return total


async def search_channels(youtube: YouTubeClient, query: str, max_results: int = 10) -> list[ChannelData]:
    return await youtube.search_channels(query, max_results=max_results)
