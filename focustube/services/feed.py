"""Chronological, cursor-paginated video feed built from a user's subscriptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core.errors import ValidationFailed
from focustube.db.models import UserVideoState, YouTubeChannel, YouTubeVideo
from focustube.services.categories import get_channels_in_category
from focustube.services.subscription_service import subscribed_channel_ids

MAX_PAGE_SIZE = 100


@dataclass(slots=True)
class FeedItem:
    video: YouTubeVideo
    channel: YouTubeChannel | None
    watched: bool = False
    progress_seconds: int = 0
    completed: bool = False


@dataclass(slots=True)
class FeedPage:
    items: list[FeedItem] = field(default_factory=list)
    has_more: bool = False
    next_cursor: str | None = None


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_cursor(cursor: str | None) -> datetime | None:
    if not cursor:
        return None
    try:
        return as_utc(datetime.fromisoformat(cursor.replace("Z", "+00:00")))
    except ValueError as exc:
        raise ValidationFailed("Invalid cursor") from exc


async def _feed_channel_ids(
    session: AsyncSession, user_id: str, channel_id: str | None, category_id: str | None
) -> list[str]:
    subscribed = await subscribed_channel_ids(session, user_id)
    if channel_id:
        return [channel_id] if channel_id in subscribed else []
    if category_id:
        in_category = set(await get_channels_in_category(session, user_id, category_id))
        return [cid for cid in subscribed if cid in in_category]
    return subscribed


async def get_feed(
    session: AsyncSession,
    user_id: str,
    *,
    cursor: str | None = None,
    limit: int = 20,
    channel_id: str | None = None,
    category_id: str | None = None,
) -> FeedPage:
    """Newest videos first from the user's (optionally filtered) subscribed channels.

    ``cursor`` is the ``published_at`` of the last item of the previous page;
    only strictly older videos are returned.
    """

    limit = max(1, min(limit, MAX_PAGE_SIZE))
    before = parse_cursor(cursor)

    channel_ids = await _feed_channel_ids(session, user_id, channel_id, category_id)
    if not channel_ids:
        return FeedPage()

    stmt = (
        select(YouTubeVideo, YouTubeChannel)
        .outerjoin(YouTubeChannel, YouTubeChannel.channel_id == YouTubeVideo.channel_id)
        .where(YouTubeVideo.channel_id.in_(channel_ids))
        .order_by(YouTubeVideo.published_at.desc(), YouTubeVideo.id.desc())
        .limit(limit + 1)
    )
    if before is not None:
        stmt = stmt.where(YouTubeVideo.published_at < before)

    rows = (await session.execute(stmt)).all()
    has_more = len(rows) > limit
    rows = rows[:limit]

    video_ids = [video.video_id for video, _ in rows]
    states = {}
    if video_ids:
        result = await session.scalars(
            select(UserVideoState).where(
                UserVideoState.user_id == user_id, UserVideoState.video_id.in_(video_ids)
            )
        )
        states = {state.video_id: state for state in result}

    items = []
    for video, channel in rows:
        state = states.get(video.video_id)
        items.append(
            FeedItem(
                video=video,
                channel=channel,
                watched=bool(state and state.watched),
                progress_seconds=state.progress_seconds if state else 0,
                completed=bool(state and state.completed),
            )
        )

    next_cursor = as_utc(rows[-1][0].published_at).isoformat() if has_more and rows else None
    return FeedPage(items=items, has_more=has_more, next_cursor=next_cursor)
