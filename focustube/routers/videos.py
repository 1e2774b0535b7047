"""API endpoints for the feed, per-video state and watch later."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core.auth import get_current_user
from focustube.core.config import settings
from focustube.db.models import Profile, UserVideoState, YouTubeChannel, YouTubeVideo
from focustube.db.session import get_session
from focustube.schema.video import (
    ChannelBrief,
    FeedResponse,
    FeedVideo,
    HistoryItem,
    HistoryResponse,
    MarkWatchedRequest,
    ProgressRequest,
    VideoStateResponse,
    VideoSummary,
    WatchDeltaRequest,
    WatchDeltaResponse,
    WatchLaterAddResponse,
    WatchLaterItemResponse,
    WatchLaterListResponse,
    WatchLaterStatusRequest,
    WatchLaterStatusResponse,
    WatchLaterToggleResponse,
)
from focustube.services import video_state
from focustube.services.feed import get_feed
from focustube.services.youtube import format_count, format_duration

router = APIRouter(prefix="/videos", tags=["videos"])


def _map_video(video: YouTubeVideo, channel: YouTubeChannel | None) -> VideoSummary:
    brief = None
    if channel is not None:
        brief = ChannelBrief(title=channel.title, thumbnail_url=channel.thumbnail_url, custom_url=channel.custom_url)
    return VideoSummary(
        video_id=video.video_id,
        channel_id=video.channel_id,
        title=video.title,
        description=video.description,
        thumbnail_url=video.thumbnail_url,
        thumbnail_high_url=video.thumbnail_high_url,
        published_at=video.published_at,
        duration=video.duration,
        duration_label=format_duration(video.duration),
        view_count=video.view_count,
        view_label=format_count(video.view_count, " views"),
        like_count=video.like_count,
        channel=brief,
    )


def _map_state(video_id: str, state: UserVideoState | None) -> VideoStateResponse:
    if state is None:
        return VideoStateResponse(video_id=video_id)
    return VideoStateResponse(
        video_id=state.video_id,
        watched=state.watched,
        watched_at=state.watched_at,
        progress_seconds=state.progress_seconds,
        completed=state.completed,
        total_watched_seconds=state.total_watched_seconds,
        watch_count=state.watch_count,
        first_watched_at=state.first_watched_at,
        last_watched_at=state.last_watched_at,
    )


@router.get("/feed", response_model=FeedResponse)
async def feed(
    cursor: str | None = Query(None, description="published_at of the last video on the previous page"),
    limit: int | None = Query(None, ge=1, le=100),
    channel_id: str | None = None,
    category_id: str | None = None,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> FeedResponse:
    page = await get_feed(
        session,
        user.id,
        cursor=cursor,
        limit=limit or settings.feed_page_size,
        channel_id=channel_id,
        category_id=category_id,
    )
    videos = [
        FeedVideo(
            **_map_video(item.video, item.channel).model_dump(),
            watched=item.watched,
            progress_seconds=item.progress_seconds,
            completed=item.completed,
        )
        for item in page.items
    ]
    return FeedResponse(videos=videos, has_more=page.has_more, next_cursor=page.next_cursor)


@router.get("/history", response_model=HistoryResponse)
async def watch_history(
    limit: int = Query(50, ge=1, le=200),
    include_partial: bool = True,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> HistoryResponse:
    entries = await video_state.get_watch_history(session, user.id, limit=limit, include_partial=include_partial)
    return HistoryResponse(
        history=[
            HistoryItem(
                **_map_state(entry.state.video_id, entry.state).model_dump(),
                video=_map_video(entry.video, entry.channel) if entry.video else None,
            )
            for entry in entries
        ]
    )


@router.get("/continue-watching", response_model=HistoryResponse)
async def continue_watching(
    limit: int = Query(10, ge=1, le=50),
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> HistoryResponse:
    entries = await video_state.get_continue_watching(session, user.id, limit=limit)
    return HistoryResponse(
        history=[
            HistoryItem(
                **_map_state(entry.state.video_id, entry.state).model_dump(),
                video=_map_video(entry.video, entry.channel),
            )
            for entry in entries
        ]
    )


@router.get("/watch-later", response_model=WatchLaterListResponse)
async def list_watch_later(
    limit: int = Query(50, ge=1, le=200),
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WatchLaterListResponse:
    entries = await video_state.get_watch_later(session, user.id, limit=limit)
    return WatchLaterListResponse(
        videos=[
            WatchLaterItemResponse(
                video_id=entry.video_id,
                added_at=entry.added_at,
                video=_map_video(entry.video, entry.channel),
            )
            for entry in entries
        ]
    )


@router.post("/watch-later/status", response_model=WatchLaterStatusResponse)
async def watch_later_status(
    payload: WatchLaterStatusRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WatchLaterStatusResponse:
    status_map = await video_state.get_watch_later_status(session, user.id, payload.video_ids)
    return WatchLaterStatusResponse(watch_later=status_map)


@router.post("/watch-later/{video_id}", response_model=WatchLaterAddResponse)
async def add_watch_later(
    video_id: str,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WatchLaterAddResponse:
    already_exists = await video_state.add_to_watch_later(session, user.id, video_id)
    await session.commit()
    return WatchLaterAddResponse(already_exists=already_exists)


@router.delete("/watch-later/{video_id}", status_code=204)
async def remove_watch_later(
    video_id: str,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> None:
    await video_state.remove_from_watch_later(session, user.id, video_id)
    await session.commit()


@router.post("/watch-later/{video_id}/toggle", response_model=WatchLaterToggleResponse)
async def toggle_watch_later(
    video_id: str,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WatchLaterToggleResponse:
    in_watch_later = await video_state.toggle_watch_later(session, user.id, video_id)
    await session.commit()
    return WatchLaterToggleResponse(in_watch_later=in_watch_later)


@router.get("/{video_id}/state", response_model=VideoStateResponse)
async def get_state(
    video_id: str,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> VideoStateResponse:
    return _map_state(video_id, await video_state.get_video_state(session, user.id, video_id))


@router.post("/{video_id}/watched", response_model=VideoStateResponse)
async def mark_watched(
    video_id: str,
    payload: MarkWatchedRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> VideoStateResponse:
    state = await video_state.mark_video_watched(session, user.id, video_id, payload.watched)
    await session.commit()
    return _map_state(video_id, state)


@router.post("/{video_id}/progress", response_model=VideoStateResponse)
async def update_progress(
    video_id: str,
    payload: ProgressRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> VideoStateResponse:
    state = await video_state.update_video_progress(
        session, user.id, video_id, payload.progress_seconds, payload.completed
    )
    await session.commit()
    return _map_state(video_id, state)


@router.post("/{video_id}/watch-delta", response_model=WatchDeltaResponse)
async def log_watch_delta(
    video_id: str,
    payload: WatchDeltaRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WatchDeltaResponse:
    result = await video_state.log_video_watch_delta(
        session,
        user.id,
        video_id,
        payload.delta_seconds,
        progress_seconds=payload.progress_seconds,
        completed=payload.completed,
        new_session=payload.is_new_session,
    )
    await session.commit()
    return WatchDeltaResponse(total_watched_seconds=result.total_watched_seconds, watched=result.watched)
