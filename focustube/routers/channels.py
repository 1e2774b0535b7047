"""API endpoints for managing a user's channel subscriptions."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core import tiers
from focustube.core.auth import get_current_user
from focustube.db.models import Profile, YouTubeChannel
from focustube.db.session import get_session
from focustube.schema.channel import (
    AddChannelResponse,
    ChannelCreateRequest,
    ChannelListResponse,
    ChannelSearchResponse,
    ChannelSummary,
    RefreshResponse,
    SubscribedChannelResponse,
)
from focustube.services import subscription_service
from focustube.services.youtube import (
    ChannelData,
    YouTubeClient,
    YouTubeConfigError,
    YouTubeError,
    format_count,
    get_youtube_client,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/channels", tags=["channels"])


def map_channel(channel: ChannelData | YouTubeChannel) -> ChannelSummary:
    return ChannelSummary(
        channel_id=channel.channel_id,
        title=channel.title,
        description=channel.description,
        thumbnail_url=channel.thumbnail_url,
        subscriber_count=channel.subscriber_count,
        subscriber_label=format_count(channel.subscriber_count),
        video_count=channel.video_count,
        uploads_playlist_id=channel.uploads_playlist_id,
        custom_url=channel.custom_url,
    )


def _youtube_failure(exc: YouTubeError) -> HTTPException:
    if isinstance(exc, YouTubeConfigError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.get("", response_model=ChannelListResponse)
async def list_channels(
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ChannelListResponse:
    subscribed = await subscription_service.list_user_channels(session, user.id)
    channels = [
        SubscribedChannelResponse(
            **map_channel(item.channel).model_dump(),
            subscribed_at=item.subscribed_at,
            category_ids=item.category_ids,
        )
        for item in subscribed
    ]
    return ChannelListResponse(
        channels=channels,
        count=len(channels),
        limit=tiers.channel_limit(user.subscription_tier),
    )


@router.post("", response_model=AddChannelResponse, status_code=status.HTTP_201_CREATED)
async def add_channel(
    payload: ChannelCreateRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    youtube: YouTubeClient = Depends(get_youtube_client),
) -> AddChannelResponse:
    result = await subscription_service.add_channel_for_user(
        session,
        youtube,
        user_id=user.id,
        raw_input=payload.input,
        category_ids=payload.category_ids,
    )
    if not result.success or result.channel is None:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)

    await session.commit()
    return AddChannelResponse(success=True, channel=map_channel(result.channel))


@router.get("/search", response_model=ChannelSearchResponse)
async def search_channels(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=25),
    user: Profile = Depends(get_current_user),
    youtube: YouTubeClient = Depends(get_youtube_client),
) -> ChannelSearchResponse:
    try:
        results = await subscription_service.search_channels(youtube, q, max_results=limit)
    except YouTubeError as exc:
        raise _youtube_failure(exc) from exc
    return ChannelSearchResponse(channels=[map_channel(channel) for channel in results])


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_all(
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    youtube: YouTubeClient = Depends(get_youtube_client),
) -> RefreshResponse:
    try:
        count = await subscription_service.refresh_all_channels(session, youtube, user.id)
    except YouTubeConfigError as exc:
        await session.rollback()
        raise _youtube_failure(exc) from exc
    await session.commit()
    return RefreshResponse(video_count=count)


@router.post("/{channel_id}/refresh", response_model=RefreshResponse)
async def refresh_channel(
    channel_id: str,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    youtube: YouTubeClient = Depends(get_youtube_client),
) -> RefreshResponse:
    if not await subscription_service.is_subscribed(session, user.id, channel_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found in your subscriptions")
    try:
        count = await subscription_service.refresh_channel_videos(session, youtube, channel_id)
    except YouTubeError as exc:
        await session.rollback()
        logger.warning("Channel refresh failed", extra={"channel_id": channel_id, "error": str(exc)})
        raise _youtube_failure(exc) from exc
    await session.commit()
    return RefreshResponse(video_count=count)


@router.delete("/{channel_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_channel(
    channel_id: str,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> None:
    removed = await subscription_service.remove_channel(session, user.id, channel_id)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found in your subscriptions")
    await session.commit()
