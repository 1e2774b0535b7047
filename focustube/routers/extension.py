"""Bearer-token API used by the FocusTube browser extension."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core import tiers
from focustube.core.auth import get_current_user
from focustube.db.models import Profile
from focustube.db.session import get_session
from focustube.schema.extension import (
    ExtensionAddChannelRequest,
    ExtensionAddChannelResponse,
    ExtensionCategoriesResponse,
    ExtensionCategory,
    ExtensionChannel,
    ExtensionMeResponse,
    ExtensionUser,
)
from focustube.services.categories import list_categories
from focustube.services.subscription_service import add_channel_for_user, count_user_channels
from focustube.services.youtube import YouTubeClient, get_youtube_client

router = APIRouter(prefix="/api/extension", tags=["extension"])


@router.get("/me", response_model=ExtensionMeResponse, response_model_by_alias=True)
async def me(
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ExtensionMeResponse:
    return ExtensionMeResponse(
        user=ExtensionUser(
            id=user.id,
            email=user.email,
            subscription_tier=user.subscription_tier,
            channel_count=await count_user_channels(session, user.id),
            channel_limit=tiers.channel_limit(user.subscription_tier),
        )
    )


@router.get("/categories", response_model=ExtensionCategoriesResponse, response_model_by_alias=True)
async def categories(
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ExtensionCategoriesResponse:
    rows = await list_categories(session, user.id)
    return ExtensionCategoriesResponse(
        categories=[ExtensionCategory(id=row.id, name=row.name, image_url=row.image_url) for row in rows]
    )


@router.post("/add-channel", response_model=ExtensionAddChannelResponse, response_model_by_alias=True)
async def add_channel(
    payload: ExtensionAddChannelRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    youtube: YouTubeClient = Depends(get_youtube_client),
) -> ExtensionAddChannelResponse:
    result = await add_channel_for_user(
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
    channel = result.channel
    return ExtensionAddChannelResponse(
        channel=ExtensionChannel(
            channel_id=channel.channel_id,
            title=channel.title,
            thumbnail_url=channel.thumbnail_url,
            custom_url=channel.custom_url,
        )
    )
