"""API endpoints for the signed-in user's profile, plans and account."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core import tiers
from focustube.core.auth import get_current_user
from focustube.db.models import Profile
from focustube.db.session import get_session
from focustube.schema.profile import ProfileResponse, ProfileUpdateRequest, TierListResponse, TierResponse
from focustube.services import account
from focustube.services.subscription_service import count_user_channels

router = APIRouter(prefix="/profile", tags=["profile"])


async def _map_profile(session: AsyncSession, profile: Profile) -> ProfileResponse:
    tier = tiers.get_tier(profile.subscription_tier)
    return ProfileResponse(
        id=profile.id,
        email=profile.email,
        full_name=profile.full_name,
        avatar_url=profile.avatar_url,
        subscription_tier=tier.id,
        subscription_status=profile.subscription_status,
        time_zone=profile.time_zone,
        daily_watch_limit_minutes=profile.daily_watch_limit_minutes,
        watch_limit_enabled=profile.watch_limit_enabled,
        channel_count=await count_user_channels(session, profile.id),
        channel_limit=tier.channel_limit,
        history_days=tier.history_days,
        created_at=profile.created_at,
    )


@router.get("/tiers", response_model=TierListResponse)
async def list_tiers() -> TierListResponse:
    return TierListResponse(
        tiers=[
            TierResponse(
                id=tier.id,
                name=tier.name,
                price=tier.price,
                price_amount=tier.price_amount,
                period=tier.period,
                description=tier.description,
                channel_limit=tier.channel_limit,
                history_days=tier.history_days,
                features=list(tier.features),
            )
            for tier in tiers.all_tiers()
        ]
    )


@router.get("", response_model=ProfileResponse)
async def me(
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    return await _map_profile(session, user)


@router.patch("", response_model=ProfileResponse)
async def update_me(
    payload: ProfileUpdateRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    profile = await account.update_profile(
        session, user, full_name=payload.full_name, avatar_url=payload.avatar_url
    )
    await session.commit()
    return await _map_profile(session, profile)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> None:
    try:
        await account.delete_account(session, user.id)
    except Exception:
        await session.rollback()
        raise
    await session.commit()
