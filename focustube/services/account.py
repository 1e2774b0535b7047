"""Profile lookup, profile settings and account deletion."""

from __future__ import annotations

import logging

import httpx
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core.config import settings
from focustube.core.errors import NotConfiguredError, NotFoundError, UpstreamError
from focustube.db.models import (
    ChannelCategory,
    ChannelCategoryChannel,
    ChannelSubscription,
    DailyWatchSession,
    Profile,
    UserVideoState,
    WatchLaterItem,
)

logger = logging.getLogger(__name__)

# Deleted child tables first; the profile row goes last.
_USER_TABLES = (
    WatchLaterItem,
    UserVideoState,
    DailyWatchSession,
    ChannelCategoryChannel,
    ChannelCategory,
    ChannelSubscription,
)


async def get_profile(session: AsyncSession, user_id: str) -> Profile:
    profile = await session.get(Profile, user_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


async def get_or_create_profile(
    session: AsyncSession,
    *,
    user_id: str,
    email: str | None = None,
    full_name: str | None = None,
) -> Profile:
    """Fetch the profile for ``user_id`` or create a free-tier one."""

    profile = await session.get(Profile, user_id)
    if profile is not None:
        if email and profile.email != email.lower():
            profile.email = email.lower()
        return profile

    profile = Profile(
        id=user_id,
        email=email.lower() if email else None,
        full_name=full_name,
        subscription_tier="free",
        daily_watch_limit_minutes=settings.default_daily_limit_minutes,
        watch_limit_enabled=False,
        time_zone="UTC",
    )
    session.add(profile)
    await session.flush()
    logger.info("Created profile", extra={"user_id": user_id})
    return profile


async def update_profile(
    session: AsyncSession,
    profile: Profile,
    *,
    full_name: str | None = None,
    avatar_url: str | None = None,
) -> Profile:
    """Update user-editable profile fields; billing fields are owned by the webhook handler."""

    if full_name is not None:
        profile.full_name = full_name.strip() or None
    if avatar_url is not None:
        profile.avatar_url = avatar_url.strip() or None
    await session.flush()
    return profile


async def delete_auth_user(user_id: str, *, client: httpx.AsyncClient | None = None) -> None:
    """Remove the user from the hosted auth service through its admin API."""

    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise NotConfiguredError("Account deletion is not configured. Please contact support.")

    url = f"{settings.supabase_url.rstrip('/')}/auth/v1/admin/users/{user_id}"
    headers = {
        "apikey": settings.supabase_service_role_key,
        "Authorization": f"Bearer {settings.supabase_service_role_key}",
    }

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=10)
    try:
        response = await client.delete(url, headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.exception("Failed to delete auth user", extra={"user_id": user_id})
        raise UpstreamError("Failed to delete account. Please contact support.") from exc
    finally:
        if owns_client:
            await client.aclose()


async def delete_account(
    session: AsyncSession,
    user_id: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Delete every row owned by the user, then the auth user itself."""

    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise NotConfiguredError("Account deletion is not configured. Please contact support.")

    for model in _USER_TABLES:
        await session.execute(delete(model).where(model.user_id == user_id))
    await session.execute(delete(Profile).where(Profile.id == user_id))
    await session.flush()

    await delete_auth_user(user_id, client=client)
    logger.info("Deleted account", extra={"user_id": user_id})


async def find_profile_by_email(session: AsyncSession, email: str) -> Profile | None:
    return await session.scalar(select(Profile).where(Profile.email == email.lower()))
