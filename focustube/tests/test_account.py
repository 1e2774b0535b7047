"""Tests for account deletion."""

from __future__ import annotations

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import FakeYouTube, auth_headers, create_profile, make_channel
from focustube.core.config import settings
from focustube.core.errors import NotConfiguredError, UpstreamError
from focustube.db.models import (
    ChannelCategory,
    ChannelCategoryChannel,
    ChannelSubscription,
    DailyWatchSession,
    Profile,
    UserVideoState,
    WatchLaterItem,
    YouTubeChannel,
)
from focustube.services import account, categories, subscription_service, video_state, watch_time

USER_TABLES = (
    ChannelSubscription,
    ChannelCategory,
    ChannelCategoryChannel,
    UserVideoState,
    WatchLaterItem,
    DailyWatchSession,
)


@pytest.fixture
def admin_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "supabase_url", "https://auth.example/")
    monkeypatch.setattr(settings, "supabase_service_role_key", "service-role-key")


def _admin_client(status_code: int, requests: list[httpx.Request] | None = None) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def _seed_user(session: AsyncSession, youtube: FakeYouTube, user_id: str) -> None:
    category = await categories.create_category(session, user_id, "Science")
    await subscription_service.add_channel_for_user(
        session, youtube, user_id=user_id, raw_input="@alpha", category_ids=[category.id]
    )
    await video_state.log_video_watch_delta(session, user_id, "AAAAv000", 45, progress_seconds=45)
    await video_state.add_to_watch_later(session, user_id, "AAAAv001")
    await watch_time.update_watch_time(session, user_id, 300)


async def _row_counts(session: AsyncSession, user_id: str) -> dict[str, int]:
    counts = {}
    for model in USER_TABLES:
        counts[model.__tablename__] = await session.scalar(
            select(func.count()).select_from(model).where(model.user_id == user_id)
        )
    counts["profiles"] = await session.scalar(select(func.count()).select_from(Profile).where(Profile.id == user_id))
    return counts


@pytest.mark.asyncio
async def test_delete_account_removes_every_user_row(
    session: AsyncSession, profile: Profile, youtube: FakeYouTube, admin_settings: None
) -> None:
    youtube.add(make_channel("A"), handle="alpha")
    await create_profile(session, "user-2")
    await _seed_user(session, youtube, profile.id)
    await _seed_user(session, youtube, "user-2")
    assert set((await _row_counts(session, profile.id)).values()) == {1}

    requests: list[httpx.Request] = []
    async with _admin_client(204, requests) as client:
        await account.delete_account(session, profile.id, client=client)

    assert set((await _row_counts(session, profile.id)).values()) == {0}
    assert set((await _row_counts(session, "user-2")).values()) == {1}
    # The shared channel cache is not user data.
    assert await session.scalar(select(func.count()).select_from(YouTubeChannel)) == 1

    assert len(requests) == 1
    assert requests[0].method == "DELETE"
    assert str(requests[0].url) == "https://auth.example/auth/v1/admin/users/user-1"
    assert requests[0].headers["Authorization"] == "Bearer service-role-key"


@pytest.mark.asyncio
async def test_delete_account_requires_admin_api(session: AsyncSession, profile: Profile) -> None:
    with pytest.raises(NotConfiguredError):
        await account.delete_account(session, profile.id)
    assert await session.get(Profile, profile.id) is not None


@pytest.mark.asyncio
async def test_delete_account_surfaces_admin_failure(
    session: AsyncSession, profile: Profile, youtube: FakeYouTube, admin_settings: None
) -> None:
    youtube.add(make_channel("A"), handle="alpha")
    await _seed_user(session, youtube, profile.id)
    await session.commit()

    async with _admin_client(500) as client:
        with pytest.raises(UpstreamError, match="Failed to delete account"):
            await account.delete_account(session, profile.id, client=client)
    await session.rollback()

    assert set((await _row_counts(session, profile.id)).values()) == {1}


@pytest.mark.asyncio
async def test_delete_route_unconfigured(api: httpx.AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "supabase_url", None)
    response = await api.delete("/profile", headers=auth_headers())
    assert response.status_code == 503
    assert response.json() == {"error": "Account deletion is not configured. Please contact support."}


@pytest.mark.asyncio
async def test_delete_route_rolls_back_when_admin_api_fails(
    api: httpx.AsyncClient,
    sessionmaker: async_sessionmaker[AsyncSession],
    youtube: FakeYouTube,
    monkeypatch: pytest.MonkeyPatch,
    admin_settings: None,
) -> None:
    youtube.add(make_channel("A"), handle="alpha")
    created = await api.post("/channels", headers=auth_headers(), json={"input": "@alpha"})
    assert created.status_code == 201

    delete_auth_user = account.delete_auth_user

    async def failing_admin_api(user_id: str, *, client: httpx.AsyncClient | None = None) -> None:
        async with _admin_client(500) as admin_client:
            await delete_auth_user(user_id, client=admin_client)

    monkeypatch.setattr(account, "delete_auth_user", failing_admin_api)
    response = await api.delete("/profile", headers=auth_headers())

    assert response.status_code == 502
    assert response.json() == {"error": "Failed to delete account. Please contact support."}
    async with sessionmaker() as session:
        assert await session.get(Profile, "user-1") is not None
        assert await subscription_service.count_user_channels(session, "user-1") == 1

    async def working_admin_api(user_id: str, *, client: httpx.AsyncClient | None = None) -> None:
        async with _admin_client(204) as admin_client:
            await delete_auth_user(user_id, client=admin_client)

    monkeypatch.setattr(account, "delete_auth_user", working_admin_api)
    deleted = await api.delete("/profile", headers=auth_headers())

    assert deleted.status_code == 204
    async with sessionmaker() as session:
        assert set((await _row_counts(session, "user-1")).values()) == {0}
