"""API endpoints for daily watch-time tracking and limits."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core.auth import get_current_user
from focustube.db.models import Profile
from focustube.db.session import get_session
from focustube.schema.watch_time import (
    AddWatchTimeRequest,
    DailyHistoryResponse,
    DailyTotalResponse,
    SetWatchTimeRequest,
    TimezoneRequest,
    TimezoneResponse,
    WatchedSecondsResponse,
    WatchLimitSettingsRequest,
    WatchLimitSettingsResponse,
    WatchStatsResponse,
    WatchTimeResponse,
)
from focustube.services import watch_time

router = APIRouter(prefix="/watch-time", tags=["watch-time"])


@router.get("", response_model=WatchTimeResponse)
async def get_watch_time(
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WatchTimeResponse:
    data = await watch_time.get_watch_time_data(session, user.id)
    return WatchTimeResponse(
        daily_limit_minutes=data.daily_limit_minutes,
        is_limit_enabled=data.is_limit_enabled,
        today_watched_seconds=data.today_watched_seconds,
        limit_reached=data.limit_reached,
        session_id=data.session_id,
    )


@router.post("/add", response_model=WatchedSecondsResponse)
async def add_watch_time(
    payload: AddWatchTimeRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WatchedSecondsResponse:
    total = await watch_time.update_watch_time(session, user.id, payload.additional_seconds)
    await session.commit()
    return WatchedSecondsResponse(watched_seconds=total)


@router.put("", response_model=WatchedSecondsResponse)
async def set_watch_time(
    payload: SetWatchTimeRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WatchedSecondsResponse:
    total = await watch_time.set_watch_time(session, user.id, payload.total_seconds)
    await session.commit()
    return WatchedSecondsResponse(watched_seconds=total)


@router.patch("/settings", response_model=WatchLimitSettingsResponse)
async def update_settings(
    payload: WatchLimitSettingsRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WatchLimitSettingsResponse:
    profile = await watch_time.update_watch_limit_settings(
        session,
        user.id,
        daily_limit_minutes=payload.daily_limit_minutes,
        is_limit_enabled=payload.is_limit_enabled,
    )
    await session.commit()
    return WatchLimitSettingsResponse(
        daily_limit_minutes=profile.daily_watch_limit_minutes,
        is_limit_enabled=profile.watch_limit_enabled,
    )


@router.get("/timezone", response_model=TimezoneResponse)
async def get_timezone(
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> TimezoneResponse:
    return TimezoneResponse(timezone=await watch_time.get_user_timezone(session, user.id))


@router.put("/timezone", response_model=TimezoneResponse)
async def set_timezone(
    payload: TimezoneRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> TimezoneResponse:
    tz_name = await watch_time.update_user_timezone(session, user.id, payload.timezone)
    await session.commit()
    return TimezoneResponse(timezone=tz_name)


@router.get("/history", response_model=DailyHistoryResponse)
async def daily_history(
    days: int = Query(7, ge=1, le=365),
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> DailyHistoryResponse:
    totals = await watch_time.get_daily_history(session, user.id, days)
    return DailyHistoryResponse(
        history=[DailyTotalResponse(date=item.date, watched_seconds=item.watched_seconds) for item in totals]
    )


@router.get("/stats", response_model=WatchStatsResponse)
async def stats(
    days: int = Query(7, ge=1, le=365),
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WatchStatsResponse:
    result = await watch_time.get_watch_stats(session, user.id, days)
    return WatchStatsResponse(
        total_seconds=result.total_seconds,
        avg_seconds_per_day=result.avg_seconds_per_day,
        best_day=result.best_day,
        best_day_seconds=result.best_day_seconds,
        days_with_data=result.days_with_data,
        previous_period_total_seconds=result.previous_period_total_seconds,
        delta_seconds=result.delta_seconds,
        delta_percent=result.delta_percent,
        daily_series=[
            DailyTotalResponse(date=point.date, watched_seconds=point.watched_seconds)
            for point in result.daily_series
        ],
    )
