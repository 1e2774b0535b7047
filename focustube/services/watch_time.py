"""Daily watch-time tracking against an optional per-user limit.

Days are calendar days in the user's own time zone, so "today" rolls over at
local midnight. Invalid or unknown zones fall back to UTC.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core.errors import ValidationFailed
from focustube.db.models import DailyWatchSession, Profile
from focustube.services.account import get_profile

logger = logging.getLogger(__name__)

MAX_DAILY_LIMIT_MINUTES = 24 * 60


@dataclass(slots=True)
class WatchTimeData:
    daily_limit_minutes: int
    is_limit_enabled: bool
    today_watched_seconds: int
    session_id: int | None = None

    @property
    def limit_reached(self) -> bool:
        return self.is_limit_enabled and self.today_watched_seconds >= self.daily_limit_minutes * 60


@dataclass(slots=True)
class DailyTotal:
    date: date
    watched_seconds: int


@dataclass(slots=True)
class WatchStats:
    total_seconds: int
    avg_seconds_per_day: int
    best_day: date | None
    best_day_seconds: int
    days_with_data: int
    previous_period_total_seconds: int
    delta_seconds: int
    delta_percent: int | None
    daily_series: list[DailyTotal] = field(default_factory=list)


def _zone(tz_name: str | None) -> timezone | ZoneInfo:
    if not tz_name:
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown time zone, using UTC", extra={"time_zone": tz_name})
        return timezone.utc


def is_valid_timezone(tz_name: str) -> bool:
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def local_date(tz_name: str | None, days_ago: int = 0, *, now: datetime | None = None) -> date:
    """Calendar date in ``tz_name``, ``days_ago`` days before today."""

    current = now or datetime.now(timezone.utc)
    return current.astimezone(_zone(tz_name)).date() - timedelta(days=days_ago)


async def _session_for(session: AsyncSession, user_id: str, day: date) -> DailyWatchSession | None:
    return await session.scalar(
        select(DailyWatchSession).where(DailyWatchSession.user_id == user_id, DailyWatchSession.date == day)
    )


async def get_watch_time_data(session: AsyncSession, user_id: str) -> WatchTimeData:
    profile = await get_profile(session, user_id)
    today = await _session_for(session, user_id, local_date(profile.time_zone))
    return WatchTimeData(
        daily_limit_minutes=profile.daily_watch_limit_minutes,
        is_limit_enabled=profile.watch_limit_enabled,
        today_watched_seconds=today.watched_seconds if today else 0,
        session_id=today.id if today else None,
    )


async def update_watch_time(session: AsyncSession, user_id: str, additional_seconds: int) -> int:
    """Add to today's counter and return the new total."""

    if additional_seconds < 0:
        raise ValidationFailed("Watch time cannot be negative")
    profile = await get_profile(session, user_id)
    day = local_date(profile.time_zone)

    row = await _session_for(session, user_id, day)
    if row is None:
        row = DailyWatchSession(user_id=user_id, date=day, watched_seconds=additional_seconds)
        session.add(row)
    else:
        row.watched_seconds = (row.watched_seconds or 0) + additional_seconds
    await session.flush()
    return row.watched_seconds


async def set_watch_time(session: AsyncSession, user_id: str, total_seconds: int) -> int:
    """Overwrite today's counter, used when a client resyncs its own tally."""

    if total_seconds < 0:
        raise ValidationFailed("Watch time cannot be negative")
    profile = await get_profile(session, user_id)
    day = local_date(profile.time_zone)

    row = await _session_for(session, user_id, day)
    if row is None:
        row = DailyWatchSession(user_id=user_id, date=day, watched_seconds=total_seconds)
        session.add(row)
    else:
        row.watched_seconds = total_seconds
    await session.flush()
    return row.watched_seconds


async def update_watch_limit_settings(
    session: AsyncSession,
    user_id: str,
    *,
    daily_limit_minutes: int | None = None,
    is_limit_enabled: bool | None = None,
) -> Profile:
    profile = await get_profile(session, user_id)
    if daily_limit_minutes is not None:
        if not 1 <= daily_limit_minutes <= MAX_DAILY_LIMIT_MINUTES:
            raise ValidationFailed("Daily limit must be between 1 and 1440 minutes")
        profile.daily_watch_limit_minutes = daily_limit_minutes
    if is_limit_enabled is not None:
        profile.watch_limit_enabled = is_limit_enabled
    await session.flush()
    return profile


async def update_user_timezone(session: AsyncSession, user_id: str, tz_name: str) -> str:
    tz_name = (tz_name or "").strip()
    if not tz_name or not is_valid_timezone(tz_name):
        raise ValidationFailed("Invalid timezone")
    profile = await get_profile(session, user_id)
    profile.time_zone = tz_name
    await session.flush()
    return tz_name


async def get_user_timezone(session: AsyncSession, user_id: str) -> str:
    profile = await session.get(Profile, user_id)
    return (profile.time_zone if profile else None) or "UTC"


async def _totals_since(session: AsyncSession, user_id: str, start: date, end: date) -> dict[date, int]:
    rows = await session.scalars(
        select(DailyWatchSession).where(
            DailyWatchSession.user_id == user_id,
            DailyWatchSession.date >= start,
            DailyWatchSession.date <= end,
        )
    )
    return {row.date: row.watched_seconds or 0 for row in rows}


async def get_daily_history(session: AsyncSession, user_id: str, days: int = 7) -> list[DailyTotal]:
    """Recorded days from ``days`` days ago through today, newest first."""

    tz_name = await get_user_timezone(session, user_id)
    totals = await _totals_since(session, user_id, local_date(tz_name, days), local_date(tz_name))
    return [DailyTotal(date=day, watched_seconds=seconds) for day, seconds in sorted(totals.items(), reverse=True)]


async def get_watch_stats(session: AsyncSession, user_id: str, days: int = 7) -> WatchStats:
    """Totals for the last ``days`` days (today included) compared with the period before."""

    if days < 1:
        raise ValidationFailed("days must be at least 1")

    tz_name = await get_user_timezone(session, user_id)
    today = local_date(tz_name)
    totals = await _totals_since(session, user_id, today - timedelta(days=days * 2 - 1), today)

    current_days = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    previous_days = [today - timedelta(days=offset) for offset in range(days * 2 - 1, days - 1, -1)]

    series = [DailyTotal(date=day, watched_seconds=totals.get(day, 0)) for day in current_days]
    total = sum(point.watched_seconds for point in series)
    best = max(series, key=lambda point: point.watched_seconds)
    previous_total = sum(totals.get(day, 0) for day in previous_days)

    return WatchStats(
        total_seconds=total,
        avg_seconds_per_day=round(total / days),
        best_day=best.date if best.watched_seconds > 0 else None,
        best_day_seconds=best.watched_seconds,
        days_with_data=sum(1 for point in series if point.watched_seconds > 0),
        previous_period_total_seconds=previous_total,
        delta_seconds=total - previous_total,
        delta_percent=round((total - previous_total) / previous_total * 100) if previous_total > 0 else None,
        daily_series=series,
    )
