"""Pydantic models for watch-time endpoints."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class WatchTimeResponse(BaseModel):
    daily_limit_minutes: int
    is_limit_enabled: bool
    today_watched_seconds: int
    limit_reached: bool
    session_id: int | None


class AddWatchTimeRequest(BaseModel):
    additional_seconds: int = Field(..., ge=0)


class SetWatchTimeRequest(BaseModel):
    total_seconds: int = Field(..., ge=0)


class WatchedSecondsResponse(BaseModel):
    watched_seconds: int


class WatchLimitSettingsRequest(BaseModel):
    daily_limit_minutes: int | None = Field(None, ge=1, le=1440)
    is_limit_enabled: bool | None = None


class WatchLimitSettingsResponse(BaseModel):
    daily_limit_minutes: int
    is_limit_enabled: bool


class TimezoneRequest(BaseModel):
    timezone: str = Field(..., min_length=1, max_length=64)


class TimezoneResponse(BaseModel):
    timezone: str


class DailyTotalResponse(BaseModel):
    date: date
    watched_seconds: int


class DailyHistoryResponse(BaseModel):
    history: list[DailyTotalResponse]


class WatchStatsResponse(BaseModel):
    total_seconds: int
    avg_seconds_per_day: int
    best_day: date | None
    best_day_seconds: int
    days_with_data: int
    previous_period_total_seconds: int
    delta_seconds: int
    delta_percent: int | None
    daily_series: list[DailyTotalResponse]
