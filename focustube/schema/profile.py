"""Pydantic models for profile, plan and billing endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ProfileResponse(BaseModel):
    id: str
    email: str | None
    full_name: str | None
    avatar_url: str | None
    subscription_tier: str
    subscription_status: str | None
    time_zone: str
    daily_watch_limit_minutes: int
    watch_limit_enabled: bool
    channel_count: int
    channel_limit: int | None
    history_days: int | None
    created_at: datetime


class ProfileUpdateRequest(BaseModel):
    """Only display fields; plan fields are owned by billing webhooks."""

    full_name: str | None = Field(None, max_length=255)
    avatar_url: str | None = Field(None, max_length=1024)


class TierResponse(BaseModel):
    id: str
    name: str
    price: str
    price_amount: str
    period: str
    description: str
    channel_limit: int | None
    history_days: int | None
    features: list[str]


class TierListResponse(BaseModel):
    tiers: list[TierResponse]


class CheckoutRequest(BaseModel):
    tier: str


class CheckoutResponse(BaseModel):
    checkout_url: str
    session_id: str | None


class PortalResponse(BaseModel):
    portal_url: str


class WebhookAck(BaseModel):
    received: bool = True
