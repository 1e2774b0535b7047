"""Pydantic models for channel subscription endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ChannelCreateRequest(BaseModel):
    """Inbound payload to subscribe to a channel."""

    input: str = Field(..., min_length=1, description="YouTube channel URL, @handle, UC id or search text")
    category_ids: list[str] = Field(default_factory=list)


class ChannelSummary(BaseModel):
    channel_id: str
    title: str
    description: str | None = None
    thumbnail_url: str | None = None
    subscriber_count: str | None = None
    subscriber_label: str | None = None
    video_count: str | None = None
    uploads_playlist_id: str | None = None
    custom_url: str | None = None


class SubscribedChannelResponse(ChannelSummary):
    subscribed_at: datetime
    category_ids: list[str]


class ChannelListResponse(BaseModel):
    channels: list[SubscribedChannelResponse]
    count: int
    limit: int | None


class AddChannelResponse(BaseModel):
    success: bool
    channel: ChannelSummary


class RefreshResponse(BaseModel):
    success: bool = True
    video_count: int


class ChannelSearchResponse(BaseModel):
    channels: list[ChannelSummary]
