"""Pydantic models for feed, video state and watch-later endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ChannelBrief(BaseModel):
    title: str
    thumbnail_url: str | None
    custom_url: str | None = None


class VideoSummary(BaseModel):
    video_id: str
    channel_id: str
    title: str
    description: str | None = None
    thumbnail_url: str | None
    thumbnail_high_url: str | None
    published_at: datetime
    duration: str | None
    duration_label: str | None = None
    view_count: str | None = None
    view_label: str | None = None
    like_count: str | None = None
    channel: ChannelBrief | None


class FeedVideo(VideoSummary):
    watched: bool
    progress_seconds: int
    completed: bool


class FeedResponse(BaseModel):
    videos: list[FeedVideo]
    has_more: bool
    next_cursor: str | None


class VideoStateResponse(BaseModel):
    video_id: str
    watched: bool = False
    watched_at: datetime | None = None
    progress_seconds: int = 0
    completed: bool = False
    total_watched_seconds: int = 0
    watch_count: int = 0
    first_watched_at: datetime | None = None
    last_watched_at: datetime | None = None


class MarkWatchedRequest(BaseModel):
    watched: bool = True


class ProgressRequest(BaseModel):
    progress_seconds: int = Field(..., ge=0)
    completed: bool = False


class WatchDeltaRequest(BaseModel):
    delta_seconds: int
    progress_seconds: int | None = Field(None, ge=0)
    completed: bool = False
    is_new_session: bool = False


class WatchDeltaResponse(BaseModel):
    success: bool = True
    total_watched_seconds: int
    watched: bool


class HistoryItem(VideoStateResponse):
    video: VideoSummary | None


class HistoryResponse(BaseModel):
    history: list[HistoryItem]


class WatchLaterItemResponse(BaseModel):
    video_id: str
    added_at: datetime
    video: VideoSummary


class WatchLaterListResponse(BaseModel):
    videos: list[WatchLaterItemResponse]


class WatchLaterAddResponse(BaseModel):
    success: bool = True
    already_exists: bool = False


class WatchLaterToggleResponse(BaseModel):
    success: bool = True
    in_watch_later: bool


class WatchLaterStatusRequest(BaseModel):
    video_ids: list[str] = Field(default_factory=list, max_length=200)


class WatchLaterStatusResponse(BaseModel):
    watch_later: dict[str, bool]
