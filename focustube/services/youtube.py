"""Async client for the YouTube Data API v3 (channels, search, playlist items, videos)."""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from focustube.core.config import settings

logger = logging.getLogger(__name__)

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"
CHANNEL_PARTS = "snippet,statistics,contentDetails"
ISO_DURATION_REGEX = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")


class YouTubeError(RuntimeError):
    """Base class for YouTube Data API failures."""


class YouTubeConfigError(YouTubeError):
    """Raised when no API key is configured."""


class YouTubeAPIError(YouTubeError):
    """Raised when the API answers with an error or cannot be reached."""


@dataclass(slots=True)
class ChannelData:
    channel_id: str
    title: str
    description: str | None = None
    thumbnail_url: str | None = None
    subscriber_count: str | None = None
    video_count: str | None = None
    uploads_playlist_id: str | None = None
    custom_url: str | None = None


@dataclass(slots=True)
class VideoData:
    video_id: str
    channel_id: str
    title: str
    published_at: datetime
    description: str | None = None
    thumbnail_url: str | None = None
    thumbnail_high_url: str | None = None
    duration: str | None = None
    view_count: str | None = None
    like_count: str | None = None


def parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Failed to parse datetime", extra={"value": value})
        return None


def format_count(count: str | int | None, suffix: str = "") -> str | None:
    """Render ``1234567`` as ``1.2M`` (with an optional suffix such as ``" views"``)."""

    if count is None or count == "":
        return None
    try:
        number = int(count)
    except (TypeError, ValueError):
        return None
    if number >= 1_000_000:
        label = f"{number / 1_000_000:.1f}M"
    elif number >= 1_000:
        label = f"{number / 1_000:.1f}K"
    else:
        label = str(number)
    return f"{label}{suffix}"


def format_duration(duration: str | None) -> str | None:
    """Render an ISO-8601 duration (``PT1H2M3S``) as ``1:02:03`` or ``2:03``."""

    if not duration:
        return None
    match = ISO_DURATION_REGEX.match(duration)
    if not match:
        return None
    hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def _best_thumbnail(thumbnails: dict[str, Any], *preferred: str) -> str | None:
    for key in preferred:
        url = (thumbnails.get(key) or {}).get("url")
        if url:
            return url
    return None


def _channel_from_item(item: dict[str, Any]) -> ChannelData:
    snippet = item.get("snippet") or {}
    statistics = item.get("statistics") or {}
    related = (item.get("contentDetails") or {}).get("relatedPlaylists") or {}
    return ChannelData(
        channel_id=item["id"],
        title=snippet.get("title") or item["id"],
        description=snippet.get("description"),
        thumbnail_url=_best_thumbnail(snippet.get("thumbnails") or {}, "medium", "default"),
        subscriber_count=statistics.get("subscriberCount"),
        video_count=statistics.get("videoCount"),
        uploads_playlist_id=related.get("uploads"),
        custom_url=snippet.get("customUrl"),
    )


class YouTubeClient:
    """Thin wrapper around the Data API endpoints FocusTube needs."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = YOUTUBE_API_BASE,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.youtube_api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.youtube_request_timeout)
        self._base_url = base_url.rstrip("/")

    async def __aenter__(self) -> YouTubeClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        if not self._api_key:
            raise YouTubeConfigError("YouTube API key is not configured")

        url = f"{self._base_url}/{endpoint}"
        try:
            response = await self._client.get(url, params={**params, "key": self._api_key})
        except httpx.RequestError as exc:
            raise YouTubeAPIError("YouTube API error: unable to reach the YouTube Data API") from exc

        if response.is_error:
            reason = response.reason_phrase
            try:
                reason = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                pass
            logger.warning(
                "YouTube API request failed",
                extra={"endpoint": endpoint, "status": response.status_code, "reason": reason},
            )
            raise YouTubeAPIError(f"YouTube API error: {response.status_code} {reason}")

        try:
            return response.json()
        except ValueError as exc:
            raise YouTubeAPIError("YouTube API error: invalid JSON response") from exc

    async def _first_channel(self, **params: str) -> ChannelData | None:
        payload = await self._get("channels", {"part": CHANNEL_PARTS, **params})
        items = payload.get("items") or []
        return _channel_from_item(items[0]) if items else None

    async def get_channel_by_id(self, channel_id: str) -> ChannelData | None:
        return await self._first_channel(id=channel_id)

    async def get_channel_by_handle(self, handle: str) -> ChannelData | None:
        normalised = handle.strip().lstrip("@")
        if not normalised:
            return None
        return await self._first_channel(forHandle=normalised)

    async def get_channel_by_username(self, username: str) -> ChannelData | None:
        return await self._first_channel(forUsername=username.strip())

    async def get_channels(self, channel_ids: list[str]) -> list[ChannelData]:
        if not channel_ids:
            return []
        payload = await self._get("channels", {"part": CHANNEL_PARTS, "id": ",".join(channel_ids)})
        by_id = {item["id"]: _channel_from_item(item) for item in payload.get("items") or []}
        return [by_id[channel_id] for channel_id in channel_ids if channel_id in by_id]

    async def search_channels(self, query: str, max_results: int = 10) -> list[ChannelData]:
        """Free-text channel search, returned in the API's relevance order."""

        query = query.strip()
        if not query:
            return []
        payload = await self._get(
            "search",
            {"part": "snippet", "type": "channel", "q": query, "maxResults": max_results},
        )
        channel_ids: list[str] = []
        for item in payload.get("items") or []:
            channel_id = (item.get("id") or {}).get("channelId") or (item.get("snippet") or {}).get("channelId")
            if channel_id and channel_id not in channel_ids:
                channel_ids.append(channel_id)
        return await self.get_channels(channel_ids)

    async def get_channel_by_custom_url(self, custom_url: str) -> ChannelData | None:
        """Legacy ``/c/<name>`` URLs have no lookup endpoint; match them against search results."""

        wanted = custom_url.strip().lstrip("@").lower()
        if not wanted:
            return None
        for channel in await self.search_channels(wanted, max_results=5):
            if channel.custom_url and channel.custom_url.lstrip("@").lower() == wanted:
                return channel
        return None

    async def get_channel_videos(self, uploads_playlist_id: str, max_results: int = 20) -> list[VideoData]:
        """Return the most recent uploads from a channel's uploads playlist."""

        playlist = await self._get(
            "playlistItems",
            {
                "part": "snippet,contentDetails",
                "playlistId": uploads_playlist_id,
                "maxResults": min(max(max_results, 1), 50),
            },
        )
        items = playlist.get("items") or []
        snippets: dict[str, dict[str, Any]] = {}
        for item in items:
            snippet = item.get("snippet") or {}
            video_id = (snippet.get("resourceId") or {}).get("videoId") or (
                item.get("contentDetails") or {}
            ).get("videoId")
            if video_id:
                snippets[video_id] = {**snippet, "_published": (item.get("contentDetails") or {}).get("videoPublishedAt")}
        if not snippets:
            return []

        details = await self._get(
            "videos",
            {"part": "contentDetails,statistics", "id": ",".join(snippets)},
        )
        details_by_id = {item["id"]: item for item in details.get("items") or []}

        videos: list[VideoData] = []
        for video_id, snippet in snippets.items():
            published_at = parse_datetime(snippet.get("_published")) or parse_datetime(snippet.get("publishedAt"))
            if published_at is None:
                logger.debug("Skipping playlist item without publish date", extra={"video_id": video_id})
                continue
            detail = details_by_id.get(video_id) or {}
            statistics = detail.get("statistics") or {}
            thumbnails = snippet.get("thumbnails") or {}
            videos.append(
                VideoData(
                    video_id=video_id,
                    channel_id=snippet.get("videoOwnerChannelId") or snippet.get("channelId") or "",
                    title=snippet.get("title") or video_id,
                    description=snippet.get("description"),
                    thumbnail_url=_best_thumbnail(thumbnails, "medium", "default"),
                    thumbnail_high_url=_best_thumbnail(thumbnails, "maxres", "high", "medium"),
                    published_at=published_at,
                    duration=(detail.get("contentDetails") or {}).get("duration"),
                    view_count=statistics.get("viewCount"),
                    like_count=statistics.get("likeCount"),
                )
            )
        return videos


async def get_youtube_client() -> AsyncIterator[YouTubeClient]:
    """FastAPI dependency yielding a YouTube client bound to a pooled HTTP client."""

    async with YouTubeClient() as client:
        yield client
