"""Utilities for normalising user-supplied YouTube channel references."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal
from urllib.parse import parse_qs, urlparse

from focustube.services.youtube import ChannelData, YouTubeClient

CHANNEL_ID_REGEX = re.compile(r"^UC[0-9A-Za-z_-]{22}$")

InputKind = Literal["id", "handle", "username", "custom_url", "search"]

# Checked in order; the first match wins.
_URL_PATTERNS: tuple[tuple[InputKind, re.Pattern[str]], ...] = (
    ("id", re.compile(r"youtube\.com/channel/([A-Za-z0-9_-]+)")),
    ("handle", re.compile(r"youtube\.com/@([A-Za-z0-9_.-]+)")),
    ("custom_url", re.compile(r"youtube\.com/c/([A-Za-z0-9_-]+)")),
    ("username", re.compile(r"youtube\.com/user/([A-Za-z0-9_-]+)")),
)


@dataclass(frozen=True, slots=True)
class ParsedChannelInput:
    kind: InputKind
    value: str


def _channel_id_from_feed_url(identifier: str) -> str | None:
    if not identifier.startswith(("http://", "https://")):
        return None
    parsed = urlparse(identifier)
    channel_ids = parse_qs(parsed.query).get("channel_id")
    if channel_ids and CHANNEL_ID_REGEX.match(channel_ids[-1]):
        return channel_ids[-1]
    return None


def parse_channel_input(raw: str) -> ParsedChannelInput | None:
    """Classify a channel URL, handle, id or free-text query.

    Supports:
      * ``youtube.com/channel/UC...`` and feed URLs carrying ``channel_id``
      * ``youtube.com/@handle`` and bare ``@handle``
      * legacy ``youtube.com/c/<name>`` and ``youtube.com/user/<name>`` URLs
      * raw channel ids (``UC`` + 22 characters)

    Anything else is treated as a search query. Returns ``None`` for blank input.
    """

    identifier = (raw or "").strip()
    if not identifier:
        return None

    feed_channel_id = _channel_id_from_feed_url(identifier)
    if feed_channel_id:
        return ParsedChannelInput("id", feed_channel_id)

    for kind, pattern in _URL_PATTERNS:
        match = pattern.search(identifier)
        if match:
            return ParsedChannelInput(kind, match.group(1))

    if identifier.startswith("@") and len(identifier) > 1:
        return ParsedChannelInput("handle", identifier[1:])

    if CHANNEL_ID_REGEX.match(identifier):
        return ParsedChannelInput("id", identifier)

    return ParsedChannelInput("search", identifier)


async def resolve_channel(client: YouTubeClient, parsed: ParsedChannelInput) -> ChannelData | None:
    """Look up the channel a parsed input refers to, falling back to search."""

    channel: ChannelData | None = None
    if parsed.kind == "id":
        channel = await client.get_channel_by_id(parsed.value)
    elif parsed.kind == "handle":
        channel = await client.get_channel_by_handle(parsed.value)
    elif parsed.kind == "username":
        # Many legacy usernames were migrated to handles of the same name.
        channel = await client.get_channel_by_username(parsed.value) or await client.get_channel_by_handle(
            parsed.value
        )
    elif parsed.kind == "custom_url":
        channel = await client.get_channel_by_custom_url(parsed.value)

    if channel is None:
        results = await client.search_channels(parsed.value, max_results=1)
        channel = results[0] if results else None
    return channel
