"""Refresh cached uploads for every channel, or for one user's subscriptions.

Usage: python -m focustube.jobs.refresh_channels [<user_id>]
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from sqlalchemy import select

from focustube.core.config import settings
from focustube.db.models import YouTubeChannel
from focustube.db.session import session_scope
from focustube.services.subscription_service import refresh_channel_videos, subscribed_channel_ids
from focustube.services.youtube import YouTubeClient, YouTubeConfigError, YouTubeError

logger = logging.getLogger(__name__)


async def channels_to_refresh(user_id: str | None) -> list[str]:
    async with session_scope() as session:
        if user_id:
            return await subscribed_channel_ids(session, user_id)
        result = await session.scalars(select(YouTubeChannel.channel_id).order_by(YouTubeChannel.updated_at))
        return list(result)


async def refresh_once(user_id: str | None = None, *, youtube: YouTubeClient | None = None) -> int:
    """Refresh channels one at a time; returns the number of videos written."""

    channel_ids = await channels_to_refresh(user_id)
    if not channel_ids:
        logger.warning("No channels to refresh", extra={"user_id": user_id})
        return 0

    total = 0
    async with youtube or YouTubeClient() as client:
        for channel_id in channel_ids:
            try:
                async with session_scope() as session:
                    total += await refresh_channel_videos(
                        session, client, channel_id, max_results=settings.refresh_video_count
                    )
            except YouTubeConfigError:
                raise
            except YouTubeError:
                logger.exception("Channel refresh failed", extra={"channel_id": channel_id})

    logger.info("Refresh complete", extra={"channels": len(channel_ids), "videos": total})
    return total


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Refresh cached YouTube uploads.")
    parser.add_argument("user_id", nargs="?", help="only refresh this user's subscribed channels")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    asyncio.run(refresh_once(args.user_id))


if __name__ == "__main__":
    main()
