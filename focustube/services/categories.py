"""User-defined channel categories and their channel assignments."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core.errors import ConflictError, NotFoundError, ValidationFailed
from focustube.db.models import ChannelCategory, ChannelCategoryChannel, utcnow
from focustube.services.subscription_service import is_subscribed

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("Work", "/category-images/work.svg"),
    ("Learning", "/category-images/learning.svg"),
    ("Personal", "/category-images/personal.svg"),
    ("Travel", "/category-images/travel.svg"),
    ("Hobby", "/category-images/hobby.svg"),
)


@dataclass(slots=True)
class CategoryWithCount:
    category: ChannelCategory
    channel_count: int


def _clean_name(name: str) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValidationFailed("Category name cannot be empty")
    return trimmed


async def _name_taken(session: AsyncSession, user_id: str, name: str, *, exclude_id: str | None = None) -> bool:
    stmt = select(ChannelCategory.id).where(
        ChannelCategory.user_id == user_id,
        func.lower(ChannelCategory.name) == name.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(ChannelCategory.id != exclude_id)
    return await session.scalar(stmt.limit(1)) is not None


async def get_category(session: AsyncSession, user_id: str, category_id: str) -> ChannelCategory:
    category = await session.scalar(
        select(ChannelCategory).where(ChannelCategory.id == category_id, ChannelCategory.user_id == user_id)
    )
    if category is None:
        raise NotFoundError("Category not found")
    return category


async def ensure_default_categories(session: AsyncSession, user_id: str) -> int:
    """Create whichever default categories the user lacks; returns how many were created."""

    existing = {name.lower() for name in await session.scalars(
        select(ChannelCategory.name).where(ChannelCategory.user_id == user_id)
    )}
    missing = [(name, image) for name, image in DEFAULT_CATEGORIES if name.lower() not in existing]
    for name, image_url in missing:
        session.add(ChannelCategory(user_id=user_id, name=name, image_url=image_url))
    if missing:
        await session.flush()
        logger.info("Created default categories", extra={"user_id": user_id, "created": len(missing)})
    return len(missing)


async def create_category(
    session: AsyncSession, user_id: str, name: str, image_url: str | None = None
) -> ChannelCategory:
    trimmed = _clean_name(name)
    if await _name_taken(session, user_id, trimmed):
        raise ConflictError("A category with this name already exists")

    category = ChannelCategory(user_id=user_id, name=trimmed, image_url=image_url or None)
    session.add(category)
    await session.flush()
    return category


async def rename_category(session: AsyncSession, user_id: str, category_id: str, name: str) -> ChannelCategory:
    trimmed = _clean_name(name)
    category = await get_category(session, user_id, category_id)
    if await _name_taken(session, user_id, trimmed, exclude_id=category_id):
        raise ConflictError("A category with this name already exists")

    category.name = trimmed
    category.updated_at = utcnow()
    await session.flush()
    return category


async def update_category_image(
    session: AsyncSession, user_id: str, category_id: str, image_url: str | None
) -> ChannelCategory:
    """Set or clear the category's cover image."""

    category = await get_category(session, user_id, category_id)
    category.image_url = image_url or None
    category.updated_at = utcnow()
    await session.flush()
    return category


async def delete_category(session: AsyncSession, user_id: str, category_id: str) -> bool:
    """Delete a category and its assignments; returns False when it did not exist."""

    category = await session.scalar(
        select(ChannelCategory).where(ChannelCategory.id == category_id, ChannelCategory.user_id == user_id)
    )
    if category is None:
        return False
    await session.delete(category)
    await session.flush()
    return True


async def list_categories(session: AsyncSession, user_id: str) -> Sequence[ChannelCategory]:
    result = await session.scalars(
        select(ChannelCategory).where(ChannelCategory.user_id == user_id).order_by(ChannelCategory.name)
    )
    return list(result)


async def categories_with_channel_counts(session: AsyncSession, user_id: str) -> list[CategoryWithCount]:
    counts = dict(
        (
            await session.execute(
                select(ChannelCategoryChannel.category_id, func.count())
                .where(ChannelCategoryChannel.user_id == user_id)
                .group_by(ChannelCategoryChannel.category_id)
            )
        ).all()
    )
    return [
        CategoryWithCount(category=category, channel_count=int(counts.get(category.id, 0)))
        for category in await list_categories(session, user_id)
    ]


async def set_channel_categories(
    session: AsyncSession, user_id: str, channel_id: str, category_ids: Iterable[str]
) -> list[str]:
    """Replace the channel's category assignments with ``category_ids``."""

    if not await is_subscribed(session, user_id, channel_id):
        raise NotFoundError("Channel not found in your subscriptions")

    wanted = list(dict.fromkeys(category_ids))
    if wanted:
        owned = set(
            await session.scalars(
                select(ChannelCategory.id).where(
                    ChannelCategory.user_id == user_id, ChannelCategory.id.in_(wanted)
                )
            )
        )
        unknown = [category_id for category_id in wanted if category_id not in owned]
        if unknown:
            raise NotFoundError("Category not found")

    await session.execute(
        delete(ChannelCategoryChannel).where(
            ChannelCategoryChannel.user_id == user_id,
            ChannelCategoryChannel.channel_id == channel_id,
        )
    )
    for category_id in wanted:
        session.add(ChannelCategoryChannel(user_id=user_id, category_id=category_id, channel_id=channel_id))
    await session.flush()
    return wanted


async def get_channel_categories(session: AsyncSession, user_id: str, channel_id: str) -> list[str]:
    result = await session.scalars(
        select(ChannelCategoryChannel.category_id).where(
            ChannelCategoryChannel.user_id == user_id,
            ChannelCategoryChannel.channel_id == channel_id,
        )
    )
    return list(result)


async def get_channels_in_category(session: AsyncSession, user_id: str, category_id: str) -> list[str]:
    result = await session.scalars(
        select(ChannelCategoryChannel.channel_id).where(
            ChannelCategoryChannel.user_id == user_id,
            ChannelCategoryChannel.category_id == category_id,
        )
    )
    return list(result)
