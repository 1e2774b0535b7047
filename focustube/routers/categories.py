"""API endpoints for channel categories."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core.auth import get_current_user
from focustube.db.models import ChannelCategory, Profile
from focustube.db.session import get_session
from focustube.schema.category import (
    CategoryChannelsResponse,
    CategoryCreateRequest,
    CategoryImageRequest,
    CategoryListResponse,
    CategoryNameRequest,
    CategoryResponse,
    ChannelCategoriesRequest,
    ChannelCategoriesResponse,
    EnsureDefaultsResponse,
)
from focustube.services import categories as category_service

router = APIRouter(prefix="/categories", tags=["categories"])


def _map_category(category: ChannelCategory, channel_count: int | None = None) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        name=category.name,
        image_url=category.image_url,
        created_at=category.created_at,
        channel_count=channel_count,
    )


@router.get("", response_model=CategoryListResponse)
async def list_categories(
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> CategoryListResponse:
    counted = await category_service.categories_with_channel_counts(session, user.id)
    return CategoryListResponse(
        categories=[_map_category(item.category, item.channel_count) for item in counted]
    )


@router.post("/defaults", response_model=EnsureDefaultsResponse)
async def ensure_defaults(
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> EnsureDefaultsResponse:
    created = await category_service.ensure_default_categories(session, user.id)
    await session.commit()
    return EnsureDefaultsResponse(created=created)


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreateRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> CategoryResponse:
    category = await category_service.create_category(session, user.id, payload.name, payload.image_url)
    await session.commit()
    return _map_category(category, 0)


@router.patch("/{category_id}", response_model=CategoryResponse)
async def rename_category(
    category_id: str,
    payload: CategoryNameRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> CategoryResponse:
    category = await category_service.rename_category(session, user.id, category_id, payload.name)
    await session.commit()
    return _map_category(category)


@router.patch("/{category_id}/image", response_model=CategoryResponse)
async def update_category_image(
    category_id: str,
    payload: CategoryImageRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> CategoryResponse:
    category = await category_service.update_category_image(session, user.id, category_id, payload.image_url)
    await session.commit()
    return _map_category(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: str,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> None:
    if not await category_service.delete_category(session, user.id, category_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    await session.commit()


@router.get("/{category_id}/channels", response_model=CategoryChannelsResponse)
async def channels_in_category(
    category_id: str,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> CategoryChannelsResponse:
    channel_ids = await category_service.get_channels_in_category(session, user.id, category_id)
    return CategoryChannelsResponse(category_id=category_id, channel_ids=channel_ids)


@router.get("/channels/{channel_id}", response_model=ChannelCategoriesResponse)
async def get_channel_categories(
    channel_id: str,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ChannelCategoriesResponse:
    category_ids = await category_service.get_channel_categories(session, user.id, channel_id)
    return ChannelCategoriesResponse(channel_id=channel_id, category_ids=category_ids)


@router.put("/channels/{channel_id}", response_model=ChannelCategoriesResponse)
async def set_channel_categories(
    channel_id: str,
    payload: ChannelCategoriesRequest,
    user: Profile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ChannelCategoriesResponse:
    category_ids = await category_service.set_channel_categories(
        session, user.id, channel_id, payload.category_ids
    )
    await session.commit()
    return ChannelCategoriesResponse(channel_id=channel_id, category_ids=category_ids)
