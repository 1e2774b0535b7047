"""Pydantic models for category endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CategoryNameRequest(BaseModel):
    name: str = Field(..., max_length=100)


class CategoryCreateRequest(CategoryNameRequest):
    image_url: str | None = Field(None, max_length=1024)


class CategoryImageRequest(BaseModel):
    image_url: str | None = Field(None, max_length=1024)


class CategoryResponse(BaseModel):
    id: str
    name: str
    image_url: str | None
    created_at: datetime
    channel_count: int | None = None


class CategoryListResponse(BaseModel):
    categories: list[CategoryResponse]


class EnsureDefaultsResponse(BaseModel):
    success: bool = True
    created: int


class ChannelCategoriesRequest(BaseModel):
    category_ids: list[str] = Field(default_factory=list)


class ChannelCategoriesResponse(BaseModel):
    channel_id: str
    category_ids: list[str]


class CategoryChannelsResponse(BaseModel):
    category_id: str
    channel_ids: list[str]
