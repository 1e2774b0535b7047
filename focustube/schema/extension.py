"""Pydantic models for the browser-extension API (camelCase on the wire)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ExtensionModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtensionUser(ExtensionModel):
    id: str
    email: str | None
    subscription_tier: str
    channel_count: int
    channel_limit: int | None


class ExtensionMeResponse(ExtensionModel):
    authenticated: bool = True
    user: ExtensionUser


class ExtensionCategory(ExtensionModel):
    id: str
    name: str
    image_url: str | None


class ExtensionCategoriesResponse(ExtensionModel):
    categories: list[ExtensionCategory]


class ExtensionAddChannelRequest(ExtensionModel):
    input: str = Field(..., min_length=1)
    category_ids: list[str] = Field(default_factory=list)


class ExtensionChannel(ExtensionModel):
    channel_id: str
    title: str
    thumbnail_url: str | None
    custom_url: str | None


class ExtensionAddChannelResponse(ExtensionModel):
    success: bool = True
    channel: ExtensionChannel
