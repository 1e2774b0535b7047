"""Subscription tier table shared by quota checks, billing and the pricing API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

TierID = Literal["free", "pro", "unlimited"]

DEFAULT_TIER: TierID = "free"
UPGRADEABLE_TIERS: tuple[TierID, ...] = ("pro", "unlimited")


@dataclass(frozen=True, slots=True)
class TierConfig:
    """Display and quota information for one subscription tier."""

    id: TierID
    name: str
    price: str
    price_amount: str
    period: str
    description: str
    channel_limit: int | None
    history_days: int | None
    features: list[str] = field(default_factory=list)


TIERS: dict[TierID, TierConfig] = {
    "free": TierConfig(
        id="free",
        name="Free",
        price="$0",
        price_amount="$0",
        period="forever",
        description="Perfect for getting started",
        channel_limit=5,
        history_days=7,
        features=[
            "Up to 5 channels",
            "Basic chronological feed",
            "Watch history (7 days)",
            "Watch time tracking",
        ],
    ),
    "pro": TierConfig(
        id="pro",
        name="Pro",
        price="$9/month",
        price_amount="$9",
        period="/month",
        description="Most popular for focused viewers",
        channel_limit=25,
        history_days=30,
        features=[
            "Up to 25 channels",
            "Custom categories",
            "Watch history (30 days)",
            "Resume playback",
            "Video search",
            "Daily watch limits",
            "7-day free trial",
        ],
    ),
    "unlimited": TierConfig(
        id="unlimited",
        name="Unlimited",
        price="$12/month",
        price_amount="$12",
        period="/month",
        description="No limits, ever",
        channel_limit=None,
        history_days=None,
        features=[
            "Unlimited channels",
            "Everything in Pro",
            "Forever watch history",
            "Export channel list",
            "Priority support",
            "Priority access to new features",
            "7-day free trial",
        ],
    ),
}


def get_tier(tier_id: str | None) -> TierConfig:
    """Return the tier config, treating unknown or missing ids as the free tier."""

    return TIERS.get(tier_id or DEFAULT_TIER, TIERS[DEFAULT_TIER])  # type: ignore[arg-type]


def all_tiers() -> list[TierConfig]:
    return list(TIERS.values())


def channel_limit(tier_id: str | None) -> int | None:
    """Maximum number of subscribed channels; ``None`` means unlimited."""

    return get_tier(tier_id).channel_limit


def has_capacity(tier_id: str | None, current_count: int) -> bool:
    limit = channel_limit(tier_id)
    return limit is None or current_count < limit


def history_window_days(tier_id: str | None) -> int | None:
    return get_tier(tier_id).history_days


def is_upgradeable_tier(value: str | None) -> bool:
    return value in UPGRADEABLE_TIERS
