"""Dodo Payments integration: checkout, customer portal and subscription webhooks.

Subscription state on a profile only ever changes here, in response to
verified provider events. Webhooks are recorded in ``dodo_webhook_events``
before they are applied so a redelivered ``webhook-id`` is a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from dodopayments import AsyncDodoPayments, DodoPaymentsError
from fastapi import status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from standardwebhooks.webhooks import WebhookVerificationError

from focustube.core import tiers
from focustube.core.config import settings
from focustube.core.errors import FocusTubeError, NotConfiguredError, ValidationFailed
from focustube.db.models import Profile, WebhookEvent, utcnow
from focustube.services.account import find_profile_by_email

logger = logging.getLogger(__name__)

WEBHOOK_HEADERS = ("webhook-id", "webhook-signature", "webhook-timestamp")

# Provider subscription status -> profiles.subscription_status
STATUS_MAP = {
    "pending": "pending",
    "active": "active",
    "on_hold": "past_due",
    "cancelled": "cancelled",
    "failed": "failed",
    "expired": "expired",
}


class BillingProviderError(FocusTubeError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class MissingWebhookHeaders(FocusTubeError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidWebhookSignature(FocusTubeError):
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidWebhookPayload(FocusTubeError):
    status_code = status.HTTP_400_BAD_REQUEST


@dataclass(slots=True)
class CheckoutSession:
    checkout_url: str
    session_id: str | None


def get_product_id_for_tier(tier: str) -> str | None:
    """Provider product for a paid tier; the free tier has none."""

    products = {"pro": settings.dodo_product_pro, "unlimited": settings.dodo_product_unlimited}
    return products.get(tier) or None


def get_tier_for_product_id(product_id: str | None) -> tiers.TierID:
    if product_id:
        if product_id == settings.dodo_product_pro:
            return "pro"
        if product_id == settings.dodo_product_unlimited:
            return "unlimited"
    return tiers.DEFAULT_TIER


def is_dodo_configured() -> bool:
    return bool(settings.dodo_payments_api_key and settings.dodo_payments_webhook_key)


def get_return_url() -> str:
    return (settings.dodo_payments_return_url or settings.app_url).rstrip("/")


def get_dodo_client() -> AsyncDodoPayments:
    """FastAPI dependency returning a configured provider client."""

    if not is_dodo_configured():
        raise NotConfiguredError("Payment system not configured")
    return AsyncDodoPayments(
        bearer_token=settings.dodo_payments_api_key,
        webhook_key=settings.dodo_payments_webhook_key,
        environment=settings.dodo_payments_environment,
    )


def get_webhook_client() -> AsyncDodoPayments:
    if not settings.dodo_payments_webhook_key:
        logger.error("Dodo Payments webhook key not configured")
        raise NotConfiguredError("Webhook handler not configured")
    return get_dodo_client()


async def create_checkout_session(client: AsyncDodoPayments, profile: Profile, tier: str) -> CheckoutSession:
    if not tiers.is_upgradeable_tier(tier):
        raise ValidationFailed("Invalid tier. Must be 'pro' or 'unlimited'")
    if profile.subscription_tier == tier:
        raise ValidationFailed("You are already on this plan")
    if profile.subscription_tier == "unlimited" and tier == "pro":
        raise ValidationFailed("Cannot downgrade via checkout. Use customer portal to manage subscription.")

    product_id = get_product_id_for_tier(tier)
    if not product_id:
        raise BillingProviderError("Product not configured for this tier")

    try:
        response = await client.checkout_sessions.create(
            product_cart=[{"product_id": product_id, "quantity": 1}],
            customer={"email": profile.email or "", "name": profile.full_name or ""},
            metadata={"user_id": profile.id, "tier": tier},
            return_url=f"{get_return_url()}/settings?billing=success",
        )
    except DodoPaymentsError as exc:
        logger.exception("Checkout session creation failed", extra={"user_id": profile.id, "tier": tier})
        raise BillingProviderError("Failed to create checkout session") from exc

    if not response.checkout_url:
        raise BillingProviderError("Failed to create checkout session")
    logger.info("Created checkout session", extra={"user_id": profile.id, "tier": tier})
    return CheckoutSession(checkout_url=response.checkout_url, session_id=response.session_id)


async def create_customer_portal(client: AsyncDodoPayments, profile: Profile) -> str:
    """Return a customer-portal link for managing an existing subscription."""

    if not profile.dodo_customer_id:
        raise ValidationFailed("No subscription found. Please upgrade first.")
    try:
        portal = await client.customers.customer_portal.create(profile.dodo_customer_id)
    except DodoPaymentsError as exc:
        logger.exception("Customer portal creation failed", extra={"user_id": profile.id})
        raise BillingProviderError("Failed to create customer portal session") from exc

    if not portal.link:
        raise BillingProviderError("Failed to create portal session")
    return portal.link


def verify_webhook(client: AsyncDodoPayments, raw_body: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
    """Unwrap a signed delivery with the provider client and return the event as a dict."""

    values = {name: headers.get(name) for name in WEBHOOK_HEADERS}
    if not all(values.values()):
        raise MissingWebhookHeaders("Missing webhook headers")

    try:
        event = client.webhooks.unwrap(raw_body.decode("utf-8"), headers=values)
    except WebhookVerificationError as exc:
        logger.warning("Webhook signature verification failed", extra={"webhook_id": values["webhook-id"]})
        raise InvalidWebhookSignature("Invalid signature") from exc
    except ValueError as exc:
        raise InvalidWebhookPayload("Invalid webhook payload") from exc

    # Event types the client does not model come back as plain dicts.
    if isinstance(event, BaseModel):
        event = event.model_dump(mode="json", by_alias=True, exclude_unset=True, warnings=False)
    if not isinstance(event, dict) or not isinstance(event.get("type"), str):
        raise InvalidWebhookPayload("Invalid webhook payload")
    return event


async def record_webhook_event(
    session: AsyncSession, webhook_id: str, event_type: str, payload: dict[str, Any]
) -> bool:
    """Insert the ledger row; returns False when ``webhook_id`` was already recorded."""

    existing = await session.scalar(select(WebhookEvent.id).where(WebhookEvent.webhook_id == webhook_id))
    if existing is not None:
        return False

    session.add(WebhookEvent(webhook_id=webhook_id, event_type=event_type, payload=payload, processed=False))
    try:
        await session.flush()
    except IntegrityError:
        # Lost a race with a concurrent delivery of the same webhook.
        await session.rollback()
        return False
    return True


async def _resolve_profile(session: AsyncSession, data: Mapping[str, Any]) -> Profile | None:
    user_id = (data.get("metadata") or {}).get("user_id")
    if user_id:
        profile = await session.get(Profile, user_id)
        if profile is not None:
            return profile
    email = (data.get("customer") or {}).get("email")
    if email:
        return await find_profile_by_email(session, email)
    return None


async def handle_subscription_event(session: AsyncSession, event: Mapping[str, Any]) -> bool:
    """Apply a ``subscription.*`` event to the owning profile; returns False when nothing changed."""

    event_type = event.get("type", "")
    data = event.get("data") or {}

    profile = await _resolve_profile(session, data)
    if profile is None:
        logger.warning(
            "Cannot find user for subscription",
            extra={"subscription_id": data.get("subscription_id"), "event_type": event_type},
        )
        return False

    product_id = data.get("product_id")
    tier = get_tier_for_product_id(product_id)
    provider_status = data.get("status")
    mapped_status = STATUS_MAP.get(provider_status, provider_status)
    customer_id = (data.get("customer") or {}).get("customer_id")

    logger.info(
        "Processing subscription event",
        extra={"event_type": event_type, "user_id": profile.id, "status": mapped_status, "tier": tier},
    )

    if event_type in ("subscription.active", "subscription.renewed"):
        profile.dodo_customer_id = customer_id or profile.dodo_customer_id
        profile.dodo_subscription_id = data.get("subscription_id")
        profile.dodo_product_id = product_id
        profile.subscription_tier = tier
        profile.subscription_status = "active"
    elif event_type in ("subscription.updated", "subscription.plan_changed"):
        profile.dodo_customer_id = customer_id or profile.dodo_customer_id
        profile.dodo_subscription_id = data.get("subscription_id")
        profile.dodo_product_id = product_id
        profile.subscription_tier = tier
        profile.subscription_status = mapped_status
    elif event_type == "subscription.on_hold":
        profile.subscription_status = "past_due"
    elif event_type in ("subscription.cancelled", "subscription.expired", "subscription.failed"):
        # The customer id is kept so the user can resubscribe.
        profile.subscription_tier = tiers.DEFAULT_TIER
        profile.subscription_status = mapped_status
        profile.dodo_subscription_id = None
        profile.dodo_product_id = None
    else:
        logger.info("Unhandled subscription event type", extra={"event_type": event_type})
        return False

    profile.updated_at = utcnow()
    await session.flush()
    return True


async def process_webhook(session: AsyncSession, webhook_id: str, event: dict[str, Any]) -> bool:
    """Record and apply a verified webhook; returns False for a duplicate delivery."""

    event_type = event.get("type", "")
    if not await record_webhook_event(session, webhook_id, event_type, event):
        logger.info("Webhook already processed, skipping", extra={"webhook_id": webhook_id})
        return False

    if event_type.startswith("subscription."):
        await handle_subscription_event(session, event)

    ledger = await session.scalar(select(WebhookEvent).where(WebhookEvent.webhook_id == webhook_id))
    ledger.processed = True
    await session.flush()
    return True
