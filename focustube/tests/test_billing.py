"""Tests for checkout rules and subscription webhook handling."""

from __future__ import annotations

import json

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import PRO_PRODUCT, UNLIMITED_PRODUCT, WEBHOOK_KEY, FakeDodo, create_profile, signed_headers
from focustube.core.config import settings
from focustube.core.errors import NotConfiguredError, ValidationFailed
from focustube.db.models import Profile, WebhookEvent
from focustube.services import billing


@pytest.fixture(autouse=True)
def billing_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "dodo_payments_api_key", "test-api-key")
    monkeypatch.setattr(settings, "dodo_payments_webhook_key", WEBHOOK_KEY)
    monkeypatch.setattr(settings, "dodo_product_pro", PRO_PRODUCT)
    monkeypatch.setattr(settings, "dodo_product_unlimited", UNLIMITED_PRODUCT)
    monkeypatch.setattr(settings, "dodo_payments_return_url", None)
    monkeypatch.setattr(settings, "app_url", "https://focustube.example/")


def _subscription_event(event_type: str, user_id: str | None = "user-1", **data) -> dict:
    payload = {
        "subscription_id": "sub_1",
        "product_id": PRO_PRODUCT,
        "status": "active",
        "customer": {"customer_id": "cus_1", "email": "user-1@example.com"},
        "metadata": {"user_id": user_id} if user_id else {},
    }
    payload.update(data)
    return {"type": event_type, "data": payload}


def test_product_tier_mapping() -> None:
    assert billing.get_product_id_for_tier("pro") == PRO_PRODUCT
    assert billing.get_product_id_for_tier("free") is None
    assert billing.get_tier_for_product_id(UNLIMITED_PRODUCT) == "unlimited"
    assert billing.get_tier_for_product_id("pdt_unknown") == "free"
    assert billing.get_tier_for_product_id(None) == "free"


def test_dodo_client_requires_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "dodo_payments_api_key", None)
    assert billing.is_dodo_configured() is False
    with pytest.raises(NotConfiguredError):
        billing.get_dodo_client()


@pytest.mark.asyncio
async def test_checkout_session(session: AsyncSession, profile: Profile) -> None:
    client = FakeDodo()

    checkout = await billing.create_checkout_session(client, profile, "pro")

    assert checkout.checkout_url == "https://checkout.example/session"
    call = client.checkout_sessions.calls[0]
    assert call["product_cart"] == [{"product_id": PRO_PRODUCT, "quantity": 1}]
    assert call["metadata"] == {"user_id": profile.id, "tier": "pro"}
    assert call["return_url"] == "https://focustube.example/settings?billing=success"


@pytest.mark.asyncio
async def test_checkout_rules(session: AsyncSession, profile: Profile) -> None:
    client = FakeDodo()
    with pytest.raises(ValidationFailed, match="Invalid tier"):
        await billing.create_checkout_session(client, profile, "free")

    profile.subscription_tier = "pro"
    with pytest.raises(ValidationFailed, match="already on this plan"):
        await billing.create_checkout_session(client, profile, "pro")

    profile.subscription_tier = "unlimited"
    with pytest.raises(ValidationFailed, match="Cannot downgrade"):
        await billing.create_checkout_session(client, profile, "pro")
    assert client.checkout_sessions.calls == []


@pytest.mark.asyncio
async def test_customer_portal(session: AsyncSession, profile: Profile) -> None:
    with pytest.raises(ValidationFailed, match="No subscription found"):
        await billing.create_customer_portal(FakeDodo(), profile)

    profile.dodo_customer_id = "cus_1"
    assert await billing.create_customer_portal(FakeDodo(), profile) == "https://portal.example/cus_1"


@pytest.mark.asyncio
async def test_subscription_lifecycle(session: AsyncSession, profile: Profile) -> None:
    await billing.process_webhook(session, "wh_1", _subscription_event("subscription.active"))
    assert profile.subscription_tier == "pro"
    assert profile.subscription_status == "active"
    assert profile.dodo_customer_id == "cus_1"
    assert profile.dodo_subscription_id == "sub_1"

    await billing.process_webhook(
        session,
        "wh_2",
        _subscription_event("subscription.plan_changed", product_id=UNLIMITED_PRODUCT),
    )
    assert profile.subscription_tier == "unlimited"

    await billing.process_webhook(session, "wh_3", _subscription_event("subscription.on_hold", status="on_hold"))
    assert profile.subscription_status == "past_due"
    assert profile.subscription_tier == "unlimited"

    await billing.process_webhook(session, "wh_4", _subscription_event("subscription.cancelled", status="cancelled"))
    assert profile.subscription_tier == "free"
    assert profile.subscription_status == "cancelled"
    assert profile.dodo_subscription_id is None
    assert profile.dodo_customer_id == "cus_1"


@pytest.mark.asyncio
async def test_webhook_resolves_user_by_email(session: AsyncSession) -> None:
    profile = await create_profile(session, "user-9", email="buyer@example.com")
    event = _subscription_event(
        "subscription.active",
        user_id=None,
        customer={"customer_id": "cus_9", "email": "Buyer@Example.com"},
    )

    assert await billing.process_webhook(session, "wh_email", event) is True
    assert profile.subscription_tier == "pro"


@pytest.mark.asyncio
async def test_duplicate_webhook_is_ignored(session: AsyncSession, profile: Profile) -> None:
    event = _subscription_event("subscription.active")
    assert await billing.process_webhook(session, "wh_dup", event) is True

    profile.subscription_tier = "free"
    assert await billing.process_webhook(session, "wh_dup", event) is False
    assert profile.subscription_tier == "free"

    ledger = await session.scalar(select(WebhookEvent).where(WebhookEvent.webhook_id == "wh_dup"))
    assert ledger.processed is True
    assert await session.scalar(select(func.count()).select_from(WebhookEvent)) == 1


@pytest.mark.asyncio
async def test_unknown_user_and_event_are_recorded(session: AsyncSession, profile: Profile) -> None:
    orphan = _subscription_event("subscription.active", user_id="nobody", customer={"email": "x@example.com"})
    assert await billing.process_webhook(session, "wh_orphan", orphan) is True
    assert await billing.process_webhook(session, "wh_payment", {"type": "payment.succeeded", "data": {}}) is True
    assert profile.subscription_tier == "free"


def test_verify_webhook_accepts_valid_signature() -> None:
    body = json.dumps(_subscription_event("subscription.active"))
    event = billing.verify_webhook(billing.get_webhook_client(), body.encode(), signed_headers(body))
    assert event["type"] == "subscription.active"
    assert event["data"]["metadata"] == {"user_id": "user-1"}
    assert event["data"]["customer"]["customer_id"] == "cus_1"


def test_verify_webhook_rejects_bad_signature_and_missing_headers() -> None:
    client = billing.get_webhook_client()
    body = json.dumps(_subscription_event("subscription.active"))
    headers = signed_headers(body)

    with pytest.raises(billing.InvalidWebhookSignature):
        billing.verify_webhook(client, b'{"type": "tampered"}', headers)
    with pytest.raises(billing.MissingWebhookHeaders):
        billing.verify_webhook(client, body.encode(), {"webhook-id": "msg_1"})


def test_verify_webhook_rejects_signed_non_event_payload() -> None:
    body = json.dumps(["not-an-event"])
    with pytest.raises(billing.InvalidWebhookPayload):
        billing.verify_webhook(billing.get_webhook_client(), body.encode(), signed_headers(body))


def test_webhook_client_requires_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "dodo_payments_webhook_key", None)
    with pytest.raises(NotConfiguredError, match="Webhook handler not configured"):
        billing.get_webhook_client()
