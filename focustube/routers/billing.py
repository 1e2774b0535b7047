"""Billing endpoints: checkout, customer portal and the Dodo Payments webhook."""

from __future__ import annotations

import logging

from dodopayments import AsyncDodoPayments
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from focustube.core.auth import get_current_user
from focustube.db.models import Profile
from focustube.db.session import get_session
from focustube.schema.profile import CheckoutRequest, CheckoutResponse, PortalResponse, WebhookAck
from focustube.services import billing

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    payload: CheckoutRequest,
    client: AsyncDodoPayments = Depends(billing.get_dodo_client),
    user: Profile = Depends(get_current_user),
) -> CheckoutResponse:
    checkout = await billing.create_checkout_session(client, user, payload.tier)
    return CheckoutResponse(checkout_url=checkout.checkout_url, session_id=checkout.session_id)


@router.get("/customer-portal", response_model=PortalResponse)
async def customer_portal(
    client: AsyncDodoPayments = Depends(billing.get_dodo_client),
    user: Profile = Depends(get_current_user),
) -> PortalResponse:
    link = await billing.create_customer_portal(client, user)
    return PortalResponse(portal_url=link)


@router.post("/webhook", response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    client: AsyncDodoPayments = Depends(billing.get_webhook_client),
    session: AsyncSession = Depends(get_session),
) -> WebhookAck:
    """Receive signed subscription events and apply them exactly once."""

    payload = await request.body()
    event = billing.verify_webhook(client, payload, request.headers)
    webhook_id = request.headers["webhook-id"]
    logger.info("Received billing webhook", extra={"webhook_id": webhook_id, "event_type": event["type"]})

    try:
        await billing.process_webhook(session, webhook_id, event)
        await session.commit()
    except Exception as exc:
        await session.rollback()
        logger.exception("Webhook handler failed", extra={"webhook_id": webhook_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed",
        ) from exc

    return WebhookAck(received=True)
