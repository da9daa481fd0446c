"""Stripe webhook handler.

Processes payment_intent.succeeded, payment_intent.payment_failed and
charge.refunded events.
"""

import logging

import stripe
from fastapi import APIRouter, HTTPException, Request, status

from app.core.database import async_session_factory
from app.services.payments import apply_charge_refunded, apply_payment_failed, apply_payment_succeeded
from app.services.stripe_service import construct_webhook_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

HANDLERS = {
    "payment_intent.succeeded": apply_payment_succeeded,
    "payment_intent.payment_failed": apply_payment_failed,
    "charge.refunded": apply_charge_refunded,
}


@router.post("/stripe")
async def stripe_webhook(request: Request):
    """Handle Stripe webhook events.

    Uses a dedicated DB session (not the request-scoped one) because webhook
    processing must commit independently of any ongoing request.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        event = construct_webhook_event(payload, sig_header)
    except (ValueError, stripe.SignatureVerificationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature") from None

    handler = HANDLERS.get(event["type"])
    if handler is None:
        logger.debug("Ignoring Stripe event %s", event["type"])
        return {"status": "ignored"}

    async with async_session_factory() as db:
        await handler(db, event["data"]["object"])
        await db.commit()

    return {"status": "ok"}
