"""Stripe integration service for payment processing.

Wraps the Stripe Python SDK. All amounts are in cents (EUR).
"""

import contextlib
import logging

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.profile import Profile
from app.services.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)


def _configure() -> None:
    """Set the Stripe API key from settings."""
    if not settings.stripe_secret_key:
        raise ConfigurationError("Stripe secret key not configured", rule="payment_provider")
    stripe.api_key = settings.stripe_secret_key


async def ensure_stripe_customer(profile: Profile, db: AsyncSession) -> str:
    """Get or create a Stripe customer for the profile.

    Stores the customer ID on the profile for future use.
    """
    _configure()

    if profile.stripe_customer_id:
        return profile.stripe_customer_id

    try:
        customer = stripe.Customer.create(
            email=profile.email,
            name=profile.display_name,
            metadata={"profile_id": str(profile.id)},
        )
    except stripe.StripeError as exc:
        raise UpstreamError(f"Stripe customer creation failed: {exc}") from exc

    profile.stripe_customer_id = customer.id
    await db.flush()
    return customer.id


async def create_payment_intent(
    amount_cents: int,
    customer_id: str,
    booking_id: int,
    user_id: int,
    payment_type: str,
) -> stripe.PaymentIntent:
    """Create a Stripe PaymentIntent for a booking payment.

    Returns the PaymentIntent object (caller reads .id and .client_secret).
    """
    _configure()

    try:
        return stripe.PaymentIntent.create(
            amount=amount_cents,
            currency=settings.currency,
            customer=customer_id,
            metadata={
                "booking_id": str(booking_id),
                "user_id": str(user_id),
                "payment_type": payment_type,
            },
            automatic_payment_methods={"enabled": True},
        )
    except stripe.StripeError as exc:
        raise UpstreamError(f"Stripe payment intent creation failed: {exc}") from exc


def cancel_payment_intent(payment_intent_id: str, reason: str = "abandoned") -> None:
    """Cancel a pending PaymentIntent (e.g. on booking cancellation). Best effort."""
    if not settings.stripe_secret_key:
        return
    stripe.api_key = settings.stripe_secret_key

    with contextlib.suppress(stripe.StripeError):
        stripe.PaymentIntent.cancel(payment_intent_id, cancellation_reason=reason)


def create_refund(payment_intent_id: str, amount_cents: int) -> stripe.Refund:
    """Refund part or all of a captured PaymentIntent."""
    _configure()

    try:
        return stripe.Refund.create(payment_intent=payment_intent_id, amount=amount_cents)
    except stripe.StripeError as exc:
        raise UpstreamError(f"Stripe refund failed: {exc}") from exc


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event."""
    return stripe.Webhook.construct_event(
        payload,
        sig_header,
        settings.stripe_webhook_secret,
    )
