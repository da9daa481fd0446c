"""Booking payments: starting a PaymentIntent and applying Stripe outcomes.

A booking can be paid in one go or share by share. Each PaymentIntent gets a
PaymentLog row; the webhook moves the log and the booking forward.
"""

import logging
import math

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking, BookingStatus, PaymentStatus
from app.models.payment import PaymentLog, PaymentLogStatus, PaymentType
from app.models.profile import Profile
from app.services.errors import PermissionDeniedError, ValidationError
from app.services.stripe_service import create_payment_intent, ensure_stripe_customer

logger = logging.getLogger(__name__)


def payment_amount(booking: Booking, payment_type: PaymentType) -> int:
    """Full = remaining balance; partial = one player's share of it."""
    remaining = booking.remaining_amount
    if payment_type == PaymentType.FULL:
        return remaining
    return min(remaining, math.ceil(remaining / booking.court.capacity))


def settled_status(booking: Booking) -> PaymentStatus:
    if booking.amount_paid >= booking.total_amount:
        return PaymentStatus.PAYMENT_COMPLETED
    if booking.amount_paid > 0:
        return PaymentStatus.PARTIAL_PAYMENT_COMPLETED
    return PaymentStatus.PENDING_PAYMENT


async def start_payment(
    db: AsyncSession, booking: Booking, payer: Profile, payment_type: PaymentType
) -> tuple[PaymentLog, str]:
    """Create a PaymentIntent for the booking. Returns the log and the client secret."""
    if booking.user_id != payer.id:
        raise PermissionDeniedError("Only the organizer can pay for this booking")
    if booking.status != BookingStatus.CONFIRMED:
        raise ValidationError("This booking has been cancelled", rule="not_confirmed")
    if booking.created_by_admin:
        raise ValidationError("This booking is settled at the club", rule="admin_booking")

    amount = payment_amount(booking, payment_type)
    if amount <= 0:
        raise ValidationError("Nothing left to pay on this booking", rule="already_paid")

    customer_id = await ensure_stripe_customer(payer, db)
    pi = await create_payment_intent(amount, customer_id, booking.id, payer.id, payment_type.value)

    log = PaymentLog(
        booking_id=booking.id,
        user_id=payer.id,
        amount=amount,
        payment_type=payment_type,
        stripe_payment_intent_id=pi.id,
        status=PaymentLogStatus.PENDING,
    )
    db.add(log)
    booking.stripe_payment_intent_id = pi.id
    await db.flush()
    logger.info("PaymentIntent %s created for booking %s (%s cents, %s)", pi.id, booking.id, amount, payment_type)
    return log, pi.client_secret


async def _log_for_intent(db: AsyncSession, payment_intent_id: str) -> PaymentLog | None:
    result = await db.execute(select(PaymentLog).where(PaymentLog.stripe_payment_intent_id == payment_intent_id))
    return result.scalar_one_or_none()


async def apply_payment_succeeded(db: AsyncSession, payment_intent: dict) -> Booking | None:
    """Credit the paid amount to the booking. Replays of the same event are ignored."""
    log = await _log_for_intent(db, payment_intent["id"])
    if log is None:
        logger.warning("Payment succeeded for unknown PaymentIntent %s", payment_intent["id"])
        return None
    if log.status == PaymentLogStatus.SUCCEEDED:
        return None

    booking = await db.get(Booking, log.booking_id)
    log.status = PaymentLogStatus.SUCCEEDED
    log.stripe_charge_id = payment_intent.get("latest_charge")
    booking.amount_paid += log.amount
    if booking.status == BookingStatus.CONFIRMED:
        booking.payment_status = settled_status(booking)
    logger.info("Booking %s paid %s cents (now %s)", booking.id, log.amount, booking.payment_status)
    return booking


async def apply_payment_failed(db: AsyncSession, payment_intent: dict) -> Booking | None:
    """Mark the attempt failed; the expiry sweep collects the booking if it stays unpaid."""
    log = await _log_for_intent(db, payment_intent["id"])
    if log is None:
        logger.warning("Payment failed for unknown PaymentIntent %s", payment_intent["id"])
        return None

    error = payment_intent.get("last_payment_error") or {}
    log.status = PaymentLogStatus.FAILED
    log.error_message = error.get("message")

    booking = await db.get(Booking, log.booking_id)
    if booking.status == BookingStatus.CONFIRMED and booking.amount_paid == 0:
        booking.payment_status = PaymentStatus.PAYMENT_FAILED
    return booking


async def apply_charge_refunded(db: AsyncSession, charge: dict) -> Booking | None:
    """Take a refunded charge back out of the booking's paid amount."""
    payment_intent_id = charge.get("payment_intent")
    log = await _log_for_intent(db, payment_intent_id) if payment_intent_id else None
    if log is None or log.status == PaymentLogStatus.REFUNDED:
        return None

    refunded = min(charge.get("amount_refunded", log.amount), log.amount)
    log.status = PaymentLogStatus.REFUNDED

    booking = await db.get(Booking, log.booking_id)
    booking.amount_paid = max(0, booking.amount_paid - refunded)
    if booking.status == BookingStatus.CONFIRMED:
        booking.payment_status = settled_status(booking)
    logger.info("Booking %s refunded %s cents", booking.id, refunded)
    return booking
