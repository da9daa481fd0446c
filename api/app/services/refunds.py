"""Admin review of refund requests raised by cancelled, paid bookings."""

import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.booking import Booking
from app.models.payment import PaymentLog, PaymentLogStatus, Refund, RefundStatus
from app.models.profile import Profile
from app.services import notifications
from app.services.errors import NotFoundError, ValidationError
from app.services.notifications import NotificationHook
from app.services.stripe_service import create_refund

logger = logging.getLogger(__name__)


async def get_refund(db: AsyncSession, refund_id: int) -> Refund:
    result = await db.execute(
        select(Refund)
        .options(
            selectinload(Refund.booking).selectinload(Booking.court),
            selectinload(Refund.booking).selectinload(Booking.profile),
        )
        .where(Refund.id == refund_id)
    )
    refund = result.scalar_one_or_none()
    if refund is None:
        raise NotFoundError("Refund not found")
    return refund


def _check_pending(refund: Refund) -> None:
    if refund.status != RefundStatus.PENDING:
        raise ValidationError(f"Refund already {refund.status.value}", rule="refund_reviewed")


def _hook(refund: Refund, event_type: str, extra: dict) -> NotificationHook:
    booking = refund.booking
    params = notifications.booking_params(booking, booking.court.name, booking.profile)
    params["amount"] = f"{refund.amount / 100:.2f}".replace(".", ",")
    params.update(extra)
    return NotificationHook(booking.profile, event_type, params, booking.id)


async def approve_refund(db: AsyncSession, refund: Refund, reviewer: Profile) -> NotificationHook:
    """Refund the paid amount through Stripe, charge by charge, then notify the player."""
    _check_pending(refund)

    result = await db.execute(
        select(PaymentLog)
        .where(PaymentLog.booking_id == refund.booking_id, PaymentLog.status == PaymentLogStatus.SUCCEEDED)
        .order_by(PaymentLog.id)
    )
    left = refund.amount
    for log in result.scalars().all():
        if left <= 0 or not log.stripe_payment_intent_id:
            break
        amount = min(left, log.amount)
        stripe_refund = create_refund(log.stripe_payment_intent_id, amount)
        refund.stripe_refund_id = stripe_refund.id
        left -= amount

    refund.status = RefundStatus.APPROVED
    refund.reviewed_by = reviewer.id
    refund.reviewed_at = datetime.now(UTC)
    await db.commit()
    logger.info("Refund %s approved by profile %s (%s cents)", refund.id, reviewer.id, refund.amount)
    return _hook(refund, notifications.REFUND_APPROVED, {})


async def reject_refund(db: AsyncSession, refund: Refund, reviewer: Profile, reason: str) -> NotificationHook:
    _check_pending(refund)
    if not reason.strip():
        raise ValidationError("A rejection reason is required", rule="rejection_reason")

    refund.status = RefundStatus.REJECTED
    refund.rejection_reason = reason.strip()
    refund.reviewed_by = reviewer.id
    refund.reviewed_at = datetime.now(UTC)
    await db.commit()
    logger.info("Refund %s rejected by profile %s", refund.id, reviewer.id)
    return _hook(refund, notifications.REFUND_REJECTED, {"REASON": refund.rejection_reason})
