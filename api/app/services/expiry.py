"""Expiry sweep for player bookings that were never paid.

Run periodically by the worker and on demand from the admin API. The bulk
cancel is a single UPDATE committed as one unit; notifications follow and
cannot undo it. Running it again straight away finds nothing to do.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.booking import UNPAID_STATUSES, Booking, BookingStatus, PaymentStatus
from app.services import notifications
from app.services.notifications import DispatchReport, NotificationHook, dispatch
from app.services.settings_service import ClubConfig
from app.services.stripe_service import cancel_payment_intent

logger = logging.getLogger(__name__)

EXPIRY_REASON = "Paiement non reçu dans le délai imparti"


@dataclass
class SweepResult:
    count: int = 0
    booking_ids: list[int] = field(default_factory=list)
    notifications: DispatchReport = field(default_factory=DispatchReport)


async def sweep_unpaid_bookings(
    db: AsyncSession,
    config: ClubConfig,
    now: datetime | None = None,
) -> SweepResult:
    """Cancel confirmed, unpaid player bookings older than the payment timeout.

    Raises ConfigurationError before touching anything when no timeout is set.
    """
    timeout_hours = config.require_payment_timeout()
    now = now or datetime.now(UTC)
    cutoff = now - timedelta(hours=timeout_hours)

    qualifies = (
        Booking.status == BookingStatus.CONFIRMED,
        Booking.created_by_admin.is_(False),
        Booking.total_amount > 0,
        Booking.payment_status.in_(UNPAID_STATUSES),
        Booking.created_at < cutoff,
    )
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.court), selectinload(Booking.profile))
        .where(*qualifies)
        .order_by(Booking.id)
    )
    candidates = list(result.scalars().all())
    if not candidates:
        logger.info("Expiry sweep: no unpaid bookings older than %sh", timeout_hours)
        return SweepResult()

    # Conditions repeated in the UPDATE: a payment committed after the read wins.
    result = await db.execute(
        update(Booking)
        .where(Booking.id.in_([b.id for b in candidates]), *qualifies)
        .values(status=BookingStatus.CANCELLED, payment_status=PaymentStatus.CANCELLED, cancelled_at=now)
        .returning(Booking.id)
        .execution_options(synchronize_session="fetch")
    )
    cancelled = set(result.scalars().all())
    await db.commit()

    expired = [b for b in candidates if b.id in cancelled]
    ids = [b.id for b in expired]
    if not expired:
        logger.info("Expiry sweep: all %d candidates were paid in the meantime", len(candidates))
        return SweepResult()

    logger.info("Expiry sweep cancelled %d unpaid bookings: %s", len(ids), ids)

    for booking in expired:
        if booking.stripe_payment_intent_id:
            cancel_payment_intent(booking.stripe_payment_intent_id, "abandoned")

    hooks = []
    for booking in expired:
        params = notifications.booking_params(booking, booking.court.name, booking.profile)
        params["REASON"] = EXPIRY_REASON
        hooks.append(NotificationHook(booking.profile, notifications.BOOKING_CANCELLED, params, booking.id))

    report = await dispatch(db, hooks, config)
    await db.commit()
    if not report.ok:
        logger.warning("Expiry sweep: %d cancellation emails failed", len(report.failed))

    return SweepResult(count=len(ids), booking_ids=ids, notifications=report)
