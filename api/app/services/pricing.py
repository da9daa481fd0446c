"""Promotion selection and discounted price calculation.

At most one promotion applies to a court slot. When several match, the
narrowest one wins:

1. fewest explicitly listed courts (an all-courts promotion is the broadest),
2. shortest applicability window,
3. most recently created,
4. highest id.
"""

from collections.abc import Iterable
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.promotion import DiscountType, Promotion


def applies_to(promotion, court_id: int, at: datetime) -> bool:
    """Whether the promotion covers this court at this (club-local) datetime."""
    if not promotion.is_active:
        return False
    if not (promotion.start_at <= at <= promotion.end_at):
        return False
    return not promotion.court_ids or court_id in promotion.court_ids


def _scope_size(promotion) -> float:
    return len(promotion.court_ids) if promotion.court_ids else float("inf")


def _specificity_key(promotion) -> tuple:
    window = (promotion.end_at - promotion.start_at).total_seconds()
    created = promotion.created_at.timestamp() if promotion.created_at else 0.0
    return (_scope_size(promotion), window, -created, -promotion.id)


def select_promotion(promotions: Iterable, court_id: int, at: datetime):
    """Pick the single applicable promotion for court_id at `at`, or None."""
    candidates = [p for p in promotions if applies_to(p, court_id, at)]
    if not candidates:
        return None
    return min(candidates, key=_specificity_key)


async def resolve_promotion(db: AsyncSession, court_id: int, booking_date: date, start_time: time) -> Promotion | None:
    """Load the promotions live at the slot start and select one."""
    at = datetime.combine(booking_date, start_time)
    result = await db.execute(
        select(Promotion).where(
            Promotion.is_active.is_(True),
            Promotion.start_at <= at,
            Promotion.end_at >= at,
        )
    )
    return select_promotion(result.scalars().all(), court_id, at)


def discounted_price(base_price: int, promotion) -> int:
    """Apply a promotion to a price in cents. Never below zero.

    Percentage discounts round half up to the nearest cent.
    """
    if promotion is None:
        return base_price

    if promotion.discount_type == DiscountType.PERCENTAGE:
        factor = Decimal(100 - promotion.discount_value) / Decimal(100)
        price = int((Decimal(base_price) * factor).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    else:
        price = base_price - promotion.discount_value

    return max(0, price)


def quote(base_price: int, promotion) -> dict:
    """Price breakdown stored on a booking: total, original and discount."""
    total = discounted_price(base_price, promotion)
    if promotion is None:
        return {"total_amount": total, "original_amount": None, "promotion_id": None, "promotion_discount": None}
    return {
        "total_amount": total,
        "original_amount": base_price,
        "promotion_id": promotion.id,
        "promotion_discount": base_price - total,
    }
