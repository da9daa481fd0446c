"""Occupancy and revenue statistics over a date range.

Capacity uses a fixed 30-minute nominal slot regardless of the configured game
duration. Closed days still produce a bucket, with zero slots.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import BookingStatus
from app.models.club import Court
from app.services.club_calendar import load_confirmed_bookings, load_holidays, load_opening_hours
from app.services.errors import ValidationError
from app.services.operating_hours import iter_dates, window_for

NOMINAL_SLOT_MINUTES = 30


class GroupBy(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


@dataclass
class StatsBucket:
    period: str
    bookings_count: int = 0
    revenue: float = 0.0
    total_slots: int = 0

    @property
    def occupancy_rate(self) -> float:
        return self.bookings_count / max(self.total_slots, 1) * 100


def period_key(d: date, group_by: GroupBy) -> str:
    if group_by == GroupBy.DAY:
        return d.isoformat()
    if group_by == GroupBy.WEEK:
        return (d - timedelta(days=d.weekday())).isoformat()
    if group_by == GroupBy.MONTH:
        return f"{d.year:04d}-{d.month:02d}"
    return f"{d.year:04d}"


def aggregate(
    start: date,
    end: date,
    group_by: GroupBy,
    opening_hours: Sequence,
    holidays: Sequence,
    active_court_count: int,
    bookings: Iterable,
) -> list[StatsBucket]:
    """Merge theoretical capacity and confirmed bookings into sorted period buckets."""
    if start > end:
        raise ValidationError("Start date must be on or before end date.", rule="date_range")

    buckets: dict[str, StatsBucket] = {}

    def bucket(key: str) -> StatsBucket:
        if key not in buckets:
            buckets[key] = StatsBucket(period=key)
        return buckets[key]

    for d in iter_dates(start, end):
        window = window_for(d, opening_hours, holidays)
        slots = 0
        if window is not None:
            slots = (window.open_minutes // NOMINAL_SLOT_MINUTES) * active_court_count
        bucket(period_key(d, group_by)).total_slots += slots

    for b in bookings:
        if b.status != BookingStatus.CONFIRMED or not (start <= b.booking_date <= end):
            continue
        entry = bucket(period_key(b.booking_date, group_by))
        entry.bookings_count += 1
        entry.revenue += b.total_amount / 100

    for entry in buckets.values():
        entry.revenue = round(entry.revenue, 2)

    return [buckets[key] for key in sorted(buckets)]


async def compute_stats(db: AsyncSession, start: date, end: date, group_by: GroupBy) -> list[StatsBucket]:
    result = await db.execute(select(func.count(Court.id)).where(Court.is_active.is_(True)))
    court_count = result.scalar_one()

    return aggregate(
        start,
        end,
        group_by,
        opening_hours=await load_opening_hours(db),
        holidays=await load_holidays(db, start, end),
        active_court_count=court_count,
        bookings=await load_confirmed_bookings(db, start, end),
    )
