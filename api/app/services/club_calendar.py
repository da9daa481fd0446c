"""Loaders for the club reference data the slot engine works from."""

from datetime import date

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.booking import Booking, BookingStatus
from app.models.club import Court, Holiday, OpeningHours


async def load_opening_hours(db: AsyncSession) -> list[OpeningHours]:
    result = await db.execute(select(OpeningHours).order_by(OpeningHours.day_of_week))
    return list(result.scalars().all())


async def load_holidays(db: AsyncSession, start: date | None = None, end: date | None = None) -> list[Holiday]:
    """Holidays overlapping [start, end]; all of them when no range is given."""
    query = select(Holiday).order_by(Holiday.date)
    if end is not None:
        query = query.where(Holiday.date <= end)
    if start is not None:
        query = query.where(or_(Holiday.end_date >= start, Holiday.date >= start))
    result = await db.execute(query)
    return list(result.scalars().all())


async def load_active_courts(db: AsyncSession) -> list[Court]:
    result = await db.execute(select(Court).where(Court.is_active.is_(True)).order_by(Court.name))
    return list(result.scalars().all())


async def load_confirmed_bookings(db: AsyncSession, start: date, end: date) -> list[Booking]:
    """Confirmed bookings in [start, end], with court and organizer loaded."""
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.court), selectinload(Booking.profile))
        .where(
            Booking.status == BookingStatus.CONFIRMED,
            Booking.booking_date >= start,
            Booking.booking_date <= end,
        )
        .order_by(Booking.booking_date, Booking.start_time)
    )
    return list(result.scalars().all())
