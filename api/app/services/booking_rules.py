"""Booking rules enforcement.

All booking validation logic lives here, separate from the writer and the
route handlers. Each check raises the matching domain error; validate_booking
runs them in a fixed order so the first failure wins.
"""

from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking, BookingStatus
from app.services.errors import CapacityExceededError, ClosedDayError, SlotConflictError, ValidationError
from app.services.operating_hours import window_for


def distinct_participants(organizer_id: int | None, participant_ids: Iterable[int]) -> list[int]:
    """Deduplicate participant ids (keeping order) and drop the organizer."""
    seen: list[int] = []
    for pid in participant_ids:
        if pid and pid != organizer_id and pid not in seen:
            seen.append(pid)
    return seen


def check_not_closed(booking_date: date, opening_hours: Sequence, holidays: Sequence) -> None:
    if window_for(booking_date, opening_hours, holidays) is None:
        raise ClosedDayError(f"The club is closed on {booking_date.strftime('%d/%m/%Y')}.")


def check_organizer(organizer_id: int | None) -> None:
    if not organizer_id:
        raise ValidationError("An organizer is required.", rule="organizer_required")


def check_time_range(
    booking_date: date,
    start_time: time,
    end_time: time,
    opening_hours: Sequence,
    holidays: Sequence,
) -> None:
    """The booking must be a non-empty range inside the day's opening window."""
    if start_time >= end_time:
        raise ValidationError("Start time must be before end time.", rule="time_range")

    window = window_for(booking_date, opening_hours, holidays)
    if window is not None and (start_time < window.open_time or end_time > window.close_time):
        raise ValidationError(
            f"Bookings must fall between {window.open_time.strftime('%H:%M')} "
            f"and {window.close_time.strftime('%H:%M')}.",
            rule="opening_hours",
        )


def check_capacity(capacity: int, participant_ids: Sequence[int], players_count: int | None = None) -> None:
    """Organizer plus distinct participants must fit on the court."""
    people = 1 + len(participant_ids)
    if people > capacity:
        raise CapacityExceededError(
            f"Total number of people (organizer + participants) cannot exceed {capacity}; got {people}."
        )
    if players_count is not None and players_count > capacity:
        raise CapacityExceededError(f"This court takes at most {capacity} players.")
    # An explicit players count must match the people actually selected (organizer included)
    if players_count is not None and players_count != people:
        raise ValidationError(
            f"Players count {players_count} does not match the {people} people on the booking.",
            rule="players_count",
        )


def check_not_in_past(booking_date: date, start_time: time, now: datetime) -> None:
    """Cannot book a slot that has already started (now is club-local and aware)."""
    slot_start = datetime.combine(booking_date, start_time, tzinfo=now.tzinfo)
    if slot_start <= now:
        raise ValidationError("Cannot book a slot in the past.", rule="past_booking")


async def check_max_upcoming(db: AsyncSession, user_id: int, limit: int, today: date) -> None:
    result = await db.execute(
        select(func.count(Booking.id)).where(
            Booking.user_id == user_id,
            Booking.status == BookingStatus.CONFIRMED,
            Booking.booking_date >= today,
        )
    )
    count = result.scalar_one()
    if count >= limit:
        raise ValidationError(
            f"You already have {count} upcoming bookings. Maximum allowed: {limit}.", rule="max_bookings"
        )


async def check_court_conflict(
    db: AsyncSession,
    court_id: int,
    booking_date: date,
    start_time: time,
    end_time: time,
) -> None:
    """No two confirmed bookings can overlap on the same court."""
    result = await db.execute(
        select(Booking)
        .where(
            Booking.court_id == court_id,
            Booking.booking_date == booking_date,
            Booking.status == BookingStatus.CONFIRMED,
            Booking.start_time < end_time,
            Booking.end_time > start_time,
        )
        .limit(1)
    )
    conflict = result.scalar_one_or_none()

    if conflict:
        raise SlotConflictError(
            f"Court already booked from {conflict.start_time.strftime('%H:%M')} "
            f"to {conflict.end_time.strftime('%H:%M')}."
        )


async def validate_booking(
    db: AsyncSession,
    *,
    court,
    booking_date: date,
    start_time: time,
    end_time: time,
    organizer_id: int | None,
    participant_ids: Sequence[int],
    opening_hours: Sequence,
    holidays: Sequence,
    admin_override: bool,
    now: datetime,
    max_upcoming: int,
    players_count: int | None = None,
) -> None:
    """Run all booking rules in order. Raises on the first violation."""
    # 1. Club open that day
    check_not_closed(booking_date, opening_hours, holidays)

    # 2. Required fields and a sane time range
    check_organizer(organizer_id)
    check_time_range(booking_date, start_time, end_time, opening_hours, holidays)

    # 3. Capacity
    check_capacity(court.capacity, participant_ids, players_count)

    # Player-only limits
    if not admin_override:
        check_not_in_past(booking_date, start_time, now)
        await check_max_upcoming(db, organizer_id, max_upcoming, now.date())

    # 4. Court conflict (double booking)
    await check_court_conflict(db, court.id, booking_date, start_time, end_time)


def validate_cancellation(booking: Booking, cancellation_hours: int, now: datetime) -> None:
    """Players must cancel at least cancellation_hours before the booking starts."""
    slot_start = datetime.combine(booking.booking_date, booking.start_time, tzinfo=now.tzinfo)
    deadline = slot_start - timedelta(hours=cancellation_hours)

    if now > deadline:
        raise ValidationError(
            f"Cancellation deadline was {cancellation_hours} hours before the booking "
            f"({deadline.strftime('%d/%m/%Y %H:%M')}). Too late to cancel.",
            rule="cancellation_deadline",
        )


def calc_end_time(start_time: time, duration_minutes: int) -> time:
    """Calculate end time from start time and duration."""
    start_dt = datetime.combine(date.today(), start_time)
    end_dt = start_dt + timedelta(minutes=duration_minutes)
    return end_dt.time()
