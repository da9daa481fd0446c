"""Opening hours, slot generation and slot occupancy.

Pure calculation module: no database, no async, no FastAPI dependencies.
Callers load the opening hours, holidays and bookings and pass them in.

Weekday numbers follow the stored convention: 0 = Sunday .. 6 = Saturday.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, time, timedelta

from app.models.booking import BookingStatus


@dataclass(frozen=True)
class OpeningWindow:
    open_time: time
    close_time: time

    @property
    def open_minutes(self) -> int:
        return max(0, to_minutes(self.close_time) - to_minutes(self.open_time))


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


# Last representable minute of the day; slots never run into the next day
LAST_MINUTE = 24 * 60 - 1


def from_minutes(minutes: int) -> time:
    """Minutes since midnight back to a wall-clock time on the same day."""
    if not 0 <= minutes <= LAST_MINUTE:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def day_of_week(d: date) -> int:
    """Sunday-based weekday number (date.weekday() is Monday-based)."""
    return (d.weekday() + 1) % 7


def display_order(day: int) -> int:
    """Sort key for a Monday-first week: Sunday (0) sorts as the 7th day."""
    return 7 if day == 0 else day


def holiday_for(d: date, holidays: Iterable) -> object | None:
    """Return the first holiday whose [date, end_date or date] range covers d."""
    for h in holidays:
        if h.date <= d <= (h.end_date or h.date):
            return h
    return None


def window_for(d: date, opening_hours: Iterable, holidays: Iterable) -> OpeningWindow | None:
    """Return the open window for d, or None when the club is closed.

    Holidays win over the weekly schedule. A weekday without a schedule row
    counts as closed.
    """
    if holiday_for(d, holidays) is not None:
        return None

    dow = day_of_week(d)
    hours = next((h for h in opening_hours if h.day_of_week == dow), None)
    if hours is None or hours.is_closed:
        return None

    return OpeningWindow(hours.open_time, hours.close_time)


def is_closed(d: date, opening_hours: Iterable, holidays: Iterable) -> bool:
    return window_for(d, list(opening_hours), list(holidays)) is None


def generate_slots(window: OpeningWindow | None, duration_minutes: int) -> list[time]:
    """Discretise an opening window into slot start times.

    Starts at open_time and steps by duration_minutes while the start is
    strictly before close_time, then drops the trailing slot when less than a
    full game fits before closing.
    """
    if window is None:
        return []
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    open_m = to_minutes(window.open_time)
    close_m = to_minutes(window.close_time)

    slots: list[time] = []
    current = open_m
    while current < close_m:
        if close_m - current >= duration_minutes:
            slots.append(from_minutes(current))
        current += duration_minutes
    return slots


def slot_end(start: time, duration_minutes: int) -> time:
    """Nominal end of a slot, clamped to 23:59 for games that would pass midnight."""
    return from_minutes(min(to_minutes(start) + duration_minutes, LAST_MINUTE))


def occupying_booking(bookings: Iterable, court_id: int, booking_date: date, slot_start: time):
    """Return the confirmed booking covering slot_start on the court/date, else None.

    A booking covers the slot when start_time <= slot_start < end_time.
    """
    for b in bookings:
        if b.status != BookingStatus.CONFIRMED:
            continue
        if b.court_id != court_id or b.booking_date != booking_date:
            continue
        if b.start_time <= slot_start < b.end_time:
            return b
    return None


def overlaps(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open interval overlap: [start_a, end_a) and [start_b, end_b)."""
    return start_a < end_b and start_b < end_a


def build_day_grid(
    court_id: int,
    query_date: date,
    window: OpeningWindow | None,
    duration_minutes: int,
    bookings: Sequence,
) -> list[dict]:
    """Slot grid for one court on one date.

    Returns dicts with keys: start_time, end_time, is_available, booking_id.
    """
    grid: list[dict] = []
    for start in generate_slots(window, duration_minutes):
        booking = occupying_booking(bookings, court_id, query_date, start)
        grid.append(
            {
                "start_time": start,
                "end_time": slot_end(start, duration_minutes),
                "is_available": booking is None,
                "booking_id": booking.id if booking is not None else None,
            }
        )
    return grid


def iter_dates(start: date, end: date):
    """Yield every calendar date from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
