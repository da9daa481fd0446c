"""Club reference data: courts, weekly opening hours, holidays and club settings.

The slot engine reads these tables but never writes them.
"""

import datetime
from datetime import date, time

from sqlalchemy import Boolean, CheckConstraint, Date, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class Court(TimestampMixin, Base):
    """A bookable padel court. Simple courts take 2 players, double courts 4."""

    __tablename__ = "courts"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    capacity: Mapped[int] = mapped_column(default=4, nullable=False)
    price: Mapped[int] = mapped_column(default=0, nullable=False)  # cents
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(500))

    __table_args__ = (
        CheckConstraint("capacity IN (2, 4)", name="ck_courts_capacity"),
        CheckConstraint("price >= 0", name="ck_courts_price"),
    )

    def __repr__(self) -> str:
        return f"<Court {self.name} cap={self.capacity}>"


class OpeningHours(Base):
    """Weekly schedule row. day_of_week uses 0 = Sunday .. 6 = Saturday."""

    __tablename__ = "opening_hours"

    id: Mapped[int] = mapped_column(primary_key=True)
    day_of_week: Mapped[int] = mapped_column(unique=True, nullable=False)
    open_time: Mapped[time] = mapped_column(Time, nullable=False)
    close_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_opening_hours_dow"),)

    def __repr__(self) -> str:
        return f"<OpeningHours dow={self.day_of_week} {self.open_time}-{self.close_time}>"


class Holiday(TimestampMixin, Base):
    """A closure covering date..end_date inclusive (a single day when end_date is empty)."""

    __tablename__ = "holidays"

    id: Mapped[int] = mapped_column(primary_key=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[datetime.date | None] = mapped_column(Date)
    reason: Mapped[str] = mapped_column(Text, default="", nullable=False)

    __table_args__ = (CheckConstraint("end_date IS NULL OR end_date >= date", name="ck_holidays_range"),)

    @property
    def last_day(self) -> date:
        return self.end_date or self.date

    def __repr__(self) -> str:
        return f"<Holiday {self.date}..{self.last_day}>"


class ClubSettingsRow(Base):
    """The single club-wide settings row (id = 1), edited from the admin area."""

    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    game_duration_minutes: Mapped[int] = mapped_column(default=90, nullable=False)
    payment_timeout_hours: Mapped[int | None] = mapped_column()
    cancellation_hours: Mapped[int] = mapped_column(default=24, nullable=False)
    max_bookings_per_user: Mapped[int] = mapped_column(default=3, nullable=False)
