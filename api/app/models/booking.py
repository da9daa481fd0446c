"""Booking and participant models.

A booking reserves a court for an organizer at a specific date/time.
Participants are the other players invited onto it; the booking owns them.
"""

import enum
from datetime import date, datetime, time

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Index, String, Time, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class BookingStatus(enum.StrEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(enum.StrEnum):
    CONFIRMED = "confirmed"  # Admin-created, settled at the desk
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_FAILED = "payment_failed"
    PARTIAL_PAYMENT_COMPLETED = "partial_payment_completed"
    PAYMENT_COMPLETED = "payment_completed"
    CANCELLED = "cancelled"


class ParticipantStatus(enum.StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


# Single presentation table for payment statuses: (label, colour)
PAYMENT_STATUS_DISPLAY: dict[PaymentStatus, tuple[str, str]] = {
    PaymentStatus.CONFIRMED: ("Confirmée", "green"),
    PaymentStatus.PENDING_PAYMENT: ("En attente de paiement", "orange"),
    PaymentStatus.PAYMENT_FAILED: ("Paiement échoué", "red"),
    PaymentStatus.PARTIAL_PAYMENT_COMPLETED: ("Paiement partiel", "yellow"),
    PaymentStatus.PAYMENT_COMPLETED: ("Payée", "green"),
    PaymentStatus.CANCELLED: ("Annulée", "grey"),
}

# Statuses that still owe money and may be expired by the sweep
UNPAID_STATUSES = (PaymentStatus.PENDING_PAYMENT, PaymentStatus.PAYMENT_FAILED)


def _enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda e: [x.value for x in e])


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    booking_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)

    # When
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    players_count: Mapped[int] = mapped_column(nullable=False)

    # Status
    status: Mapped[BookingStatus] = mapped_column(
        _enum(BookingStatus, "booking_status"), default=BookingStatus.CONFIRMED, nullable=False
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Payment (all amounts in cents)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum(PaymentStatus, "payment_status"), default=PaymentStatus.PENDING_PAYMENT, nullable=False
    )
    total_amount: Mapped[int] = mapped_column(default=0, nullable=False)
    amount_paid: Mapped[int] = mapped_column(default=0, nullable=False)
    original_amount: Mapped[int | None] = mapped_column()
    promotion_id: Mapped[int | None] = mapped_column(ForeignKey("promotions.id"))
    promotion_discount: Mapped[int | None] = mapped_column()
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(100))

    # Relationships
    court: Mapped["Court"] = relationship()
    profile: Mapped["Profile"] = relationship()
    participants: Mapped[list["Participant"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", order_by="Participant.id"
    )

    __table_args__ = (
        # Storage-level guard against two confirmed bookings starting together on a court.
        # Wider overlaps are serialised by the row lock taken in the booking writer.
        Index(
            "ix_bookings_no_double",
            "court_id",
            "booking_date",
            "start_time",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
        Index("ix_bookings_date", "booking_date"),
        Index("ix_bookings_user", "user_id", "booking_date"),
    )

    @property
    def payment_label(self) -> str:
        return PAYMENT_STATUS_DISPLAY[self.payment_status][0]

    @property
    def payment_colour(self) -> str:
        return PAYMENT_STATUS_DISPLAY[self.payment_status][1]

    @property
    def remaining_amount(self) -> int:
        return max(0, self.total_amount - self.amount_paid)

    def __repr__(self) -> str:
        return f"<Booking {self.booking_code} {self.booking_date} {self.start_time}-{self.end_time} court={self.court_id}>"


class Participant(TimestampMixin, Base):
    __tablename__ = "booking_participants"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    status: Mapped[ParticipantStatus] = mapped_column(
        _enum(ParticipantStatus, "participant_status"), default=ParticipantStatus.PENDING, nullable=False
    )

    booking: Mapped["Booking"] = relationship(back_populates="participants")
    profile: Mapped["Profile"] = relationship()

    __table_args__ = (UniqueConstraint("booking_id", "user_id", name="uq_participants_booking_user"),)

    def __repr__(self) -> str:
        return f"<Participant booking={self.booking_id} user={self.user_id} {self.status}>"


# Import for type hints
from app.models.club import Court  # noqa: E402
from app.models.profile import Profile  # noqa: E402
