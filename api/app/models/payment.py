"""Payment audit trail and refund requests."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class PaymentType(enum.StrEnum):
    PARTIAL = "partial"  # The organizer's share only
    FULL = "full"


class PaymentLogStatus(enum.StrEnum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class RefundStatus(enum.StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CancelledBy(enum.StrEnum):
    ADMIN = "admin"
    CLIENT = "client"


def _enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda e: [x.value for x in e])


class PaymentLog(TimestampMixin, Base):
    """One row per PaymentIntent created for a booking."""

    __tablename__ = "payment_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    amount: Mapped[int] = mapped_column(nullable=False)
    payment_type: Mapped[PaymentType] = mapped_column(_enum(PaymentType, "payment_type"), nullable=False)
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(100), index=True)
    stripe_charge_id: Mapped[str | None] = mapped_column(String(100), index=True)
    status: Mapped[PaymentLogStatus] = mapped_column(
        _enum(PaymentLogStatus, "payment_log_status"), default=PaymentLogStatus.PENDING, nullable=False
    )
    error_message: Mapped[str | None] = mapped_column(Text)


class Refund(TimestampMixin, Base):
    """A refund request raised when a paid booking is cancelled; reviewed by an admin."""

    __tablename__ = "refunds"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False, unique=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    amount: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[RefundStatus] = mapped_column(
        _enum(RefundStatus, "refund_status"), default=RefundStatus.PENDING, nullable=False
    )
    cancelled_by: Mapped[CancelledBy] = mapped_column(_enum(CancelledBy, "cancelled_by"), nullable=False)
    reviewed_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    stripe_refund_id: Mapped[str | None] = mapped_column(String(100))

    booking: Mapped["Booking"] = relationship()


from app.models.booking import Booking  # noqa: E402
