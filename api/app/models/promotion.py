"""Promotion model.

A promotion discounts the court price for bookings whose start falls inside
its [start_at, end_at] window, on the listed courts (an empty list means
every court).
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType, TimestampMixin


class DiscountType(enum.StrEnum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"  # cents off


class Promotion(TimestampMixin, Base):
    __tablename__ = "promotions"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    label: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    court_ids: Mapped[list[int]] = mapped_column(JSONType, default=list, nullable=False)
    discount_type: Mapped[DiscountType] = mapped_column(
        Enum(DiscountType, name="discount_type", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    discount_value: Mapped[int] = mapped_column(nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"))

    __table_args__ = (
        CheckConstraint("discount_value >= 0", name="ck_promotions_value"),
        CheckConstraint("discount_type <> 'percentage' OR discount_value <= 100", name="ck_promotions_pct"),
        CheckConstraint("end_at >= start_at", name="ck_promotions_window"),
    )

    def __repr__(self) -> str:
        return f"<Promotion {self.name} {self.discount_type}={self.discount_value}>"
