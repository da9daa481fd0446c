"""Outbox/audit record of every transactional email attempt."""

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType, TimestampMixin

EMAIL_SENT = "sent"
EMAIL_FAILED = "failed"


class EmailLog(TimestampMixin, Base):
    __tablename__ = "email_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    recipient_email: Mapped[str] = mapped_column(String(254), nullable=False, index=True)
    recipient_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    template_id: Mapped[int | None] = mapped_column()
    params: Mapped[dict | None] = mapped_column(JSONType, default=dict)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # sent | failed
    message_id: Mapped[str | None] = mapped_column(String(200))
    error_message: Mapped[str | None] = mapped_column(Text)
    booking_id: Mapped[int | None] = mapped_column(ForeignKey("bookings.id"))
