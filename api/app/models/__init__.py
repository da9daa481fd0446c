"""All models imported here for metadata discovery."""

from app.models.base import Base
from app.models.booking import (
    PAYMENT_STATUS_DISPLAY,
    Booking,
    BookingStatus,
    Participant,
    ParticipantStatus,
    PaymentStatus,
)
from app.models.club import ClubSettingsRow, Court, Holiday, OpeningHours
from app.models.email_log import EmailLog
from app.models.payment import CancelledBy, PaymentLog, PaymentLogStatus, PaymentType, Refund, RefundStatus
from app.models.profile import Profile, ProfileRole
from app.models.promotion import DiscountType, Promotion

__all__ = [
    "Base",
    "Court",
    "OpeningHours",
    "Holiday",
    "ClubSettingsRow",
    "Profile",
    "ProfileRole",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "PAYMENT_STATUS_DISPLAY",
    "Participant",
    "ParticipantStatus",
    "Promotion",
    "DiscountType",
    "PaymentLog",
    "PaymentLogStatus",
    "PaymentType",
    "Refund",
    "RefundStatus",
    "CancelledBy",
    "EmailLog",
]
