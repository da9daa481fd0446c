"""Post-commit notification hooks.

Writers return a list of hooks; the caller runs them with dispatch() once the
booking transaction has committed. Each hook is attempted independently and a
failure is logged and reported, never raised.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.models.profile import Profile
from app.services.email import send_event_email
from app.services.errors import ConfigurationError, UpstreamError
from app.services.settings_service import ClubConfig

logger = logging.getLogger(__name__)

ACCOUNT_CREATED = "account_created"
BOOKING_CREATED = "booking_created"
BOOKING_CANCELLED = "booking_cancelled"
PARTICIPANT_ADDED = "participant_added"
PARTICIPANT_ACCEPTED = "participant_accepted"
PARTICIPANT_DECLINED = "participant_declined"
REFUND_APPROVED = "refund_approved"
REFUND_REJECTED = "refund_rejected"

EVENT_TYPES = (
    ACCOUNT_CREATED,
    BOOKING_CREATED,
    BOOKING_CANCELLED,
    PARTICIPANT_ADDED,
    PARTICIPANT_ACCEPTED,
    PARTICIPANT_DECLINED,
    REFUND_APPROVED,
    REFUND_REJECTED,
)


@dataclass
class NotificationHook:
    recipient: Profile
    event_type: str
    params: dict
    booking_id: int | None = None


@dataclass
class DispatchReport:
    sent: list[int] = field(default_factory=list)  # recipient profile ids
    failed: list[tuple[int, str]] = field(default_factory=list)  # (profile id, reason)

    @property
    def ok(self) -> bool:
        return not self.failed


def booking_params(booking: Booking, court_name: str, person: Profile) -> dict:
    """Template parameters shared by the booking emails."""
    return {
        "court_name": court_name,
        "booking_date": booking.booking_date.strftime("%d/%m/%Y"),
        "start_time": booking.start_time.strftime("%H:%M"),
        "end_time": booking.end_time.strftime("%H:%M"),
        "first_name": person.first_name,
        "last_name": person.last_name,
    }


def participant_added_params(booking: Booking, court_name: str, organizer: Profile, participant: Profile) -> dict:
    params = booking_params(booking, court_name, participant)
    params.update(
        {
            "organizer_first_name": organizer.first_name,
            "organizer_last_name": organizer.last_name,
            "participant_first_name": participant.first_name,
            "participant_last_name": participant.last_name,
        }
    )
    return params


async def dispatch(db: AsyncSession, hooks: list[NotificationHook], config: ClubConfig) -> DispatchReport:
    report = DispatchReport()
    for hook in hooks:
        try:
            await send_event_email(db, hook.recipient, hook.event_type, hook.params, config, hook.booking_id)
        except (ConfigurationError, UpstreamError) as exc:
            logger.warning(
                "Notification %s to profile %s failed: %s", hook.event_type, hook.recipient.id, exc.message
            )
            report.failed.append((hook.recipient.id, exc.message))
        else:
            report.sent.append(hook.recipient.id)
    return report
