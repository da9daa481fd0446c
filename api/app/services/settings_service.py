"""Club-wide settings, loaded once per request and passed explicitly."""

from dataclasses import dataclass, field
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.club import ClubSettingsRow
from app.services.errors import ConfigurationError

SETTINGS_ROW_ID = 1
DEFAULT_GAME_DURATION = 90
DEFAULT_CANCELLATION_HOURS = 24
DEFAULT_MAX_BOOKINGS = 3


@dataclass(frozen=True)
class ClubConfig:
    game_duration_minutes: int = DEFAULT_GAME_DURATION
    payment_timeout_hours: int | None = None
    cancellation_hours: int = DEFAULT_CANCELLATION_HOURS
    max_bookings_per_user: int = DEFAULT_MAX_BOOKINGS
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo(settings.club_timezone))
    email_templates: dict[str, int] = field(default_factory=lambda: dict(settings.email_templates))

    def require_payment_timeout(self) -> int:
        if not self.payment_timeout_hours or self.payment_timeout_hours <= 0:
            raise ConfigurationError("Payment timeout setting not configured", rule="payment_timeout")
        return self.payment_timeout_hours

    def template_for(self, event_type: str) -> int:
        template_id = self.email_templates.get(event_type)
        if not template_id:
            raise ConfigurationError(f"No template configured for event type: {event_type}", rule="email_template")
        return template_id


async def get_settings_row(db: AsyncSession) -> ClubSettingsRow:
    """Return the settings row, creating it with defaults on first use."""
    row = await db.get(ClubSettingsRow, SETTINGS_ROW_ID)
    if row is None:
        row = ClubSettingsRow(
            id=SETTINGS_ROW_ID,
            game_duration_minutes=DEFAULT_GAME_DURATION,
            cancellation_hours=DEFAULT_CANCELLATION_HOURS,
            max_bookings_per_user=DEFAULT_MAX_BOOKINGS,
        )
        db.add(row)
        await db.flush()
    return row


async def load_club_config(db: AsyncSession) -> ClubConfig:
    row = await db.get(ClubSettingsRow, SETTINGS_ROW_ID)
    if row is None:
        return ClubConfig()
    return ClubConfig(
        game_duration_minutes=row.game_duration_minutes,
        payment_timeout_hours=row.payment_timeout_hours,
        cancellation_hours=row.cancellation_hours,
        max_bookings_per_user=row.max_bookings_per_user,
    )
