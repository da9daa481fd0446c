"""Pydantic schemas for API serialisation."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from app.core.config import settings
from app.models.payment import PaymentType
from app.models.profile import ProfileRole
from app.models.promotion import DiscountType

# --- Profiles ---


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    role: str
    is_active: bool


class ProfileSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    first_name: str
    last_name: str


class ProfileCreate(BaseModel):
    username: str = Field(min_length=2, max_length=50)
    first_name: str = ""
    last_name: str = ""
    email: EmailStr
    phone: str | None = None


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)


class AdminProfileUpdate(ProfileUpdate):
    role: ProfileRole | None = None


# --- Club ---


class CourtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    capacity: int
    price: int
    is_active: bool
    image_url: str | None


class CourtIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    capacity: int = 4
    price: int = Field(ge=0)
    is_active: bool = True
    image_url: str | None = None

    @model_validator(mode="after")
    def _capacity(self):
        if self.capacity not in (2, 4):
            raise ValueError("capacity must be 2 (simple) or 4 (double)")
        return self


class OpeningHoursOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day_of_week: int
    open_time: time
    close_time: time
    is_closed: bool


class OpeningHoursIn(BaseModel):
    open_time: time
    close_time: time
    is_closed: bool = False

    @model_validator(mode="after")
    def _range(self):
        if not self.is_closed and self.open_time >= self.close_time:
            raise ValueError("open_time must be before close_time")
        return self


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: date
    end_date: date | None
    reason: str


class HolidayIn(BaseModel):
    date: date
    end_date: date | None = None
    reason: str = ""

    @model_validator(mode="after")
    def _range(self):
        if self.end_date is not None and self.end_date < self.date:
            raise ValueError("end_date must be on or after date")
        return self


class ClubSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    game_duration_minutes: int
    payment_timeout_hours: int | None
    cancellation_hours: int
    max_bookings_per_user: int


class ClubSettingsUpdate(BaseModel):
    game_duration_minutes: int | None = Field(default=None, gt=0)
    payment_timeout_hours: int | None = Field(default=None, gt=0)
    cancellation_hours: int | None = Field(default=None, ge=0)
    max_bookings_per_user: int | None = Field(default=None, gt=0)


# --- Promotions ---


class PromotionIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    label: str = ""
    court_ids: list[int] = []
    discount_type: DiscountType
    discount_value: int = Field(ge=0)
    start_at: datetime
    end_at: datetime
    is_active: bool = True

    @model_validator(mode="after")
    def _check(self):
        # Windows are stored as club-local wall-clock times
        tz = ZoneInfo(settings.club_timezone)
        if self.start_at.tzinfo is not None:
            self.start_at = self.start_at.astimezone(tz).replace(tzinfo=None)
        if self.end_at.tzinfo is not None:
            self.end_at = self.end_at.astimezone(tz).replace(tzinfo=None)
        if self.end_at < self.start_at:
            raise ValueError("end_at must be on or after start_at")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("a percentage discount cannot exceed 100")
        return self


class PromotionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    label: str
    court_ids: list[int]
    discount_type: str
    discount_value: int
    start_at: datetime
    end_at: datetime
    is_active: bool
    created_at: datetime


# --- Availability ---


class SlotOut(BaseModel):
    start_time: str  # "HH:MM"
    end_time: str  # "HH:MM"
    is_available: bool
    booking_id: int | None = None
    price: int
    original_price: int | None = None
    promotion_label: str | None = None


class AvailabilityOut(BaseModel):
    court_id: int
    court_name: str
    capacity: int
    date: date
    closed: bool
    slots: list[SlotOut]


# --- Booking ---


class BookingCreate(BaseModel):
    court_id: int
    booking_date: date
    start_time: time
    end_time: time | None = None  # defaults to start + game duration
    participant_ids: list[int] = []
    players_count: int | None = None


class AdminBookingCreate(BookingCreate):
    user_id: int


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    status: str
    profile: ProfileSummary


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_code: str
    court_id: int
    user_id: int
    booking_date: date
    start_time: time
    end_time: time
    players_count: int
    status: str
    payment_status: str
    payment_label: str
    payment_colour: str
    created_by_admin: bool
    total_amount: int
    amount_paid: int
    original_amount: int | None
    promotion_discount: int | None
    created_at: datetime
    participants: list[ParticipantOut] = []


class ParticipantAdd(BaseModel):
    user_id: int


class ParticipantAnswer(BaseModel):
    accept: bool


class PaymentIntentRequest(BaseModel):
    payment_type: PaymentType = PaymentType.FULL


class PaymentIntentOut(BaseModel):
    payment_log_id: int
    payment_intent_id: str
    client_secret: str
    amount: int


# --- Admin ---


class StatsBucketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    period: str
    bookings_count: int
    revenue: float
    total_slots: int
    occupancy_rate: float


class SweepOut(BaseModel):
    count: int
    booking_ids: list[int]
    notifications_failed: int


class RefundOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_id: int
    user_id: int
    amount: int
    status: str
    cancelled_by: str
    reviewed_by: int | None
    reviewed_at: datetime | None
    rejection_reason: str | None
    stripe_refund_id: str | None
    created_at: datetime


class RefundReject(BaseModel):
    reason: str = Field(min_length=1)
