"""Booking writer: create and cancel bookings, manage participants.

Every writer validates, persists and commits its core change, then returns
the notification hooks for the caller to dispatch. A notification can never
roll back the booking it is about.
"""

import logging
import random
import string
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.booking import Booking, BookingStatus, Participant, ParticipantStatus, PaymentStatus
from app.models.club import Court
from app.models.payment import CancelledBy, Refund
from app.models.profile import Profile, ProfileRole
from app.services import notifications
from app.services.booking_rules import distinct_participants, validate_booking, validate_cancellation
from app.services.club_calendar import load_holidays, load_opening_hours
from app.services.errors import (
    BookingError,
    CapacityExceededError,
    NotFoundError,
    PermissionDeniedError,
    SlotConflictError,
    ValidationError,
)
from app.services.notifications import NotificationHook
from app.services.pricing import quote, resolve_promotion
from app.services.settings_service import ClubConfig
from app.services.stripe_service import cancel_payment_intent

logger = logging.getLogger(__name__)

BOOKING_CODE_PREFIX = "PB-"
BOOKING_CODE_ATTEMPTS = 10


@dataclass
class BookingResult:
    booking: Booking
    hooks: list[NotificationHook] = field(default_factory=list)


def make_booking_code() -> str:
    return BOOKING_CODE_PREFIX + "".join(random.choices(string.ascii_uppercase + string.digits, k=6))


async def allocate_booking_code(db: AsyncSession) -> str:
    for _ in range(BOOKING_CODE_ATTEMPTS):
        code = make_booking_code()
        result = await db.execute(select(Booking.id).where(Booking.booking_code == code))
        if result.scalar_one_or_none() is None:
            return code
    raise BookingError("Could not allocate a unique booking code, please retry.", rule="booking_code")


def _is_admin(profile: Profile) -> bool:
    return profile.role == ProfileRole.ADMIN


async def _load_profiles(db: AsyncSession, profile_ids: Sequence[int]) -> dict[int, Profile]:
    if not profile_ids:
        return {}
    result = await db.execute(select(Profile).where(Profile.id.in_(profile_ids)))
    return {p.id: p for p in result.scalars().all()}


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    """Load a booking with its court, organizer and participants."""
    result = await db.execute(
        select(Booking)
        .options(
            selectinload(Booking.court),
            selectinload(Booking.profile),
            selectinload(Booking.participants).selectinload(Participant.profile),
        )
        .where(Booking.id == booking_id)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


async def create_booking(
    db: AsyncSession,
    *,
    court_id: int,
    booking_date: date,
    start_time: time,
    end_time: time,
    organizer_id: int | None,
    participant_ids: Sequence[int],
    admin_override: bool,
    config: ClubConfig,
    players_count: int | None = None,
    now: datetime | None = None,
) -> BookingResult:
    """Validate and persist a booking with its participants.

    The court row is locked for the duration of the check-then-insert, and the
    partial unique index on confirmed bookings backs it up: a storage-level
    duplicate surfaces as SlotConflictError.
    """
    now = now or datetime.now(config.timezone)

    # Serialise concurrent writers on the same court
    result = await db.execute(select(Court).where(Court.id == court_id).with_for_update())
    court = result.scalar_one_or_none()
    if court is None or not court.is_active:
        raise NotFoundError("Court not found or not bookable")

    participant_ids = distinct_participants(organizer_id, participant_ids)

    await validate_booking(
        db,
        court=court,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
        organizer_id=organizer_id,
        participant_ids=participant_ids,
        opening_hours=await load_opening_hours(db),
        holidays=await load_holidays(db, booking_date, booking_date),
        admin_override=admin_override,
        now=now,
        max_upcoming=config.max_bookings_per_user,
        players_count=players_count,
    )

    profiles = await _load_profiles(db, [organizer_id, *participant_ids])
    organizer = profiles.get(organizer_id)
    if organizer is None:
        raise ValidationError(f"Organizer {organizer_id} does not exist.", rule="organizer_required")
    unknown = [pid for pid in participant_ids if pid not in profiles or not profiles[pid].is_active]
    if unknown:
        raise ValidationError(f"Unknown participants: {', '.join(map(str, unknown))}", rule="participants")

    promotion = await resolve_promotion(db, court.id, booking_date, start_time)
    price = quote(court.price, promotion)

    if admin_override:
        payment_status = PaymentStatus.CONFIRMED
    elif price["total_amount"] == 0:
        payment_status = PaymentStatus.PAYMENT_COMPLETED
    else:
        payment_status = PaymentStatus.PENDING_PAYMENT

    booking = Booking(
        court=court,
        profile=organizer,
        booking_code=await allocate_booking_code(db),
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
        players_count=court.capacity,
        status=BookingStatus.CONFIRMED,
        created_by_admin=admin_override,
        payment_status=payment_status,
        amount_paid=0,
        **price,
    )
    booking.participants = [
        Participant(user_id=pid, profile=profiles[pid], status=ParticipantStatus.PENDING) for pid in participant_ids
    ]
    db.add(booking)

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise SlotConflictError("This slot was just booked by someone else. Please pick another one.") from None

    await db.commit()
    logger.info(
        "Booking %s created: court=%s %s %s-%s by profile %s (admin=%s, total=%s)",
        booking.booking_code,
        court.id,
        booking_date,
        start_time,
        end_time,
        organizer_id,
        admin_override,
        booking.total_amount,
    )

    hooks = [
        NotificationHook(
            organizer,
            notifications.BOOKING_CREATED,
            notifications.booking_params(booking, court.name, organizer),
            booking.id,
        )
    ]
    for participant in booking.participants:
        hooks.append(
            NotificationHook(
                participant.profile,
                notifications.PARTICIPANT_ADDED,
                notifications.participant_added_params(booking, court.name, organizer, participant.profile),
                booking.id,
            )
        )
    return BookingResult(booking, hooks)


async def cancel_booking(
    db: AsyncSession,
    booking: Booking,
    actor: Profile,
    config: ClubConfig,
    now: datetime | None = None,
) -> BookingResult:
    """Cancel a confirmed booking.

    Organizers must respect the cancellation deadline; admins may cancel at
    any time. Money already paid turns into a pending refund request.
    """
    now = now or datetime.now(config.timezone)
    admin = _is_admin(actor)

    if booking.user_id != actor.id and not admin:
        raise PermissionDeniedError("Only the organizer or an admin can cancel this booking")
    if booking.status != BookingStatus.CONFIRMED:
        raise ValidationError("Booking cannot be cancelled", rule="not_cancellable")
    if not admin:
        validate_cancellation(booking, config.cancellation_hours, now)

    if booking.stripe_payment_intent_id and booking.payment_status in (
        PaymentStatus.PENDING_PAYMENT,
        PaymentStatus.PAYMENT_FAILED,
    ):
        cancel_payment_intent(booking.stripe_payment_intent_id, "requested_by_customer")

    if booking.amount_paid > 0:
        db.add(
            Refund(
                booking_id=booking.id,
                user_id=booking.user_id,
                amount=booking.amount_paid,
                cancelled_by=CancelledBy.ADMIN if admin else CancelledBy.CLIENT,
            )
        )

    booking.status = BookingStatus.CANCELLED
    booking.payment_status = PaymentStatus.CANCELLED
    booking.cancelled_at = datetime.now(UTC)
    await db.commit()
    logger.info("Booking %s cancelled by profile %s", booking.booking_code, actor.id)

    court_name = booking.court.name
    recipients = [booking.profile] + [
        p.profile for p in booking.participants if p.status != ParticipantStatus.DECLINED
    ]
    hooks = [
        NotificationHook(
            person,
            notifications.BOOKING_CANCELLED,
            notifications.booking_params(booking, court_name, person),
            booking.id,
        )
        for person in recipients
    ]
    return BookingResult(booking, hooks)


async def add_participant(db: AsyncSession, booking: Booking, user_id: int, actor: Profile) -> BookingResult:
    """Invite another player onto a booking. Capacity is checked again here."""
    if booking.user_id != actor.id and not _is_admin(actor):
        raise PermissionDeniedError("Only the organizer can add participants")
    if booking.status != BookingStatus.CONFIRMED:
        raise ValidationError("Cannot add participants to a cancelled booking", rule="not_confirmed")
    if user_id == booking.user_id:
        raise ValidationError("The organizer is already on the booking", rule="participants")
    if any(p.user_id == user_id for p in booking.participants):
        raise ValidationError("This player is already a participant", rule="participants")

    active = [p for p in booking.participants if p.status != ParticipantStatus.DECLINED]
    if 1 + len(active) + 1 > booking.court.capacity:
        raise CapacityExceededError(
            f"Total number of people (organizer + participants) cannot exceed {booking.court.capacity}."
        )

    profile = await db.get(Profile, user_id)
    if profile is None or not profile.is_active:
        raise NotFoundError("Player not found")

    participant = Participant(user_id=user_id, profile=profile, status=ParticipantStatus.PENDING)
    booking.participants.append(participant)
    await db.commit()
    logger.info("Profile %s added to booking %s", user_id, booking.booking_code)

    hook = NotificationHook(
        profile,
        notifications.PARTICIPANT_ADDED,
        notifications.participant_added_params(booking, booking.court.name, booking.profile, profile),
        booking.id,
    )
    return BookingResult(booking, [hook])


async def get_participant(db: AsyncSession, participant_id: int) -> Participant:
    result = await db.execute(
        select(Participant)
        .options(
            selectinload(Participant.profile),
            selectinload(Participant.booking).selectinload(Booking.court),
            selectinload(Participant.booking).selectinload(Booking.profile),
            selectinload(Participant.booking).selectinload(Booking.participants),
        )
        .where(Participant.id == participant_id)
    )
    participant = result.scalar_one_or_none()
    if participant is None:
        raise NotFoundError("Participant not found")
    return participant


async def respond_to_invitation(
    db: AsyncSession, participant: Participant, actor: Profile, accept: bool
) -> BookingResult:
    """Accept or decline an invitation. Only the invited player may answer."""
    if participant.user_id != actor.id:
        raise PermissionDeniedError("Only the invited player can answer this invitation")
    booking = participant.booking
    if booking.status != BookingStatus.CONFIRMED:
        raise ValidationError("This booking has been cancelled", rule="not_confirmed")

    participant.status = ParticipantStatus.ACCEPTED if accept else ParticipantStatus.DECLINED
    await db.commit()

    params = notifications.participant_added_params(booking, booking.court.name, booking.profile, participant.profile)
    params.update(
        {"first_name": booking.profile.first_name, "last_name": booking.profile.last_name}
    )
    event_type = notifications.PARTICIPANT_ACCEPTED if accept else notifications.PARTICIPANT_DECLINED
    return BookingResult(booking, [NotificationHook(booking.profile, event_type, params, booking.id)])


async def remove_participant(db: AsyncSession, participant: Participant, actor: Profile) -> Booking:
    booking = participant.booking
    if actor.id not in (participant.user_id, booking.user_id) and not _is_admin(actor):
        raise PermissionDeniedError("You cannot remove this participant")
    if booking.status != BookingStatus.CONFIRMED:
        raise ValidationError("This booking has been cancelled", rule="not_confirmed")

    booking.participants.remove(participant)
    await db.commit()
    logger.info("Profile %s removed from booking %s", participant.user_id, booking.booking_code)
    return booking
