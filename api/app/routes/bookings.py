"""Booking routes: create, list, cancel, participants and payment.

Rules live in app.services.booking_rules, persistence in booking_writer. Each
handler dispatches the writer's notification hooks once the booking has
committed.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.models.booking import Booking, BookingStatus, Participant, ParticipantStatus
from app.models.profile import Profile, ProfileRole
from app.schemas import (
    BookingCreate,
    BookingOut,
    ParticipantAdd,
    ParticipantAnswer,
    PaymentIntentOut,
    PaymentIntentRequest,
)
from app.services import booking_writer
from app.services.booking_rules import calc_end_time
from app.services.notifications import dispatch
from app.services.payments import start_payment
from app.services.settings_service import load_club_config

router = APIRouter(tags=["bookings"])


@router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    config = await load_club_config(db)
    end_time = body.end_time or calc_end_time(body.start_time, config.game_duration_minutes)

    result = await booking_writer.create_booking(
        db,
        court_id=body.court_id,
        booking_date=body.booking_date,
        start_time=body.start_time,
        end_time=end_time,
        organizer_id=user.id,
        participant_ids=body.participant_ids,
        admin_override=False,
        config=config,
        players_count=body.players_count,
    )
    await dispatch(db, result.hooks, config)
    return result.booking


@router.get("/bookings", response_model=list[BookingOut])
async def list_my_bookings(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Upcoming bookings the caller organises or is invited to (and has not declined)."""
    config = await load_club_config(db)
    today = datetime.now(config.timezone).date()

    invited = select(Participant.booking_id).where(
        Participant.user_id == user.id,
        Participant.status.in_([ParticipantStatus.PENDING, ParticipantStatus.ACCEPTED]),
    )
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.participants).selectinload(Participant.profile))
        .where(
            Booking.status == BookingStatus.CONFIRMED,
            Booking.booking_date >= today,
            or_(Booking.user_id == user.id, Booking.id.in_(invited)),
        )
        .order_by(Booking.booking_date, Booking.start_time)
        .limit(50)
    )
    return result.scalars().all()


@router.get("/bookings/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: int,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_writer.get_booking(db, booking_id)
    involved = {booking.user_id} | {p.user_id for p in booking.participants}
    if user.id not in involved and user.role != ProfileRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_booking(
    booking_id: int,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    config = await load_club_config(db)
    booking = await booking_writer.get_booking(db, booking_id)
    result = await booking_writer.cancel_booking(db, booking, user, config)
    await dispatch(db, result.hooks, config)


@router.post(
    "/bookings/{booking_id}/participants",
    response_model=BookingOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_participant(
    booking_id: int,
    body: ParticipantAdd,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    config = await load_club_config(db)
    booking = await booking_writer.get_booking(db, booking_id)
    result = await booking_writer.add_participant(db, booking, body.user_id, user)
    await dispatch(db, result.hooks, config)
    return result.booking


@router.patch("/participants/{participant_id}", response_model=BookingOut)
async def answer_invitation(
    participant_id: int,
    body: ParticipantAnswer,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    config = await load_club_config(db)
    participant = await booking_writer.get_participant(db, participant_id)
    result = await booking_writer.respond_to_invitation(db, participant, user, body.accept)
    await dispatch(db, result.hooks, config)
    return await booking_writer.get_booking(db, result.booking.id)


@router.delete("/participants/{participant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_participant(
    participant_id: int,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    participant = await booking_writer.get_participant(db, participant_id)
    await booking_writer.remove_participant(db, participant, user)


@router.post("/bookings/{booking_id}/payment-intent", response_model=PaymentIntentOut)
async def create_payment_intent(
    booking_id: int,
    body: PaymentIntentRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_writer.get_booking(db, booking_id)
    log, client_secret = await start_payment(db, booking, user, body.payment_type)
    return PaymentIntentOut(
        payment_log_id=log.id,
        payment_intent_id=log.stripe_payment_intent_id,
        client_secret=client_secret,
        amount=log.amount,
    )
