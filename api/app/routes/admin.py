"""Admin routes: club configuration, bookings on behalf of players, reporting.

Every endpoint requires an admin profile.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.database import get_db
from app.core.dependencies import require_admin
from app.models.booking import Booking, Participant
from app.models.club import Court, Holiday, OpeningHours
from app.models.payment import Refund, RefundStatus
from app.models.profile import Profile, ProfileRole
from app.models.promotion import Promotion
from app.schemas import (
    AdminBookingCreate,
    AdminProfileUpdate,
    BookingOut,
    ClubSettingsOut,
    ClubSettingsUpdate,
    CourtIn,
    CourtOut,
    HolidayIn,
    HolidayOut,
    OpeningHoursIn,
    OpeningHoursOut,
    ProfileCreate,
    ProfileOut,
    PromotionIn,
    PromotionOut,
    RefundOut,
    RefundReject,
    StatsBucketOut,
    SweepOut,
)
from app.services import booking_writer, notifications, refunds
from app.services.booking_rules import calc_end_time
from app.services.club_calendar import load_confirmed_bookings
from app.services.expiry import sweep_unpaid_bookings
from app.services.export import bookings_to_csv
from app.services.notifications import NotificationHook, dispatch
from app.services.settings_service import get_settings_row, load_club_config
from app.services.stats import GroupBy, compute_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _check_range(start: date, end: date) -> None:
    if start > end:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="start must be before end")


# --- Courts ---


@router.get("/courts", response_model=list[CourtOut])
async def list_all_courts(admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Court).order_by(Court.name))
    return result.scalars().all()


@router.post("/courts", response_model=CourtOut, status_code=status.HTTP_201_CREATED)
async def create_court(body: CourtIn, admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    court = Court(**body.model_dump())
    db.add(court)
    await db.flush()
    return court


@router.put("/courts/{court_id}", response_model=CourtOut)
async def update_court(
    court_id: int,
    body: CourtIn,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    court = await db.get(Court, court_id)
    if court is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Court not found")
    for field, value in body.model_dump().items():
        setattr(court, field, value)
    await db.flush()
    return court


@router.delete("/courts/{court_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_court(court_id: int, admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    """Delete a court, or deactivate it when bookings still reference it."""
    court = await db.get(Court, court_id)
    if court is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Court not found")

    result = await db.execute(select(func.count(Booking.id)).where(Booking.court_id == court_id))
    if result.scalar_one():
        court.is_active = False
        logger.info("Court %s deactivated (has bookings)", court_id)
    else:
        await db.delete(court)
    await db.flush()


# --- Opening hours ---


@router.put("/opening-hours/{day_of_week}", response_model=OpeningHoursOut)
async def set_opening_hours(
    day_of_week: int,
    body: OpeningHoursIn,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not 0 <= day_of_week <= 6:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="day_of_week must be 0 (Sunday) to 6")

    result = await db.execute(select(OpeningHours).where(OpeningHours.day_of_week == day_of_week))
    hours = result.scalar_one_or_none()
    if hours is None:
        hours = OpeningHours(day_of_week=day_of_week)
        db.add(hours)
    hours.open_time = body.open_time
    hours.close_time = body.close_time
    hours.is_closed = body.is_closed
    await db.flush()
    return hours


# --- Holidays ---


@router.post("/holidays", response_model=HolidayOut, status_code=status.HTTP_201_CREATED)
async def create_holiday(body: HolidayIn, admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    holiday = Holiday(**body.model_dump())
    db.add(holiday)
    await db.flush()
    return holiday


@router.delete("/holidays/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_holiday(holiday_id: int, admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    holiday = await db.get(Holiday, holiday_id)
    if holiday is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Holiday not found")
    await db.delete(holiday)
    await db.flush()


# --- Promotions ---


@router.get("/promotions", response_model=list[PromotionOut])
async def list_promotions(admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Promotion).order_by(Promotion.start_at.desc()))
    return result.scalars().all()


@router.post("/promotions", response_model=PromotionOut, status_code=status.HTTP_201_CREATED)
async def create_promotion(
    body: PromotionIn,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    promotion = Promotion(**body.model_dump(), created_by=admin.id)
    db.add(promotion)
    await db.flush()
    return promotion


@router.put("/promotions/{promotion_id}", response_model=PromotionOut)
async def update_promotion(
    promotion_id: int,
    body: PromotionIn,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    promotion = await db.get(Promotion, promotion_id)
    if promotion is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Promotion not found")
    for field, value in body.model_dump().items():
        setattr(promotion, field, value)
    await db.flush()
    return promotion


@router.delete("/promotions/{promotion_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_promotion(
    promotion_id: int,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate rather than delete: past bookings keep their promotion reference."""
    promotion = await db.get(Promotion, promotion_id)
    if promotion is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Promotion not found")
    promotion.is_active = False
    await db.flush()


# --- Settings ---


@router.get("/settings", response_model=ClubSettingsOut)
async def get_settings(admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await get_settings_row(db)


@router.patch("/settings", response_model=ClubSettingsOut)
async def update_settings(
    body: ClubSettingsUpdate,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    row = await get_settings_row(db)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(row, field, value)
    await db.flush()
    return row


# --- Bookings ---


@router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_admin_booking(
    body: AdminBookingCreate,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Book a court on behalf of a player. Settled at the desk, never expired."""
    config = await load_club_config(db)
    end_time = body.end_time or calc_end_time(body.start_time, config.game_duration_minutes)

    result = await booking_writer.create_booking(
        db,
        court_id=body.court_id,
        booking_date=body.booking_date,
        start_time=body.start_time,
        end_time=end_time,
        organizer_id=body.user_id,
        participant_ids=body.participant_ids,
        admin_override=True,
        config=config,
        players_count=body.players_count,
    )
    await dispatch(db, result.hooks, config)
    return result.booking


@router.get("/bookings", response_model=list[BookingOut])
async def list_bookings(
    start: date,
    end: date,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    _check_range(start, end)
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.participants).selectinload(Participant.profile))
        .where(Booking.booking_date >= start, Booking.booking_date <= end)
        .order_by(Booking.booking_date, Booking.start_time, Booking.court_id)
    )
    return result.scalars().all()


@router.get("/bookings/export")
async def export_bookings(
    start: date,
    end: date,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    _check_range(start, end)
    bookings = await load_confirmed_bookings(db, start, end)
    filename = f"reservations_{start.isoformat()}_{end.isoformat()}.csv"
    return Response(
        content=bookings_to_csv(bookings),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# --- Reporting and jobs ---


@router.get("/stats", response_model=list[StatsBucketOut])
async def get_stats(
    start: date,
    end: date,
    group_by: GroupBy = GroupBy.DAY,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await compute_stats(db, start, end, group_by)


@router.post("/sweep", response_model=SweepOut)
async def run_sweep(admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    config = await load_club_config(db)
    result = await sweep_unpaid_bookings(db, config)
    return SweepOut(
        count=result.count,
        booking_ids=result.booking_ids,
        notifications_failed=len(result.notifications.failed),
    )


# --- Refunds ---


@router.get("/refunds", response_model=list[RefundOut])
async def list_refunds(
    refund_status: RefundStatus | None = Query(default=None, alias="status"),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(Refund).order_by(Refund.created_at.desc())
    if refund_status is not None:
        query = query.where(Refund.status == refund_status)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/refunds/{refund_id}/approve", response_model=RefundOut)
async def approve_refund(refund_id: int, admin: Profile = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    config = await load_club_config(db)
    refund = await refunds.get_refund(db, refund_id)
    hook = await refunds.approve_refund(db, refund, admin)
    await dispatch(db, [hook], config)
    return refund


@router.post("/refunds/{refund_id}/reject", response_model=RefundOut)
async def reject_refund(
    refund_id: int,
    body: RefundReject,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    config = await load_club_config(db)
    refund = await refunds.get_refund(db, refund_id)
    hook = await refunds.reject_refund(db, refund, admin, body.reason)
    await dispatch(db, [hook], config)
    return refund


# --- Profiles ---


@router.post("/profiles", response_model=ProfileOut, status_code=status.HTTP_201_CREATED)
async def create_profile(
    body: ProfileCreate,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Register a player at the desk and send them the welcome email."""
    existing = await db.execute(select(Profile).where(Profile.username == body.username))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")

    profile = Profile(**body.model_dump())
    db.add(profile)
    await db.commit()

    config = await load_club_config(db)
    hook = NotificationHook(
        profile,
        notifications.ACCOUNT_CREATED,
        {"first_name": profile.first_name, "last_name": profile.last_name, "username": profile.username},
    )
    await dispatch(db, [hook], config)
    return profile


@router.get("/profiles", response_model=list[ProfileOut])
async def list_profiles(
    q: str | None = None,
    include_inactive: bool = False,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(Profile).order_by(Profile.last_name, Profile.first_name, Profile.username)
    if not include_inactive:
        query = query.where(Profile.is_active.is_(True))
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.where(
            or_(
                Profile.username.ilike(pattern),
                Profile.first_name.ilike(pattern),
                Profile.last_name.ilike(pattern),
                Profile.email.ilike(pattern),
            )
        )
    result = await db.execute(query)
    return result.scalars().all()


async def _get_profile(db: AsyncSession, profile_id: int) -> Profile:
    profile = await db.get(Profile, profile_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


@router.patch("/profiles/{profile_id}", response_model=ProfileOut)
async def update_profile(
    profile_id: int,
    body: AdminProfileUpdate,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    profile = await _get_profile(db, profile_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if profile.id == admin.id and changes.get("role", ProfileRole.ADMIN) != ProfileRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="You cannot remove your own admin role"
        )

    for field, value in changes.items():
        setattr(profile, field, value)
    await db.flush()
    logger.info("Profile %s updated by admin %s: %s", profile.id, admin.id, sorted(changes))
    return profile


@router.delete("/profiles/{profile_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_profile(
    profile_id: int,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate rather than delete: bookings and payments keep pointing at the profile."""
    profile = await _get_profile(db, profile_id)
    if profile.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="You cannot deactivate yourself"
        )

    profile.is_active = False
    await db.flush()
    logger.info("Profile %s deactivated by admin %s", profile.id, admin.id)
