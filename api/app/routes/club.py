"""Public club routes: courts, opening hours, holidays and slot availability."""

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.promotion import Promotion
from app.schemas import AvailabilityOut, CourtOut, HolidayOut, OpeningHoursOut, SlotOut
from app.services.club_calendar import load_active_courts, load_confirmed_bookings, load_holidays, load_opening_hours
from app.services.operating_hours import build_day_grid, display_order, window_for
from app.services.pricing import discounted_price, select_promotion
from app.services.settings_service import load_club_config

router = APIRouter(tags=["club"])


@router.get("/courts", response_model=list[CourtOut])
async def list_courts(db: AsyncSession = Depends(get_db)):
    return await load_active_courts(db)


@router.get("/opening-hours", response_model=list[OpeningHoursOut])
async def list_opening_hours(db: AsyncSession = Depends(get_db)):
    hours = await load_opening_hours(db)
    return sorted(hours, key=lambda h: display_order(h.day_of_week))


@router.get("/holidays", response_model=list[HolidayOut])
async def list_holidays(
    start: date | None = None,
    end: date | None = None,
    db: AsyncSession = Depends(get_db),
):
    return await load_holidays(db, start, end)


@router.get("/availability", response_model=list[AvailabilityOut])
async def get_availability(
    query_date: date = Query(alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """Slot grid for every active court on one date, with the price of each slot."""
    config = await load_club_config(db)
    courts = await load_active_courts(db)
    window = window_for(query_date, await load_opening_hours(db), await load_holidays(db, query_date, query_date))
    bookings = await load_confirmed_bookings(db, query_date, query_date) if window else []

    promotions = []
    if window is not None:
        day_start = datetime.combine(query_date, window.open_time)
        day_end = datetime.combine(query_date, window.close_time)
        result = await db.execute(
            select(Promotion).where(
                Promotion.is_active.is_(True),
                Promotion.start_at <= day_end,
                Promotion.end_at >= day_start,
            )
        )
        promotions = result.scalars().all()

    out = []
    for court in courts:
        slots = []
        for slot in build_day_grid(court.id, query_date, window, config.game_duration_minutes, bookings):
            promotion = select_promotion(promotions, court.id, datetime.combine(query_date, slot["start_time"]))
            slots.append(
                SlotOut(
                    start_time=slot["start_time"].strftime("%H:%M"),
                    end_time=slot["end_time"].strftime("%H:%M"),
                    is_available=slot["is_available"],
                    booking_id=slot["booking_id"],
                    price=discounted_price(court.price, promotion),
                    original_price=court.price if promotion else None,
                    promotion_label=(promotion.label or promotion.name) if promotion else None,
                )
            )
        out.append(
            AvailabilityOut(
                court_id=court.id,
                court_name=court.name,
                capacity=court.capacity,
                date=query_date,
                closed=window is None,
                slots=slots,
            )
        )
    return out
