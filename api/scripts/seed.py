"""Seed the database with a demo padel club.

Run with: python -m scripts.seed
Creates the tables, four courts, the weekly opening hours, club settings and
two test profiles, then prints a bearer token for each profile.
"""

import asyncio
from datetime import time

from sqlalchemy import select

from app.core.auth import create_access_token
from app.core.database import async_session_factory, engine
from app.models import Base, ClubSettingsRow, Court, OpeningHours, Profile, ProfileRole

# Prices in cents for a 90-minute game
COURTS = [
    {"name": "Terrain 1", "capacity": 4, "price": 3600},
    {"name": "Terrain 2", "capacity": 4, "price": 3600},
    {"name": "Terrain 3", "capacity": 4, "price": 3200},
    {"name": "Terrain Simple", "capacity": 2, "price": 2000},
]

# day_of_week: 0 = Sunday .. 6 = Saturday
OPENING_HOURS = [
    {"day_of_week": 0, "open_time": time(9, 0), "close_time": time(20, 0)},
    {"day_of_week": 1, "open_time": time(8, 0), "close_time": time(23, 0)},
    {"day_of_week": 2, "open_time": time(8, 0), "close_time": time(23, 0)},
    {"day_of_week": 3, "open_time": time(8, 0), "close_time": time(23, 0)},
    {"day_of_week": 4, "open_time": time(8, 0), "close_time": time(23, 0)},
    {"day_of_week": 5, "open_time": time(8, 0), "close_time": time(23, 0)},
    {"day_of_week": 6, "open_time": time(9, 0), "close_time": time(22, 0)},
]


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        existing = await db.execute(select(Court).limit(1))
        if existing.scalar_one_or_none():
            print("Database already seeded, nothing to do.")
            return

        for court in COURTS:
            db.add(Court(**court))
        for hours in OPENING_HOURS:
            db.add(OpeningHours(**hours))

        db.add(
            ClubSettingsRow(
                id=1,
                game_duration_minutes=90,
                payment_timeout_hours=2,
                cancellation_hours=24,
                max_bookings_per_user=3,
            )
        )

        admin = Profile(
            username="admin",
            first_name="Test",
            last_name="Admin",
            email="admin@padelbook.test",
            role=ProfileRole.ADMIN,
        )
        player = Profile(
            username="joueur",
            first_name="Test",
            last_name="Joueur",
            email="joueur@padelbook.test",
        )
        db.add_all([admin, player])
        await db.commit()

        print("Seeded PadelBook demo club")
        print(f"  {len(COURTS)} courts")
        print(f"  {len(OPENING_HOURS)} opening-hours rows")
        print("  2 test profiles (bearer tokens):")
        print(f"    admin:  {create_access_token(str(admin.id))}")
        print(f"    joueur: {create_access_token(str(player.id))}")


if __name__ == "__main__":
    asyncio.run(seed())
