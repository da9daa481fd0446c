"""Celery worker configuration and periodic jobs.

Beat runs the unpaid-booking expiry sweep every 15 minutes. Run with:

    celery -A app.worker worker --beat --loglevel=info
"""

import asyncio
import logging

from celery import Celery

from app.core.config import settings
from app.core.database import async_session_factory, engine
from app.services.expiry import sweep_unpaid_bookings
from app.services.settings_service import load_club_config

logger = logging.getLogger(__name__)

celery_app = Celery(
    "padelbook",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.club_timezone,
    enable_utc=True,
)

celery_app.conf.beat_schedule = {
    "expire-unpaid-bookings-every-15-minutes": {
        "task": "app.worker.expire_unpaid_bookings",
        "schedule": 900.0,
    },
}


async def run_sweep() -> dict:
    """One sweep on a fresh event loop.

    Each task gets its own asyncio.run() loop, so pooled connections are
    dropped afterwards instead of being reused on a closed loop.
    """
    try:
        async with async_session_factory() as db:
            config = await load_club_config(db)
            result = await sweep_unpaid_bookings(db, config)
    finally:
        await engine.dispose()
    return {
        "count": result.count,
        "booking_ids": result.booking_ids,
        "notifications_failed": len(result.notifications.failed),
    }


@celery_app.task(name="app.worker.expire_unpaid_bookings")
def expire_unpaid_bookings() -> dict:
    """Cancel bookings left unpaid past the payment timeout.

    A missing timeout setting fails the task (ConfigurationError) and cancels nothing.
    """
    summary = asyncio.run(run_sweep())
    logger.info("Expiry sweep task done: %s", summary)
    return summary
