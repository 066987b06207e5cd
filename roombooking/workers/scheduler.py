import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import get_settings
from ..core.errors import PersistenceError
from ..db.session import SessionLocal
from ..services.room_status import synchronize_room_status

logger = logging.getLogger(__name__)


def sync_room_status() -> None:
    with SessionLocal() as db:
        try:
            synchronize_room_status(db)
        except PersistenceError:
            # Logged by the unit of work; the next tick retries.
            logger.warning("Room status sync skipped")


def get_scheduler() -> AsyncIOScheduler:
    settings = get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        sync_room_status,
        "interval",
        seconds=settings.room_sync_interval_seconds,
        id="room_status_sync",
        max_instances=1,
        coalesce=True,
    )
    return scheduler
