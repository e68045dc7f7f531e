"""
Background scheduler for the batch jobs.
Handles:
- Materializing instances for the upcoming days
- End-of-day sweep of yesterday (expiry, snapshots, streak decay)
"""

import logging
from datetime import datetime, timedelta, timezone
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.exc import SQLAlchemyError

from orbit.database import SessionLocal
from orbit.exceptions import OrbitException
from orbit.repositories.settings_repository import SettingsRepository
from orbit.services.date_service import DateService
from orbit.services.materializer_service import MaterializerService
from orbit.services.sweeper_service import SweeperService

logger = logging.getLogger("orbit.scheduler")

# Create scheduler instance
scheduler = AsyncIOScheduler()


def _normalize_time(time_str: str | None) -> str:
    """
    Normalize a time to HHMM.
    Examples: '06:00' -> '0600', '0600' -> '0600', None -> '0000'
    """
    if not time_str:
        return "0000"
    return time_str.replace(":", "").zfill(4)


def _is_due(now: datetime, target: str | None) -> bool:
    return int(now.strftime("%H%M")) >= int(_normalize_time(target))


async def run_auto_materialize(now: datetime | None = None):
    """Job: materialize today plus the lookahead window for all users"""
    db = SessionLocal()
    try:
        settings = SettingsRepository.get(db)
        if not settings.auto_materialize_enabled:
            return

        now = now or datetime.now(timezone.utc)
        today = DateService.today(settings.default_timezone, now)

        if not _is_due(now, settings.materialize_time) or settings.last_materialize_date == today:
            return

        lookahead = min(settings.materialize_lookahead_days, settings.max_materialize_range_days)
        end_date = today + timedelta(days=lookahead)
        logger.info(f"Executing auto-materialize for {today}..{end_date}")

        result = MaterializerService(db).materialize_batch(today, end_date)
        for error in result.errors:
            logger.warning(f"Auto-materialize error for {error.user_id}: {error.error}")

        settings.last_materialize_date = today
        SettingsRepository.update(db, settings)

    except (OrbitException, SQLAlchemyError) as e:
        logger.error(f"Scheduler Error (Materialize): {e}")
    finally:
        db.close()


async def run_auto_end_of_day(now: datetime | None = None):
    """Job: sweep yesterday"""
    db = SessionLocal()
    try:
        settings = SettingsRepository.get(db)
        if not settings.auto_end_of_day_enabled:
            return

        now = now or datetime.now(timezone.utc)
        sweeper = SweeperService(db)
        target_day = sweeper.default_target_day(now)

        if not _is_due(now, settings.end_of_day_time) or settings.last_end_of_day_date == target_day:
            return

        logger.info(f"Executing end-of-day sweep for {target_day}")
        result = sweeper.sweep(target_day)
        for error in result.errors:
            logger.warning(f"End-of-day error: {error}")

        settings.last_end_of_day_date = target_day
        SettingsRepository.update(db, settings)

    except (OrbitException, SQLAlchemyError) as e:
        logger.error(f"Scheduler Error (End-of-day): {e}")
    finally:
        db.close()


def start_scheduler():
    """Start the scheduler"""
    if not scheduler.running:
        # Jobs check every minute whether their time has come
        trigger = CronTrigger(minute='*')

        scheduler.add_job(
            run_auto_end_of_day,
            trigger,
            id='auto_end_of_day',
            replace_existing=True
        )

        scheduler.add_job(
            run_auto_materialize,
            trigger,
            id='auto_materialize',
            replace_existing=True
        )

        scheduler.start()
        logger.info(">>> APScheduler STARTED <<<")
        logger.info(f"Scheduled jobs: {[job.id for job in scheduler.get_jobs()]}")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
