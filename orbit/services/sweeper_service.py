"""
End-of-day sweep service.
Closes out a logical day: expires unconfirmed instances, writes one
immutable snapshot per active user and decays missed streaks.
"""
import logging
from datetime import date, datetime, timedelta, timezone as dt_timezone
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orbit.constants import INSTANCE_STATUS_DONE, INSTANCE_STATUS_SKIPPED
from orbit.database import ensure_storage_available
from orbit.repositories.instance_repository import InstanceRepository, SnapshotRepository
from orbit.repositories.settings_repository import SettingsRepository
from orbit.schemas import EndOfDayResponse
from orbit.services.date_service import DateService
from orbit.services.gamification_service import GamificationService
from orbit.services.ledger_service import LedgerService

logger = logging.getLogger("orbit.sweeper")


class SweeperService:
    """Service for end-of-day finalization"""

    def __init__(self, db: Session, ledger=None):
        self.db = db
        # Anything with get_day_totals(user_id, day) -> LedgerTotals
        self.ledger = ledger or LedgerService(db)
        self.instance_repo = InstanceRepository()
        self.snapshot_repo = SnapshotRepository()
        self.settings_repo = SettingsRepository()
        self.date_service = DateService()
        self.gamification_service = GamificationService(db)

    def default_target_day(self, now: Optional[datetime] = None) -> date:
        """Yesterday relative to the invocation instant, in the default timezone"""
        settings = self.settings_repo.get(self.db)
        today = self.date_service.today(settings.default_timezone, now or datetime.now(dt_timezone.utc))
        return self.date_service.previous_day(today)

    def sweep(self, logical_day: date) -> EndOfDayResponse:
        """
        Finalize a completed logical day.

        1. pending -> skipped for every instance of the day (done/skipped untouched)
        2. one snapshot per user with instances that day, written once
        3. streak decay for users with no activity on the day

        Re-running for the same day changes nothing: there are no pending
        instances left and existing snapshots are never overwritten.

        Args:
            logical_day: The day to close

        Returns:
            EndOfDayResponse with counts and per-user error strings

        Raises:
            StorageUnavailableException: If the database cannot be reached
        """
        ensure_storage_available(self.db)
        self.settings_repo.get(self.db)
        result = EndOfDayResponse(logical_day=logical_day)

        # 1. Expire
        try:
            result.expired_instances = self.instance_repo.expire_pending(self.db, logical_day)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Expire pending instances failed for {logical_day}: {e}")
            result.errors.append(f"Expire instances error: {e}")

        # 2. Snapshots
        try:
            user_ids = self.instance_repo.get_active_users(self.db, logical_day)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Loading active users failed for {logical_day}: {e}")
            result.errors.append(f"Get users error: {e}")
            user_ids = []

        for user_id in user_ids:
            savepoint = self.db.begin_nested()
            try:
                created = self._write_snapshot(user_id, logical_day)
                savepoint.commit()
            except SQLAlchemyError as e:
                savepoint.rollback()
                logger.error(f"Snapshot failed for user {user_id} on {logical_day}: {e}")
                result.errors.append(f"Snapshot error for {user_id}: {e}")
                continue
            if created:
                result.snapshots_created += 1
        self.db.commit()

        # 3. Streak decay: evaluated as of the day after the swept one
        try:
            result.streaks_reset = self.gamification_service.reset_streak_if_missed(
                logical_day + timedelta(days=1)
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Streak decay failed for {logical_day}: {e}")
            result.errors.append(f"Streak reset error: {e}")

        logger.info(
            f"[END-OF-DAY] {logical_day}: expired={result.expired_instances} "
            f"snapshots={result.snapshots_created} streaks_reset={result.streaks_reset} "
            f"errors={len(result.errors)}"
        )
        return result

    def _write_snapshot(self, user_id: str, logical_day: date) -> bool:
        counts = self.instance_repo.count_by_status(self.db, user_id, logical_day)
        totals = self.ledger.get_day_totals(user_id, logical_day)

        return self.snapshot_repo.insert_once(self.db, {
            "user_id": user_id,
            "logical_day": logical_day,
            "tasks_total": sum(counts.values()),
            "tasks_completed": counts.get(INSTANCE_STATUS_DONE, 0),
            "tasks_skipped": counts.get(INSTANCE_STATUS_SKIPPED, 0),
            "income_total": totals.income,
            "expense_total": totals.expense,
            "net_flow": totals.net,
        })
