"""
Instance repository - Data access layer for ObligationInstance and DailySnapshot.
"""
from datetime import date
from typing import List, Optional, Set, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session

from orbit.constants import (
    BULK_INSERT_CHUNK_SIZE, INSTANCE_STATUS_PENDING, INSTANCE_STATUS_DONE, INSTANCE_STATUS_SKIPPED
)
from orbit.database import insert_or_ignore
from orbit.models import ObligationInstance, DailySnapshot, utcnow


class InstanceRepository:
    """Repository for ObligationInstance data access"""

    @staticmethod
    def get(db: Session, user_id: str, task_id: int, logical_day: date) -> Optional[ObligationInstance]:
        return db.query(ObligationInstance).filter(
            ObligationInstance.user_id == user_id,
            ObligationInstance.task_id == task_id,
            ObligationInstance.logical_day == logical_day
        ).first()

    @staticmethod
    def get_existing_keys(
        db: Session,
        task_ids: List[int],
        start_date: date,
        end_date: date
    ) -> Set[Tuple[int, date]]:
        """Get (task_id, logical_day) keys already materialized in range, in one read"""
        if not task_ids:
            return set()
        rows = db.query(ObligationInstance.task_id, ObligationInstance.logical_day).filter(
            ObligationInstance.task_id.in_(task_ids),
            ObligationInstance.logical_day >= start_date,
            ObligationInstance.logical_day <= end_date
        ).all()
        return {(task_id, logical_day) for task_id, logical_day in rows}

    @staticmethod
    def bulk_insert_pending(db: Session, rows: List[dict]) -> int:
        """
        Insert pending instances, ignoring keys that already exist.

        Returns:
            Number of rows actually inserted
        """
        created = 0
        for offset in range(0, len(rows), BULK_INSERT_CHUNK_SIZE):
            chunk = [
                {**row, "status": INSTANCE_STATUS_PENDING}
                for row in rows[offset:offset + BULK_INSERT_CHUNK_SIZE]
            ]
            created += insert_or_ignore(
                db, ObligationInstance, chunk, ["task_id", "logical_day"]
            )
        return created

    @staticmethod
    def expire_pending(db: Session, logical_day: date) -> int:
        """Move every pending instance of the day to skipped; terminal rows are untouched"""
        return db.query(ObligationInstance).filter(
            ObligationInstance.logical_day == logical_day,
            ObligationInstance.status == INSTANCE_STATUS_PENDING
        ).update(
            {
                ObligationInstance.status: INSTANCE_STATUS_SKIPPED,
                ObligationInstance.updated_at: utcnow(),
            },
            synchronize_session=False
        )

    @staticmethod
    def get_active_users(db: Session, logical_day: date) -> List[str]:
        """Get distinct users that had any instance on the day"""
        rows = db.query(ObligationInstance.user_id).filter(
            ObligationInstance.logical_day == logical_day
        ).distinct().order_by(ObligationInstance.user_id).all()
        return [row[0] for row in rows]

    @staticmethod
    def count_by_status(db: Session, user_id: str, logical_day: date) -> dict:
        """Get {status: count} for a user's instances on a day"""
        rows = db.query(ObligationInstance.status, func.count(ObligationInstance.id)).filter(
            ObligationInstance.user_id == user_id,
            ObligationInstance.logical_day == logical_day
        ).group_by(ObligationInstance.status).all()
        return {status: count for status, count in rows}

    @staticmethod
    def count_completed(db: Session, user_id: str) -> int:
        """Lifetime count of done instances"""
        return db.query(func.count(ObligationInstance.id)).filter(
            ObligationInstance.user_id == user_id,
            ObligationInstance.status == INSTANCE_STATUS_DONE
        ).scalar() or 0


class SnapshotRepository:
    """Repository for DailySnapshot data access"""

    @staticmethod
    def insert_once(db: Session, row: dict) -> bool:
        """
        Write a snapshot unless one already exists for (user_id, logical_day).

        Returns:
            True if a new snapshot row was written
        """
        return insert_or_ignore(db, DailySnapshot, [row], ["user_id", "logical_day"]) > 0

    @staticmethod
    def get_all_for_user(db: Session, user_id: str) -> List[DailySnapshot]:
        return db.query(DailySnapshot).filter(
            DailySnapshot.user_id == user_id
        ).order_by(DailySnapshot.logical_day).all()
