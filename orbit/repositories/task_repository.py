"""
Task repository - Data access layer for recurring tasks, rules and profiles.
"""
from typing import List, Optional
from sqlalchemy.orm import Session, joinedload

from orbit.models import RecurringTask, RecurrenceRule, UserProfile


class TaskRepository:
    """Repository for RecurringTask and RecurrenceRule data access"""

    @staticmethod
    def get_active_rules(db: Session, user_id: str) -> List[RecurrenceRule]:
        """Get all rules whose task is not soft-deleted, with the task loaded"""
        return db.query(RecurrenceRule).join(RecurrenceRule.task).options(
            joinedload(RecurrenceRule.task)
        ).filter(
            RecurrenceRule.user_id == user_id,
            RecurringTask.deleted_at.is_(None)
        ).order_by(RecurrenceRule.task_id).all()

    @staticmethod
    def get_users_with_active_rules(db: Session) -> List[str]:
        """Get distinct user IDs that own at least one active rule"""
        rows = db.query(RecurrenceRule.user_id).join(RecurrenceRule.task).filter(
            RecurringTask.deleted_at.is_(None)
        ).distinct().order_by(RecurrenceRule.user_id).all()
        return [row[0] for row in rows]


class ProfileRepository:
    """Repository for UserProfile data access"""

    @staticmethod
    def get_timezone(db: Session, user_id: str) -> Optional[str]:
        """Get a user's stored timezone identifier (None if no profile)"""
        row = db.query(UserProfile.timezone).filter(UserProfile.user_id == user_id).first()
        return row[0] if row else None
