"""
Gamification repository - Data access layer for stats, point logs and achievement unlocks.
"""
from datetime import date
from typing import List, Optional, Set
from sqlalchemy import func
from sqlalchemy.orm import Session

from orbit.database import insert_or_ignore
from orbit.models import GamificationStats, PointLog, AchievementUnlock, utcnow


class StatsRepository:
    """Repository for GamificationStats data access"""

    @staticmethod
    def get(db: Session, user_id: str) -> Optional[GamificationStats]:
        return db.query(GamificationStats).filter(GamificationStats.user_id == user_id).first()

    @staticmethod
    def get_for_update(db: Session, user_id: str) -> GamificationStats:
        """
        Get the user's stats row locked for a read-modify-write, creating it if missing.

        Row locks are honoured on PostgreSQL; SQLite serializes writers itself.
        """
        stats = db.query(GamificationStats).filter(
            GamificationStats.user_id == user_id
        ).with_for_update().first()
        if stats:
            return stats

        insert_or_ignore(db, GamificationStats, [{
            "user_id": user_id,
            "current_streak": 0,
            "longest_streak": 0,
            "total_points": 0,
            "level": 1,
        }], ["user_id"])
        return db.query(GamificationStats).filter(
            GamificationStats.user_id == user_id
        ).with_for_update().one()

    @staticmethod
    def reset_missed_streaks(db: Session, cutoff: date) -> int:
        """Zero current_streak for users whose last active day is before cutoff"""
        return db.query(GamificationStats).filter(
            GamificationStats.current_streak > 0,
            GamificationStats.last_active_date.isnot(None),
            GamificationStats.last_active_date < cutoff
        ).update(
            {
                GamificationStats.current_streak: 0,
                GamificationStats.updated_at: utcnow(),
            },
            synchronize_session=False
        )


class PointLogRepository:
    """Repository for PointLog data access"""

    @staticmethod
    def sum_for_day(db: Session, user_id: str, earned_date: date) -> int:
        """Total points already logged for the user on a logical day"""
        return db.query(func.coalesce(func.sum(PointLog.points), 0)).filter(
            PointLog.user_id == user_id,
            PointLog.earned_date == earned_date
        ).scalar() or 0

    @staticmethod
    def add(db: Session, entry: PointLog) -> PointLog:
        db.add(entry)
        db.flush()
        return entry


class AchievementRepository:
    """Repository for AchievementUnlock data access"""

    @staticmethod
    def get_unlocked_ids(db: Session, user_id: str) -> Set[str]:
        rows = db.query(AchievementUnlock.achievement_id).filter(
            AchievementUnlock.user_id == user_id
        ).all()
        return {row[0] for row in rows}

    @staticmethod
    def get_all(db: Session, user_id: str) -> List[AchievementUnlock]:
        return db.query(AchievementUnlock).filter(
            AchievementUnlock.user_id == user_id
        ).order_by(AchievementUnlock.unlocked_at).all()

    @staticmethod
    def unlock(db: Session, user_id: str, achievement_id: str) -> bool:
        """
        Record an unlock once.

        Returns:
            True if this call created the row
        """
        return insert_or_ignore(db, AchievementUnlock, [{
            "user_id": user_id,
            "achievement_id": achievement_id,
        }], ["user_id", "achievement_id"]) > 0
