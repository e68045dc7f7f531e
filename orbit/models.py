from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Float, Date, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from orbit.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns store UTC)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserProfile(Base):
    __tablename__ = "profiles"

    user_id = Column(String, primary_key=True)
    timezone = Column(String, default="UTC")  # IANA identifier, validated lazily
    created_at = Column(DateTime, default=utcnow)


class RecurringTask(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)  # Weekly anchor
    deleted_at = Column(DateTime, nullable=True)   # Soft deletion

    rule = relationship("RecurrenceRule", back_populates="task", uselist=False)


class RecurrenceRule(Base):
    __tablename__ = "repeat_rules"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, unique=True)
    user_id = Column(String, nullable=False, index=True)
    rule_type = Column(String, default="daily")  # daily, weekly, weekdays
    rule_config = Column(String, nullable=True)  # JSON like '{"anchor_weekday": 2}' or '{"weekdays": [0,2,4]}'
    created_at = Column(DateTime, default=utcnow)

    task = relationship("RecurringTask", back_populates="rule")


class ObligationInstance(Base):
    __tablename__ = "task_instances"
    __table_args__ = (
        UniqueConstraint("task_id", "logical_day", name="uq_task_instances_task_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False)
    logical_day = Column(Date, nullable=False, index=True)
    status = Column(String, default="pending")  # pending, done, skipped
    confirmed_at = Column(DateTime, nullable=True)  # Set iff done
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class DailySnapshot(Base):
    __tablename__ = "daily_snapshots"
    __table_args__ = (
        UniqueConstraint("user_id", "logical_day", name="uq_daily_snapshots_user_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    logical_day = Column(Date, nullable=False, index=True)

    # Obligation statistics
    tasks_total = Column(Integer, default=0)
    tasks_completed = Column(Integer, default=0)
    tasks_skipped = Column(Integer, default=0)

    # Ledger totals
    income_total = Column(Float, default=0.0)
    expense_total = Column(Float, default=0.0)
    net_flow = Column(Float, default=0.0)

    created_at = Column(DateTime, default=utcnow)


class GamificationStats(Base):
    __tablename__ = "gamification_stats"

    user_id = Column(String, primary_key=True)
    current_streak = Column(Integer, default=0)
    longest_streak = Column(Integer, default=0)
    total_points = Column(Integer, default=0)
    level = Column(Integer, default=1)
    last_active_date = Column(Date, nullable=True)  # Last day credited with a completion
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class PointLog(Base):
    __tablename__ = "point_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    task_id = Column(Integer, nullable=True)
    points = Column(Integer, nullable=False)
    reason = Column(String, default="habit_completion")
    earned_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)


class AchievementUnlock(Base):
    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_achievement"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    achievement_id = Column(String, nullable=False)
    unlocked_at = Column(DateTime, default=utcnow)


class LedgerTransaction(Base):
    """Owned by the ledger collaborator; read-only for the core"""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    logical_day = Column(Date, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    type = Column(String, nullable=False)  # income, expense


class Settings(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)

    # Points
    habit_points_base = Column(Integer, default=10)
    streak_bonus_rate = Column(Float, default=0.1)            # +10% per streak day
    streak_bonus_max_multiplier = Column(Float, default=2.0)  # Saturates at streak 10
    daily_points_cap = Column(Integer, default=100)
    level_points_divisor = Column(Integer, default=50)        # level = floor(sqrt(points / divisor)) + 1

    # Materialization
    max_materialize_range_days = Column(Integer, default=30)
    default_timezone = Column(String, default="UTC")

    # Scheduler
    auto_materialize_enabled = Column(Boolean, default=True)
    materialize_time = Column(String, default="00:10")  # HH:MM, UTC
    materialize_lookahead_days = Column(Integer, default=7)
    last_materialize_date = Column(Date, nullable=True)
    auto_end_of_day_enabled = Column(Boolean, default=True)
    end_of_day_time = Column(String, default="00:05")  # HH:MM, UTC
    last_end_of_day_date = Column(Date, nullable=True)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
