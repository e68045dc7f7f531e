"""
Streak and points service.
Derives the consecutive-day streak and awards bounded, streak-scaled
points from obligation completions.
"""
import logging
import math
from datetime import date, timedelta
from typing import NamedTuple, Optional
from sqlalchemy.orm import Session

from orbit.constants import POINT_REASON_HABIT_COMPLETION
from orbit.models import Settings, PointLog
from orbit.repositories.gamification_repository import StatsRepository, PointLogRepository
from orbit.repositories.settings_repository import SettingsRepository
from orbit.schemas import CompletionAward, GamificationStatsResponse

logger = logging.getLogger("orbit.gamification")


class StreakTransition(NamedTuple):
    new_streak: int
    longest_streak: int
    last_active_date: Optional[date]
    is_new_record: bool


def calculate_level(total_points: int, divisor: int = 50) -> int:
    """
    Level from lifetime points: floor(sqrt(points / divisor)) + 1.

    0-49 -> 1, 50-199 -> 2, 200-449 -> 3, ...
    """
    return math.isqrt(max(total_points, 0) // divisor) + 1


def calculate_streak_multiplier(streak: int, bonus_rate: float, max_multiplier: float) -> float:
    """1 + streak * bonus_rate, saturating at max_multiplier"""
    return min(1 + max(streak, 0) * bonus_rate, max_multiplier)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_completion_points(streak: int, settings: Settings) -> int:
    """Uncapped points for one completion at the given streak"""
    multiplier = calculate_streak_multiplier(
        streak, settings.streak_bonus_rate, settings.streak_bonus_max_multiplier
    )
    # 10 * 1.3 is 13.000000000000002 in binary floating point
    return round_half_up(round(settings.habit_points_base * multiplier, 6))


def apply_daily_cap(points: int, earned_today: int, daily_cap: int) -> int:
    """Clamp an award so the day's total never exceeds daily_cap"""
    remaining = max(daily_cap - earned_today, 0)
    return max(min(points, remaining), 0)


def compute_streak_transition(
    current_streak: int,
    longest_streak: int,
    last_active_date: Optional[date],
    logical_day: date
) -> StreakTransition:
    """
    Streak after a completion on logical_day.

    - no prior activity: 1
    - last active yesterday: current + 1
    - last active today: unchanged, already credited
    - anything else: reset to 1
    """
    if last_active_date == logical_day:
        new_streak = current_streak
        new_last_active = last_active_date
    elif last_active_date is not None and last_active_date == logical_day - timedelta(days=1):
        new_streak = current_streak + 1
        new_last_active = logical_day
    else:
        new_streak = 1
        new_last_active = logical_day

    is_new_record = new_streak > longest_streak
    return StreakTransition(
        new_streak=new_streak,
        longest_streak=max(longest_streak, new_streak),
        last_active_date=new_last_active,
        is_new_record=is_new_record
    )


class GamificationService:
    """Service for streaks, points and levels"""

    def __init__(self, db: Session):
        self.db = db
        self.stats_repo = StatsRepository()
        self.point_log_repo = PointLogRepository()
        self.settings_repo = SettingsRepository()

    def record_completion(
        self,
        user_id: str,
        logical_day: date,
        task_id: Optional[int] = None,
        commit: bool = True
    ) -> CompletionAward:
        """
        Award points and advance the streak for a completion.

        Points use the stored streak before this completion. The daily
        cap is checked against the append-only point log for the day, not
        the aggregate row.

        Args:
            user_id: User who completed the obligation
            logical_day: Day the completion is attributed to
            task_id: Completed task, recorded on the point log
            commit: Commit the unit of work (False when the caller owns it)

        Returns:
            CompletionAward with the points logged and the new aggregate
        """
        settings = self.settings_repo.get(self.db)
        stats = self.stats_repo.get_for_update(self.db, user_id)

        earned_today = self.point_log_repo.sum_for_day(self.db, user_id, logical_day)
        raw_points = calculate_completion_points(stats.current_streak or 0, settings)
        awarded = apply_daily_cap(raw_points, earned_today, settings.daily_points_cap)

        if awarded > 0:
            self.point_log_repo.add(self.db, PointLog(
                user_id=user_id,
                task_id=task_id,
                points=awarded,
                reason=POINT_REASON_HABIT_COMPLETION,
                earned_date=logical_day
            ))

        transition = compute_streak_transition(
            stats.current_streak or 0,
            stats.longest_streak or 0,
            stats.last_active_date,
            logical_day
        )

        stats.total_points = (stats.total_points or 0) + awarded
        stats.level = calculate_level(stats.total_points, settings.level_points_divisor)
        stats.current_streak = transition.new_streak
        stats.longest_streak = transition.longest_streak
        stats.last_active_date = transition.last_active_date

        if commit:
            self.db.commit()
        else:
            self.db.flush()

        if awarded < raw_points:
            logger.info(
                f"Daily cap reached for {user_id} on {logical_day}: "
                f"awarded {awarded} of {raw_points} (earned today: {earned_today})"
            )

        return CompletionAward(
            points=awarded,
            streak_bonus=raw_points - settings.habit_points_base,
            capped=awarded < raw_points,
            total_points=stats.total_points,
            level=stats.level,
            current_streak=stats.current_streak,
            longest_streak=stats.longest_streak,
            is_new_record=transition.is_new_record
        )

    def reset_streak_if_missed(self, logical_day: date, commit: bool = True) -> int:
        """
        Decay streaks of users with no activity yesterday.

        Every user whose last active day is strictly before
        logical_day - 1 gets current_streak = 0. This is the only place
        streaks decay; reads never adjust them.

        Args:
            logical_day: The day being evaluated as "today"

        Returns:
            Number of users whose streak was reset
        """
        cutoff = logical_day - timedelta(days=1)
        reset = self.stats_repo.reset_missed_streaks(self.db, cutoff)
        if commit:
            self.db.commit()
        logger.info(f"Streak decay for {logical_day}: {reset} users reset")
        return reset

    def get_stats(self, user_id: str, today: date) -> GamificationStatsResponse:
        """Get a user's aggregate stats plus today's point budget"""
        settings = self.settings_repo.get(self.db)
        stats = self.stats_repo.get(self.db, user_id)
        today_points = self.point_log_repo.sum_for_day(self.db, user_id, today)

        if not stats:
            return GamificationStatsResponse(
                user_id=user_id,
                today_points=today_points,
                can_earn_more=today_points < settings.daily_points_cap
            )

        return GamificationStatsResponse(
            user_id=user_id,
            current_streak=stats.current_streak or 0,
            longest_streak=stats.longest_streak or 0,
            total_points=stats.total_points or 0,
            level=stats.level or 1,
            last_active_date=stats.last_active_date,
            today_points=today_points,
            can_earn_more=today_points < settings.daily_points_cap
        )
