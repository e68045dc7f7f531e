"""
Achievement service.
Checks long-run thresholds against aggregate stats and unlocks one-time badges.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, NamedTuple
from sqlalchemy.orm import Session

from orbit.constants import PERFECT_WEEK_LENGTH
from orbit.models import DailySnapshot
from orbit.repositories.gamification_repository import StatsRepository, AchievementRepository
from orbit.repositories.instance_repository import InstanceRepository, SnapshotRepository
from orbit.repositories.settings_repository import SettingsRepository
from orbit.schemas import AchievementResponse, AchievementProgress
from orbit.services.gamification_service import calculate_level

logger = logging.getLogger("orbit.achievements")

REQUIREMENT_STREAK = "streak"
REQUIREMENT_LEVEL = "level"
REQUIREMENT_TOTAL_COMPLETIONS = "total_completions"
REQUIREMENT_TOTAL_POINTS = "total_points"
REQUIREMENT_PERFECT_WEEK = "perfect_week"


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    category: str  # streak, milestone, consistency
    tier: str      # bronze, silver, gold, platinum
    icon: str
    requirement: str
    threshold: int
    points: int


class AchievementStats(NamedTuple):
    current_streak: int
    longest_streak: int
    total_points: int
    level: int
    total_completions: int
    perfect_weeks: int


ACHIEVEMENTS: List[Achievement] = [
    # Streaks
    Achievement("streak_3", "Getting Started", "Maintain a 3-day streak",
                "streak", "bronze", "🌱", REQUIREMENT_STREAK, 3, 25),
    Achievement("streak_7", "Week Warrior", "Maintain a 7-day streak",
                "streak", "silver", "🔥", REQUIREMENT_STREAK, 7, 50),
    Achievement("streak_30", "Monthly Master", "Maintain a 30-day streak",
                "streak", "gold", "⭐", REQUIREMENT_STREAK, 30, 150),
    Achievement("streak_100", "Century Club", "Maintain a 100-day streak",
                "streak", "platinum", "💎", REQUIREMENT_STREAK, 100, 500),

    # Levels
    Achievement("level_5", "Rising Star", "Reach level 5",
                "milestone", "bronze", "📈", REQUIREMENT_LEVEL, 5, 30),
    Achievement("level_10", "Orbit Explorer", "Reach level 10",
                "milestone", "silver", "🚀", REQUIREMENT_LEVEL, 10, 75),
    Achievement("level_25", "Orbit Veteran", "Reach level 25",
                "milestone", "gold", "🏆", REQUIREMENT_LEVEL, 25, 200),

    # Points
    Achievement("points_500", "Point Collector", "Earn 500 points",
                "milestone", "bronze", "🪙", REQUIREMENT_TOTAL_POINTS, 500, 25),
    Achievement("points_2500", "Point Hoarder", "Earn 2,500 points",
                "milestone", "silver", "💰", REQUIREMENT_TOTAL_POINTS, 2500, 100),

    # Lifetime completions
    Achievement("habits_50", "Habit Builder", "Complete 50 habits",
                "consistency", "bronze", "🎯", REQUIREMENT_TOTAL_COMPLETIONS, 50, 40),
    Achievement("habits_250", "Habit Champion", "Complete 250 habits",
                "consistency", "silver", "🏅", REQUIREMENT_TOTAL_COMPLETIONS, 250, 100),
    Achievement("habits_1000", "Habit Legend", "Complete 1,000 habits",
                "consistency", "platinum", "👑", REQUIREMENT_TOTAL_COMPLETIONS, 1000, 500),

    # Perfect weeks
    Achievement("perfect_week_1", "Perfect Week", "Complete all habits for 7 consecutive days",
                "consistency", "silver", "✨", REQUIREMENT_PERFECT_WEEK, 1, 75),
    Achievement("perfect_week_4", "Perfect Month", "Complete four perfect weeks",
                "consistency", "gold", "🌟", REQUIREMENT_PERFECT_WEEK, 4, 200),
]

ACHIEVEMENTS_BY_ID = {achievement.id: achievement for achievement in ACHIEVEMENTS}


def _stat_for(achievement: Achievement, stats: AchievementStats) -> int:
    if achievement.requirement == REQUIREMENT_STREAK:
        # Longest, so a decayed streak does not hide a past milestone
        return stats.longest_streak
    if achievement.requirement == REQUIREMENT_LEVEL:
        return stats.level
    if achievement.requirement == REQUIREMENT_TOTAL_POINTS:
        return stats.total_points
    if achievement.requirement == REQUIREMENT_TOTAL_COMPLETIONS:
        return stats.total_completions
    if achievement.requirement == REQUIREMENT_PERFECT_WEEK:
        return stats.perfect_weeks
    raise ValueError(f"Unknown achievement requirement: {achievement.requirement}")


def check_eligibility(achievement: Achievement, stats: AchievementStats) -> bool:
    return _stat_for(achievement, stats) >= achievement.threshold


def get_progress(achievement: Achievement, stats: AchievementStats) -> AchievementProgress:
    current = _stat_for(achievement, stats)
    percentage = min(100, round(current * 100 / achievement.threshold))
    return AchievementProgress(current=current, target=achievement.threshold, percentage=percentage)


def count_perfect_weeks(snapshots: List[DailySnapshot]) -> int:
    """
    Count perfect weeks in a user's snapshot history.

    A perfect day has at least one obligation and all of them done. Every
    seven consecutive perfect days count as one week; runs do not overlap.
    """
    weeks = 0
    run = 0
    previous_day = None

    for snapshot in sorted(snapshots, key=lambda s: s.logical_day):
        perfect = (snapshot.tasks_total or 0) > 0 and snapshot.tasks_completed == snapshot.tasks_total
        consecutive = previous_day is not None and snapshot.logical_day == previous_day + timedelta(days=1)

        if not perfect:
            weeks += run // PERFECT_WEEK_LENGTH
            run = 0
        elif consecutive:
            run += 1
        else:
            weeks += run // PERFECT_WEEK_LENGTH
            run = 1

        previous_day = snapshot.logical_day

    return weeks + run // PERFECT_WEEK_LENGTH


class AchievementService:
    """Service for achievement evaluation and unlocking"""

    def __init__(self, db: Session):
        self.db = db
        self.stats_repo = StatsRepository()
        self.achievement_repo = AchievementRepository()
        self.instance_repo = InstanceRepository()
        self.snapshot_repo = SnapshotRepository()
        self.settings_repo = SettingsRepository()

    def load_stats(self, user_id: str) -> AchievementStats | None:
        """Collect the aggregates every requirement is evaluated against"""
        stats = self.stats_repo.get(self.db, user_id)
        if not stats:
            return None

        return AchievementStats(
            current_streak=stats.current_streak or 0,
            longest_streak=stats.longest_streak or 0,
            total_points=stats.total_points or 0,
            level=stats.level or 1,
            total_completions=self.instance_repo.count_completed(self.db, user_id),
            perfect_weeks=count_perfect_weeks(self.snapshot_repo.get_all_for_user(self.db, user_id))
        )

    def check_unlocks(self, user_id: str, commit: bool = True) -> List[Achievement]:
        """
        Unlock every newly satisfied achievement and credit its bonus.

        Already unlocked achievements are filtered out before evaluation,
        so calling this repeatedly is a no-op for them. Bonus points go to
        the aggregate only; the point log (and its daily cap) is untouched.
        Thresholds crossed by the bonus itself unlock in the same call.

        Args:
            user_id: User to evaluate

        Returns:
            Achievements unlocked by this call
        """
        if self.stats_repo.get(self.db, user_id) is None:
            return []

        unlocked_ids = self.achievement_repo.get_unlocked_ids(self.db, user_id)
        settings = self.settings_repo.get(self.db)
        newly_unlocked = []

        # Bonus points can cross further level/points thresholds; repeat until stable
        while True:
            achievement_stats = self.load_stats(user_id)
            round_unlocked = []
            for achievement in ACHIEVEMENTS:
                if achievement.id in unlocked_ids or not check_eligibility(achievement, achievement_stats):
                    continue
                unlocked_ids.add(achievement.id)
                # A concurrent caller may have won the insert
                if self.achievement_repo.unlock(self.db, user_id, achievement.id):
                    round_unlocked.append(achievement)

            if not round_unlocked:
                break

            stats = self.stats_repo.get_for_update(self.db, user_id)
            bonus = sum(a.points for a in round_unlocked)
            stats.total_points = (stats.total_points or 0) + bonus
            stats.level = calculate_level(stats.total_points, settings.level_points_divisor)
            newly_unlocked.extend(round_unlocked)
            logger.info(
                f"User {user_id} unlocked {[a.id for a in round_unlocked]} (+{bonus} points)"
            )

        if commit:
            self.db.commit()
        else:
            self.db.flush()
        return newly_unlocked

    def list_with_progress(self, user_id: str) -> List[AchievementResponse]:
        """Full catalog with unlock state and progress for a user"""
        achievement_stats = self.load_stats(user_id) or AchievementStats(0, 0, 0, 1, 0, 0)
        unlocks = {u.achievement_id: u for u in self.achievement_repo.get_all(self.db, user_id)}

        return [
            AchievementResponse(
                id=a.id,
                name=a.name,
                description=a.description,
                category=a.category,
                tier=a.tier,
                icon=a.icon,
                points=a.points,
                unlocked=a.id in unlocks,
                unlocked_at=unlocks[a.id].unlocked_at if a.id in unlocks else None,
                progress=get_progress(a, achievement_stats)
            )
            for a in ACHIEVEMENTS
        ]
