"""
Tests for AchievementService.
"""
from datetime import date, timedelta

from orbit.models import AchievementUnlock, DailySnapshot, GamificationStats, PointLog
from orbit.services.achievement_service import (
    ACHIEVEMENTS_BY_ID,
    AchievementService,
    AchievementStats,
    check_eligibility,
    count_perfect_weeks,
    get_progress,
)


def snapshot(day, total, completed):
    return DailySnapshot(user_id="user-1", logical_day=day, tasks_total=total, tasks_completed=completed)


def stats(**overrides):
    values = dict(current_streak=0, longest_streak=0, total_points=0, level=1,
                  total_completions=0, perfect_weeks=0)
    values.update(overrides)
    return AchievementStats(**values)


class TestEligibility:
    """Pure threshold checks"""

    def test_streak_uses_longest(self):
        assert check_eligibility(ACHIEVEMENTS_BY_ID["streak_7"], stats(current_streak=0, longest_streak=7))

    def test_below_threshold(self):
        assert not check_eligibility(ACHIEVEMENTS_BY_ID["streak_7"], stats(longest_streak=6))

    def test_progress_percentage_capped(self):
        progress = get_progress(ACHIEVEMENTS_BY_ID["habits_50"], stats(total_completions=75))
        assert (progress.current, progress.target, progress.percentage) == (75, 50, 100)

    def test_progress_partial(self):
        progress = get_progress(ACHIEVEMENTS_BY_ID["level_10"], stats(level=4))
        assert progress.percentage == 40


class TestPerfectWeeks:
    """Tests for count_perfect_weeks"""

    START = date(2024, 6, 3)

    def days(self, n, total=2, completed=2, offset=0):
        return [snapshot(self.START + timedelta(days=offset + i), total, completed) for i in range(n)]

    def test_seven_perfect_days(self):
        assert count_perfect_weeks(self.days(7)) == 1

    def test_six_is_not_a_week(self):
        assert count_perfect_weeks(self.days(6)) == 0

    def test_fourteen_days_two_weeks(self):
        assert count_perfect_weeks(self.days(14)) == 2

    def test_imperfect_day_breaks_run(self):
        history = self.days(4) + [snapshot(self.START + timedelta(days=4), 2, 1)] + self.days(4, offset=5)
        assert count_perfect_weeks(history) == 0

    def test_gap_breaks_run(self):
        assert count_perfect_weeks(self.days(4) + self.days(4, offset=5)) == 0

    def test_empty_days_are_not_perfect(self):
        assert count_perfect_weeks(self.days(7, total=0, completed=0)) == 0


class TestCheckUnlocks:
    """Tests for AchievementService.check_unlocks"""

    def add_stats(self, db, **values):
        db.add(GamificationStats(user_id="user-1", **values))
        db.commit()

    def test_no_stats_no_unlocks(self, db_session, default_settings):
        assert AchievementService(db_session).check_unlocks("user-1") == []

    def test_unlocks_and_credits_bonus(self, db_session, default_settings):
        self.add_stats(db_session, current_streak=3, longest_streak=3, total_points=40, level=1)

        unlocked = AchievementService(db_session).check_unlocks("user-1")

        assert [a.id for a in unlocked] == ["streak_3"]
        row = db_session.get(GamificationStats, "user-1")
        assert row.total_points == 65
        assert row.level == 2

    def test_bonus_does_not_touch_point_log(self, db_session, default_settings):
        self.add_stats(db_session, current_streak=7, longest_streak=7, total_points=0, level=1)

        AchievementService(db_session).check_unlocks("user-1")

        assert db_session.query(PointLog).count() == 0

    def test_second_check_is_a_no_op(self, db_session, default_settings):
        self.add_stats(db_session, current_streak=3, longest_streak=3, total_points=0, level=1)
        service = AchievementService(db_session)
        service.check_unlocks("user-1")

        assert service.check_unlocks("user-1") == []
        assert db_session.query(AchievementUnlock).count() == 1
        assert db_session.get(GamificationStats, "user-1").total_points == 25

    def test_bonus_crossing_a_threshold_unlocks_in_same_call(self, db_session, default_settings):
        # 560 + 250 streak/points bonus = 810 -> level 5, which then unlocks level_5 (+30)
        self.add_stats(db_session, current_streak=30, longest_streak=30, total_points=560, level=4)

        unlocked = AchievementService(db_session).check_unlocks("user-1")

        assert "level_5" in [a.id for a in unlocked]
        row = db_session.get(GamificationStats, "user-1")
        assert row.total_points == 840
        assert row.level == 5

    def test_list_with_progress(self, db_session, default_settings):
        self.add_stats(db_session, current_streak=3, longest_streak=3, total_points=0, level=1)
        service = AchievementService(db_session)
        service.check_unlocks("user-1")

        catalog = {a.id: a for a in service.list_with_progress("user-1")}

        assert catalog["streak_3"].unlocked is True
        assert catalog["streak_3"].unlocked_at is not None
        assert catalog["streak_7"].unlocked is False
        assert catalog["streak_7"].progress.current == 3

    def test_list_for_unknown_user(self, db_session, default_settings):
        catalog = AchievementService(db_session).list_with_progress("nobody")
        assert len(catalog) == len(ACHIEVEMENTS_BY_ID)
        assert not any(a.unlocked for a in catalog)
