"""
Tests for GamificationService.

Tests cover:
1. Level and multiplier formulas
2. Daily cap
3. Streak transitions
4. Completion awards and streak decay
"""
import pytest
from datetime import date, timedelta

from orbit.models import GamificationStats, PointLog
from orbit.services.gamification_service import (
    GamificationService,
    apply_daily_cap,
    calculate_completion_points,
    calculate_level,
    calculate_streak_multiplier,
    compute_streak_transition,
    round_half_up,
)


class TestFormulas:
    """Pure point and level calculations"""

    @pytest.mark.parametrize("points,level", [
        (0, 1), (49, 1), (50, 2), (199, 2), (200, 3), (449, 3), (450, 4), (5000, 11),
    ])
    def test_calculate_level(self, points, level):
        assert calculate_level(points) == level

    def test_level_never_below_one(self):
        assert calculate_level(-10) == 1

    def test_multiplier_saturates(self):
        assert calculate_streak_multiplier(0, 0.1, 2.0) == 1.0
        assert calculate_streak_multiplier(5, 0.1, 2.0) == 1.5
        assert calculate_streak_multiplier(100, 0.1, 2.0) == 2.0

    def test_round_half_up(self):
        assert round_half_up(12.5) == 13
        assert round_half_up(12.49) == 12
        assert round_half_up(2.5) == 3

    @pytest.mark.parametrize("streak,points", [(0, 10), (1, 11), (3, 13), (7, 17), (10, 20), (100, 20)])
    def test_completion_points(self, default_settings, streak, points):
        assert calculate_completion_points(streak, default_settings) == points

    def test_streak_10_and_100_award_the_same(self, default_settings):
        assert calculate_completion_points(10, default_settings) == calculate_completion_points(100, default_settings)


class TestDailyCap:
    """Tests for apply_daily_cap"""

    def test_under_cap(self):
        assert apply_daily_cap(20, 50, 100) == 20

    def test_partial_award_near_cap(self):
        assert apply_daily_cap(20, 95, 100) == 5

    def test_nothing_at_cap(self):
        assert apply_daily_cap(20, 100, 100) == 0

    def test_nothing_over_cap(self):
        assert apply_daily_cap(20, 130, 100) == 0


class TestStreakTransition:
    """Tests for compute_streak_transition"""

    DAY = date(2024, 6, 12)

    def test_first_completion(self):
        t = compute_streak_transition(0, 0, None, self.DAY)
        assert (t.new_streak, t.longest_streak, t.last_active_date, t.is_new_record) == (1, 1, self.DAY, True)

    def test_consecutive_day_increments(self):
        t = compute_streak_transition(4, 10, self.DAY - timedelta(days=1), self.DAY)
        assert t.new_streak == 5
        assert t.longest_streak == 10
        assert t.is_new_record is False

    def test_same_day_unchanged(self):
        t = compute_streak_transition(4, 4, self.DAY, self.DAY)
        assert t.new_streak == 4
        assert t.last_active_date == self.DAY
        assert t.is_new_record is False

    def test_gap_resets_to_one(self):
        t = compute_streak_transition(9, 9, self.DAY - timedelta(days=2), self.DAY)
        assert t.new_streak == 1
        assert t.longest_streak == 9

    def test_three_day_gap_resets_not_continues(self):
        t = compute_streak_transition(5, 5, self.DAY - timedelta(days=3), self.DAY)
        assert t.new_streak == 1

    def test_new_record(self):
        t = compute_streak_transition(7, 7, self.DAY - timedelta(days=1), self.DAY)
        assert t.longest_streak == 8
        assert t.is_new_record is True


class TestRecordCompletion:
    """Tests for GamificationService.record_completion"""

    DAY = date(2024, 6, 12)

    def test_first_completion_creates_stats(self, db_session, default_settings):
        award = GamificationService(db_session).record_completion("user-1", self.DAY, task_id=1)

        assert award.points == 10
        assert award.current_streak == 1
        assert award.total_points == 10
        assert award.level == 1
        assert award.is_new_record is True
        log = db_session.query(PointLog).one()
        assert (log.points, log.earned_date, log.task_id) == (10, self.DAY, 1)

    def test_points_use_streak_before_completion(self, db_session, default_settings):
        service = GamificationService(db_session)
        service.record_completion("user-1", self.DAY - timedelta(days=1))

        award = service.record_completion("user-1", self.DAY)

        # Streak was 1 when awarded; it becomes 2 afterwards
        assert award.points == 11
        assert award.current_streak == 2

    def test_second_completion_same_day_keeps_streak(self, db_session, default_settings):
        service = GamificationService(db_session)
        service.record_completion("user-1", self.DAY)
        award = service.record_completion("user-1", self.DAY)

        assert award.current_streak == 1
        assert award.total_points == 21

    def test_daily_cap_partial_then_zero(self, db_session, default_settings):
        db_session.add(PointLog(user_id="user-1", points=95, earned_date=self.DAY))
        db_session.commit()
        service = GamificationService(db_session)

        partial = service.record_completion("user-1", self.DAY)
        assert partial.points == 5
        assert partial.capped is True

        nothing = service.record_completion("user-1", self.DAY)
        assert nothing.points == 0
        assert db_session.query(PointLog).count() == 2  # No zero-point rows

    def test_capped_completion_still_advances_streak(self, db_session, default_settings):
        db_session.add(PointLog(user_id="user-1", points=100, earned_date=self.DAY))
        db_session.add(GamificationStats(
            user_id="user-1", current_streak=3, longest_streak=3,
            total_points=300, level=3, last_active_date=self.DAY - timedelta(days=1)
        ))
        db_session.commit()

        award = GamificationService(db_session).record_completion("user-1", self.DAY)

        assert award.points == 0
        assert award.current_streak == 4
        assert award.total_points == 300

    def test_daily_sum_never_exceeds_cap(self, db_session, default_settings):
        service = GamificationService(db_session)
        for _ in range(15):
            service.record_completion("user-1", self.DAY)

        stats = service.get_stats("user-1", self.DAY)
        assert stats.today_points == 100
        assert stats.can_earn_more is False

    def test_level_follows_total_points(self, db_session, default_settings):
        db_session.add(GamificationStats(user_id="user-1", total_points=45, level=1))
        db_session.commit()

        award = GamificationService(db_session).record_completion("user-1", self.DAY)

        assert award.total_points == 55
        assert award.level == 2


class TestStreakDecay:
    """Tests for reset_streak_if_missed"""

    def test_reset_only_users_who_missed_yesterday(self, db_session, default_settings):
        today = date(2024, 6, 12)
        db_session.add_all([
            GamificationStats(user_id="today", current_streak=3, longest_streak=3,
                              last_active_date=today),
            GamificationStats(user_id="yesterday", current_streak=2, longest_streak=2,
                              last_active_date=today - timedelta(days=1)),
            GamificationStats(user_id="lapsed", current_streak=6, longest_streak=6,
                              last_active_date=today - timedelta(days=2)),
        ])
        db_session.commit()

        reset = GamificationService(db_session).reset_streak_if_missed(today)

        assert reset == 1
        db_session.expire_all()
        assert db_session.get(GamificationStats, "today").current_streak == 3
        assert db_session.get(GamificationStats, "yesterday").current_streak == 2
        lapsed = db_session.get(GamificationStats, "lapsed")
        assert lapsed.current_streak == 0
        assert lapsed.longest_streak == 6

    def test_reads_do_not_decay(self, db_session, default_settings):
        today = date(2024, 6, 12)
        db_session.add(GamificationStats(user_id="user-1", current_streak=6, longest_streak=6,
                                         last_active_date=today - timedelta(days=5)))
        db_session.commit()

        stats = GamificationService(db_session).get_stats("user-1", today)

        assert stats.current_streak == 6

    def test_get_stats_for_unknown_user(self, db_session, default_settings):
        stats = GamificationService(db_session).get_stats("nobody", date(2024, 6, 12))
        assert stats.total_points == 0
        assert stats.level == 1
        assert stats.can_earn_more is True
