"""User statistics transition and level banding."""

from stockpick.scoring.levels import level_for_score
from stockpick.scoring.stats import UserStats, apply_outcome, success_score

from fakes import make_user


class TestSuccessScore:
    def test_base_score(self):
        assert success_score(1) == 10
        assert success_score(2) == 10

    def test_three_streak_bonus(self):
        assert success_score(3) == 30
        assert success_score(4) == 30

    def test_five_streak_bonus_stacks(self):
        assert success_score(5) == 80
        assert success_score(12) == 80


class TestApplyOutcome:
    """Test the per-settlement stats update."""

    def test_success_reaching_three_streak(self):
        stats = UserStats(current_streak=2, max_streak=2, total_score=50, current_score=50)
        result = apply_outcome(stats, success=True)
        assert result.current_streak == 3
        assert result.max_streak == 3
        assert result.total_score == 80
        assert result.current_score == 80
        assert result.success_predictions == 1
        assert result.total_predictions == 1

    def test_failure_resets_streak_and_floors_spendable_score(self):
        stats = UserStats(current_streak=4, max_streak=6, total_score=200, current_score=3)
        result = apply_outcome(stats, success=False)
        assert result.current_streak == 0
        assert result.max_streak == 6
        assert result.current_score == 0
        assert result.total_score == 200
        assert result.failed_predictions == 1
        assert result.total_predictions == 1

    def test_failure_deducts_five(self):
        result = apply_outcome(UserStats(current_score=40), success=False)
        assert result.current_score == 35

    def test_totals_stay_consistent(self):
        stats = UserStats()
        for success in (True, True, False, True, False, False, True):
            stats = apply_outcome(stats, success)
        assert stats.total_predictions == stats.success_predictions + stats.failed_predictions == 7

    def test_level_up_at_1000(self):
        result = apply_outcome(UserStats(total_score=990, current_score=990), success=True)
        assert result.total_score == 1000
        assert result.level == 2

    def test_level_never_decreases(self):
        result = apply_outcome(UserStats(level=5, total_score=10), success=True)
        assert result.level == 5

    def test_input_is_not_mutated(self):
        stats = UserStats(current_streak=1)
        apply_outcome(stats, success=True)
        assert stats.current_streak == 1


class TestUserStatsMapping:
    def test_write_to_user(self):
        user = make_user(1, current_streak=2, total_score=50, current_score=50)
        apply_outcome(UserStats.from_user(user), success=True).write_to(user)
        assert user.current_streak == 3
        assert user.total_score == 80
        assert user.total_predictions == 1


class TestLevelForScore:
    def test_bands(self):
        assert level_for_score(0) == 1
        assert level_for_score(999) == 1
        assert level_for_score(1000) == 2
        assert level_for_score(25_400) == 26

    def test_negative_is_level_1(self):
        assert level_for_score(-50) == 1
