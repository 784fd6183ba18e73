"""Level curve, rank tiers and multi-level XP application."""

import pytest

from pathwise.gamification.leveling import (
    RANKS,
    LevelState,
    apply_xp,
    compute_rank,
    rank_catalogue,
    required_xp_for_level,
)


class TestLevelCurve:
    """Each level costs 50% more XP than the one before."""

    def test_level_1_costs_100(self):
        assert required_xp_for_level(1) == 100

    def test_curve_is_floored(self):
        assert required_xp_for_level(2) == 150
        assert required_xp_for_level(3) == 225
        assert required_xp_for_level(4) == 337  # 337.5
        assert required_xp_for_level(5) == 506  # 506.25

    def test_curve_strictly_increases(self):
        costs = [required_xp_for_level(lv) for lv in range(1, 60)]
        assert costs == sorted(costs)
        assert len(set(costs)) == len(costs)

    def test_level_below_one_rejected(self):
        with pytest.raises(ValueError):
            required_xp_for_level(0)


class TestApplyXP:

    def test_exact_required_xp_levels_up_once(self):
        result = apply_xp(LevelState(), 100)
        assert result.leveled_up is True
        assert result.levels_gained == 1
        assert result.state.level == 2
        assert result.state.current_xp == 0
        assert result.state.required_xp == 150

    def test_two_levels_in_one_award(self):
        """100 + 150 XP crosses two levels in a single call."""
        result = apply_xp(LevelState(), 250)
        assert result.levels_gained == 2
        assert result.state.level == 3
        assert result.state.current_xp == 0
        assert result.state.required_xp == 225

    def test_one_short_of_level_up(self):
        result = apply_xp(LevelState(), 99)
        assert result.leveled_up is False
        assert result.state.level == 1
        assert result.state.current_xp == 99

    def test_xp_carries_over(self):
        result = apply_xp(LevelState(), 120)
        assert result.state.level == 2
        assert result.state.current_xp == 20

    def test_zero_delta_is_noop(self):
        state = LevelState(level=3, current_xp=40, required_xp=225, total_xp=290, rank="Novice")
        result = apply_xp(state, 0)
        assert result.state == state
        assert result.leveled_up is False

    def test_negative_delta_rejected(self):
        with pytest.raises(ValueError):
            apply_xp(LevelState(), -1)

    @pytest.mark.parametrize("delta", [0, 1, 49, 100, 149, 250, 1000, 12_345, 250_000])
    def test_invariants_hold(self, delta):
        before = LevelState(level=2, current_xp=75, required_xp=150, total_xp=175, rank="Novice")
        after = apply_xp(before, delta).state
        assert after.current_xp < after.required_xp
        assert after.total_xp == before.total_xp + delta
        assert after.required_xp == required_xp_for_level(after.level)
        assert after.rank == compute_rank(after.level)

    def test_large_award_reaches_higher_rank(self):
        result = apply_xp(LevelState(), 250_000)
        assert result.state.level > 5
        assert result.state.rank != "Novice"


class TestRanks:

    @pytest.mark.parametrize(("level", "rank"), [
        (1, "Novice"),
        (4, "Novice"),
        (5, "Apprentice"),
        (10, "Student"),
        (15, "Researcher"),
        (20, "Expert"),
        (30, "Master"),
        (40, "Grand Master"),
        (49, "Grand Master"),
        (50, "Visionary"),
        (99, "Visionary"),
    ])
    def test_rank_boundaries(self, level, rank):
        assert compute_rank(level) == rank

    def test_eight_tiers(self):
        assert len(RANKS) == 8
        assert len(rank_catalogue()) == 8

    def test_rank_is_monotonic_in_level(self):
        positions = [RANKS.index(compute_rank(lv)) for lv in range(1, 80)]
        assert positions == sorted(positions)

    def test_catalogue_ascending(self):
        catalogue = rank_catalogue()
        assert catalogue[0] == {"rank": "Novice", "min_level": 1}
        assert catalogue[-1] == {"rank": "Visionary", "min_level": 50}
        assert [t["min_level"] for t in catalogue] == sorted(t["min_level"] for t in catalogue)
