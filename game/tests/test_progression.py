"""Tests for the XP curve and level-up application."""

import pytest

from character.models import EquippedItems, PlayerData
from character.progression import (
    MAX_LEVEL,
    apply_xp,
    is_max_level,
    level_up_stats,
    xp_for_level,
    xp_threshold,
)
from shared.exceptions import ValidationError


class TestXpCurve:
    """Tests for level thresholds."""

    def test_first_thresholds(self):
        assert xp_threshold(1) == 100
        assert xp_threshold(2) == 250
        assert xp_threshold(3) == 475
        assert xp_threshold(4) == 812

    def test_strictly_increasing(self):
        """The level-up loop terminates only if thresholds keep growing."""
        for level in range(1, 200):
            assert xp_threshold(level + 1) > xp_threshold(level)

    def test_per_level_cost(self):
        assert xp_for_level(1) == 0
        assert xp_for_level(2) == 100
        assert xp_for_level(3) == 150


class TestLevelUpStats:
    """Tests for per-level stat gains."""

    def test_level_two(self):
        stats = level_up_stats(2)
        assert (stats.max_hp, stats.attack, stats.defense) == (12, 2, 1)

    def test_level_four(self):
        stats = level_up_stats(4)
        assert (stats.max_hp, stats.attack, stats.defense) == (14, 3, 2)

    def test_always_positive(self):
        for level in range(2, 100):
            stats = level_up_stats(level)
            assert stats.max_hp > 0 and stats.attack > 0 and stats.defense > 0


class TestApplyXp:
    """Tests for granting XP."""

    def test_no_level_up(self):
        player = PlayerData()
        result = apply_xp(player, 50)
        assert result.levels_gained == 0
        assert player.level == 1
        assert player.xp == 50

    def test_two_levels_in_one_grant(self):
        """260 XP from scratch crosses 100 and 250."""
        player = PlayerData()
        result = apply_xp(player, 260)

        assert result.old_level == 1
        assert result.new_level == 3
        assert result.levels_gained == 2
        assert [lu.level for lu in result.level_ups] == [2, 3]
        assert player.level == 3
        assert player.attack == 15 + level_up_stats(2).attack + level_up_stats(3).attack
        assert player.attack == 20
        assert player.defense == 5 + 1 + 1
        assert player.max_health == 100 + 12 + 12

    def test_exact_threshold_levels_up(self):
        player = PlayerData()
        apply_xp(player, 100)
        assert player.level == 2

    def test_health_topped_up_by_gain(self):
        player = PlayerData(health=40)
        apply_xp(player, 100)
        assert player.health == 40 + 12

    def test_health_bounded_by_effective_max(self):
        player = PlayerData(health=100)
        apply_xp(player, 100)
        assert player.health == player.max_health == 112

    def test_health_top_up_counts_equipment(self):
        player = PlayerData(health=120, equipped=EquippedItems(armor="iron_armor"))
        apply_xp(player, 100)
        assert player.health == 120 + 12

    def test_level_never_decreases(self):
        player = PlayerData()
        levels = []
        for _ in range(30):
            apply_xp(player, 37)
            levels.append(player.level)
        assert levels == sorted(levels)

    def test_zero_xp(self):
        player = PlayerData()
        result = apply_xp(player, 0)
        assert result.levels_gained == 0
        assert player.xp == 0

    def test_negative_xp_rejected(self):
        player = PlayerData(xp=10)
        with pytest.raises(ValidationError):
            apply_xp(player, -5)
        assert player.xp == 10

    def test_repeatable(self):
        """Same start and amount give the same outcome."""
        first, second = PlayerData(xp=90, level=1), PlayerData(xp=90, level=1)
        assert apply_xp(first, 500) == apply_xp(second, 500)
        assert first == second


class TestLevelCap:
    """Tests for the maximum level."""

    def test_stops_at_max_level(self):
        player = PlayerData()
        result = apply_xp(player, xp_threshold(MAX_LEVEL + 10))
        assert player.level == MAX_LEVEL
        assert result.new_level == MAX_LEVEL
        assert result.levels_gained == MAX_LEVEL - 1

    def test_xp_keeps_accumulating_at_cap(self):
        player = PlayerData(level=MAX_LEVEL, xp=xp_threshold(MAX_LEVEL))
        result = apply_xp(player, 5000)
        assert result.levels_gained == 0
        assert player.level == MAX_LEVEL
        assert player.xp == xp_threshold(MAX_LEVEL) + 5000

    def test_is_max_level(self):
        assert not is_max_level(MAX_LEVEL - 1)
        assert is_max_level(MAX_LEVEL)
