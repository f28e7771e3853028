"""Tests for battle formulas."""

import random

import pytest

from combat.models import ActiveBuff, BuffType, EnemyActionType, EnemyAI
from combat.rules import (
    MAGIC_MULTIPLIER,
    attempt_flee,
    buff_bonus,
    calculate_damage,
    crit_chance,
    decide_enemy_action,
    flee_chance,
    magic_damage,
    tick_buffs,
)


class TestDamage:
    """Tests for physical damage."""

    def test_never_below_one(self):
        """Overwhelming defense still lets one point through."""
        rng = random.Random(0)
        for _ in range(2000):
            result = calculate_damage(attack=rng.randrange(0, 10), defense=rng.randrange(0, 500), rng=rng)
            assert result.damage >= 1

    def test_never_below_one_when_defending(self):
        rng = random.Random(1)
        for _ in range(1000):
            assert calculate_damage(1, 1000, rng, defending=True).damage >= 1

    def test_variance_range(self):
        """Without crits, damage stays within +/-20% of atk - def/2."""
        rng = random.Random(2)
        for _ in range(1000):
            result = calculate_damage(attack=20, defense=10, rng=rng, luck=-100)
            assert not result.is_critical
            assert 12 <= result.damage <= 18

    def test_defending_halves(self):
        plain = calculate_damage(40, 0, random.Random(5), luck=-100)
        defended = calculate_damage(40, 0, random.Random(5), luck=-100, defending=True)
        assert defended.was_defended
        assert defended.damage == plain.damage // 2 or defended.damage == max(1, plain.damage // 2)

    def test_crits_happen(self):
        rng = random.Random(3)
        crits = sum(calculate_damage(20, 0, rng, luck=50).is_critical for _ in range(1000))
        assert crits > 400

    def test_crit_chance_bounds(self):
        assert crit_chance(0) == 0.10
        assert crit_chance(1000) == 1.0
        assert crit_chance(-1000) == 0.0

    def test_class_bonus_raises_crit_chance(self):
        """A 25% bonus is relative to the luck-based chance."""
        assert crit_chance(0, bonus_percent=25) == pytest.approx(0.125)
        assert crit_chance(10, bonus_percent=25) == pytest.approx(0.25)
        assert crit_chance(1000, bonus_percent=25) == 1.0

    def test_crit_bonus_applies_to_damage_roll(self):
        """A roll between the plain and boosted chance crits only with the bonus."""
        rng = random.Random()
        rng.uniform = lambda low, high: 1.0
        rng.random = lambda: 0.11
        assert not calculate_damage(20, 0, rng).is_critical
        assert calculate_damage(20, 0, rng, crit_bonus_percent=25).is_critical


class TestMagic:
    """Tests for magic damage."""

    def test_multiplier_above_one(self):
        assert MAGIC_MULTIPLIER > 1

    def test_rounding(self):
        assert magic_damage(15) == 23
        assert magic_damage(10) == 15
        assert magic_damage(0) == 1


class TestFlee:
    """Tests for flee chance."""

    def test_non_decreasing_in_luck(self):
        chances = [flee_chance(luck) for luck in range(-50, 100)]
        assert chances == sorted(chances)

    def test_bounds(self):
        assert flee_chance(0) == 0.40
        assert flee_chance(-100) == 0.10
        assert flee_chance(1000) == 0.99

    def test_failure_possible_at_zero_luck(self):
        rng = random.Random(4)
        results = [attempt_flee(0, rng) for _ in range(200)]
        assert False in results and True in results

    def test_high_luck_almost_always_escapes(self):
        rng = random.Random(5)
        successes = sum(attempt_flee(100, rng) for _ in range(10_000))
        assert successes / 10_000 > 0.97


class TestEnemyAI:
    """Tests for enemy action choice."""

    def test_aggressive_always_attacks(self):
        rng = random.Random(6)
        for hp in (1, 50, 100):
            assert decide_enemy_action(EnemyAI.AGGRESSIVE, hp, 100, rng) == EnemyActionType.ATTACK

    def test_defensive_only_defends_when_hurt(self):
        rng = random.Random(7)
        healthy = {decide_enemy_action(EnemyAI.DEFENSIVE, 90, 100, rng) for _ in range(200)}
        hurt = {decide_enemy_action(EnemyAI.DEFENSIVE, 10, 100, rng) for _ in range(200)}
        assert healthy == {EnemyActionType.ATTACK}
        assert hurt == {EnemyActionType.ATTACK, EnemyActionType.DEFEND}

    def test_basic_sometimes_defends(self):
        rng = random.Random(8)
        actions = [decide_enemy_action(EnemyAI.BASIC, 100, 100, rng) for _ in range(1000)]
        defends = actions.count(EnemyActionType.DEFEND)
        assert 80 < defends < 250


class TestBuffs:
    """Tests for buff helpers."""

    def test_bonus_stacks(self):
        buffs = [
            ActiveBuff(type=BuffType.ATTACK, value=3, remaining_turns=3, source="strength_tonic"),
            ActiveBuff(type=BuffType.ATTACK, value=8, remaining_turns=1, source="scholars_focus"),
            ActiveBuff(type=BuffType.DEFENSE, value=4, remaining_turns=2, source="forest_brew"),
        ]
        assert buff_bonus(buffs, BuffType.ATTACK) == 11
        assert buff_bonus(buffs, BuffType.LUCK) == 0

    def test_tick_expires(self):
        buffs = [
            ActiveBuff(type=BuffType.ATTACK, value=3, remaining_turns=2, source="a"),
            ActiveBuff(type=BuffType.LUCK, value=10, remaining_turns=1, source="b"),
        ]
        ticked = tick_buffs(buffs)
        assert len(ticked) == 1
        assert ticked[0].remaining_turns == 1
        assert tick_buffs(ticked) == []
