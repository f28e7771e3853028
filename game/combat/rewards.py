"""Victory reward scaling by floor and dungeon tier."""

import math

from .models import EnemyDefinition

# Reward growth per floor below the first
FLOOR_REWARD_SCALING = 0.10

# Reward growth per dungeon tier above the first
TIER_REWARD_SCALING = 0.25


def _multiplier(floor: int, dungeon_tier: int) -> float:
    return (1 + FLOOR_REWARD_SCALING * (floor - 1)) * (1 + TIER_REWARD_SCALING * (dungeon_tier - 1))


def gold_reward(enemy: EnemyDefinition, floor: int, dungeon_tier: int = 1) -> int:
    """Gold for defeating ``enemy`` on ``floor``.

    Based on the middle of the enemy's gold range. A flat bonus per floor
    keeps the reward strictly increasing with depth even for cheap enemies.
    """
    base = (enemy.gold_min + enemy.gold_max) / 2
    return math.floor(base * _multiplier(floor, dungeon_tier)) + 2 * (floor - 1)


def xp_reward(enemy: EnemyDefinition, floor: int, dungeon_tier: int = 1) -> int:
    """XP for defeating ``enemy`` on ``floor``."""
    return math.floor(enemy.xp_reward * _multiplier(floor, dungeon_tier)) + (floor - 1)
