"""Enemy catalog, dungeon tiers and enemy stat scaling."""

import math
import random

from shared.exceptions import NotFoundError, ValidationError

from .models import EnemyAI, EnemyDefinition, EnemyTier

# Stat growth per floor below the first
FLOOR_SCALING = 0.15

# Stat growth per dungeon tier above the first
TIER_SCALING = 0.20

# Difficulty tier of each dungeon
DUNGEON_TIERS: dict[str, int] = {
    "training": 1,
    "forest": 2,
    "crystal": 3,
    "library": 4,
    "volcano": 5,
    "void": 6,
}


def _enemy(enemy_id, name, hp, attack, defense, xp, gold, ai, tier) -> EnemyDefinition:
    return EnemyDefinition(
        id=enemy_id,
        name=name,
        max_hp=hp,
        attack=attack,
        defense=defense,
        xp_reward=xp,
        gold_min=gold[0],
        gold_max=gold[1],
        ai=ai,
        tier=tier,
    )


_LOW, _MID, _HIGH, _BOSS = EnemyTier.LOW, EnemyTier.MID, EnemyTier.HIGH, EnemyTier.BOSS
_BASIC, _AGGRO, _DEF = EnemyAI.BASIC, EnemyAI.AGGRESSIVE, EnemyAI.DEFENSIVE

ENEMIES: dict[str, EnemyDefinition] = {
    e.id: e
    for e in [
        # Slimes
        _enemy("grey_slime", "Grey Slime", 30, 8, 2, 15, (5, 10), _BASIC, _LOW),
        _enemy("baby_blue_slime", "Baby Blue Slime", 25, 7, 2, 12, (4, 8), _BASIC, _LOW),
        _enemy("black_slime", "Black Slime", 40, 10, 3, 22, (7, 14), _DEF, _LOW),
        _enemy("brown_slime", "Brown Slime", 35, 9, 4, 18, (6, 12), _BASIC, _LOW),
        _enemy("demon_slime", "Demon Slime", 50, 12, 4, 30, (10, 20), _AGGRO, _MID),
        _enemy("rainbow_slime", "Rainbow Slime", 60, 14, 5, 45, (20, 40), _DEF, _MID),
        # Rats
        _enemy("rat", "Rat", 20, 6, 1, 10, (3, 7), _BASIC, _LOW),
        _enemy("rat_fighter", "Rat Fighter", 35, 10, 3, 20, (8, 15), _AGGRO, _LOW),
        _enemy("rat_warrior", "Rat Warrior", 55, 14, 6, 35, (12, 22), _DEF, _MID),
        _enemy("rat_ranger", "Rat Ranger", 40, 16, 2, 30, (10, 18), _AGGRO, _MID),
        _enemy("rat_mage", "Rat Mage", 45, 18, 3, 40, (15, 25), _AGGRO, _MID),
        _enemy("rat_necromancer", "Rat Necromancer", 80, 20, 5, 60, (25, 40), _DEF, _HIGH),
        # Beasts and oddities
        _enemy("ruff_dog", "Ruff Dog", 50, 13, 4, 28, (10, 18), _AGGRO, _MID),
        _enemy("dog_with_axe", "Dog With Axe", 75, 22, 6, 55, (20, 35), _AGGRO, _HIGH),
        _enemy("squirrel_warrior", "Squirrel Warrior", 38, 11, 4, 25, (8, 14), _DEF, _MID),
        _enemy("yarn_elemental", "Yarn Elemental", 70, 17, 8, 50, (18, 30), _DEF, _HIGH),
        _enemy("roomba", "Angry Roomba", 25, 7, 5, 12, (5, 12), _BASIC, _LOW),
        _enemy("rubber_ducky", "Big Rubber Ducky", 45, 9, 7, 22, (8, 16), _DEF, _MID),
        _enemy("tuna_can_battler", "Tuna Can Battler", 42, 10, 6, 24, (9, 17), _BASIC, _MID),
        # Boss
        _enemy("boss", "Dungeon Guardian", 150, 25, 10, 100, (50, 100), _AGGRO, _BOSS),
    ]
}


def get_enemy(enemy_id: str) -> EnemyDefinition:
    """Look up an enemy by ID.

    Raises:
        NotFoundError: If the enemy doesn't exist
    """
    enemy = ENEMIES.get(enemy_id)
    if enemy is None:
        raise NotFoundError("Enemy", enemy_id)
    return enemy


def enemies_for_tier(tier: EnemyTier) -> list[EnemyDefinition]:
    """All enemies of a difficulty tier, sorted by ID."""
    return sorted((e for e in ENEMIES.values() if e.tier == tier), key=lambda e: e.id)


def get_random_enemy(
    pool: list[EnemyDefinition] | None = None,
    rng: random.Random | None = None,
) -> EnemyDefinition:
    """Pick an enemy at random.

    Args:
        pool: Enemies to choose from; every non-boss enemy if omitted
        rng: Random source (module random if omitted)

    Returns:
        The chosen enemy definition
    """
    if pool is None:
        pool = [e for e in ENEMIES.values() if e.tier != EnemyTier.BOSS]
    if not pool:
        raise ValidationError("Enemy pool is empty", field="pool")
    return (rng or random).choice(pool)


def get_dungeon_tier(dungeon_id: str | None) -> int:
    """Difficulty tier of a dungeon; unknown or missing dungeons are tier 1."""
    if dungeon_id is None:
        return 1
    return DUNGEON_TIERS.get(dungeon_id, 1)


def scale_enemy_stats(enemy: EnemyDefinition, floor: int, dungeon_tier: int = 1) -> EnemyDefinition:
    """Scale an enemy's combat stats for a floor and dungeon tier.

    Growth is 15% per floor and 20% per tier above the first, rounded down.
    Never weaker than the base enemy.

    Args:
        enemy: Base enemy definition
        floor: Dungeon floor (1 or higher)
        dungeon_tier: Dungeon difficulty tier (1 or higher)

    Returns:
        A new definition with scaled hp, attack and defense
    """
    if floor < 1 or dungeon_tier < 1:
        raise ValidationError("Floor and tier must be at least 1")
    factor = (1 + FLOOR_SCALING * (floor - 1)) * (1 + TIER_SCALING * (dungeon_tier - 1))
    return enemy.model_copy(update={
        "max_hp": math.floor(enemy.max_hp * factor),
        "attack": math.floor(enemy.attack * factor),
        "defense": math.floor(enemy.defense * factor),
    })
