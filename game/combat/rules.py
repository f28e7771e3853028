"""Battle formulas: damage, magic, flee chance, enemy AI and buffs.

All randomness comes from an injected ``random.Random`` so battles can be
replayed with a seed.
"""

import math
import random

from shared.utils import clamp

from .models import ActiveBuff, BuffType, DamageResult, EnemyActionType, EnemyAI

# Damage variance range
DAMAGE_VARIANCE_MIN = 0.8
DAMAGE_VARIANCE_MAX = 1.2

# Critical hits
BASE_CRIT_CHANCE = 0.10
CRIT_CHANCE_PER_LUCK = 0.01
CRIT_MULTIPLIER = 1.5

# Magic
MAGIC_MANA_COST = 10
MAGIC_MULTIPLIER = 1.5

# Flee chance curve
BASE_FLEE_CHANCE = 0.40
FLEE_CHANCE_PER_LUCK = 0.03
MIN_FLEE_CHANCE = 0.10
MAX_FLEE_CHANCE = 0.99

# Enemy AI
DEFENSIVE_HP_THRESHOLD = 0.30
DEFENSIVE_DEFEND_CHANCE = 0.50
BASIC_DEFEND_CHANCE = 0.15


def crit_chance(luck: int, bonus_percent: int = 0) -> float:
    """Chance of a critical hit for a given luck, raised by a class bonus percent."""
    chance = (BASE_CRIT_CHANCE + CRIT_CHANCE_PER_LUCK * luck) * (1 + bonus_percent / 100)
    return min(1.0, max(0.0, chance))


def calculate_damage(
    attack: int,
    defense: int,
    rng: random.Random,
    luck: int = 0,
    defending: bool = False,
    crit_bonus_percent: int = 0,
) -> DamageResult:
    """Calculate damage for a physical attack.

    Half of the defender's defense is subtracted from the attack, the
    result varies by +/-20% and may crit. A defending target takes half.
    The result is never below 1.

    Args:
        attack: Attacker's effective attack
        defense: Defender's effective defense
        rng: Random source
        luck: Attacker's luck (raises crit chance)
        defending: Whether the target is defending
        crit_bonus_percent: Relative boost to the crit chance

    Returns:
        DamageResult with the final damage
    """
    base = attack - defense / 2
    variance = rng.uniform(DAMAGE_VARIANCE_MIN, DAMAGE_VARIANCE_MAX)
    is_critical = rng.random() < crit_chance(luck, crit_bonus_percent)
    raw = base * variance * (CRIT_MULTIPLIER if is_critical else 1.0)
    if defending:
        raw /= 2
    return DamageResult(
        damage=max(1, math.floor(raw)),
        is_critical=is_critical,
        was_defended=defending,
    )


def magic_damage(attack: int) -> int:
    """Magic damage: attack times the magic multiplier, rounded. Ignores defense."""
    return max(1, math.floor(attack * MAGIC_MULTIPLIER + 0.5))


def flee_chance(luck: int) -> float:
    """Probability of escaping a battle. Non-decreasing in luck."""
    return clamp(BASE_FLEE_CHANCE + FLEE_CHANCE_PER_LUCK * luck, MIN_FLEE_CHANCE, MAX_FLEE_CHANCE)


def attempt_flee(luck: int, rng: random.Random) -> bool:
    """Roll a flee attempt."""
    return rng.random() < flee_chance(luck)


def decide_enemy_action(
    ai: EnemyAI,
    hp: int,
    max_hp: int,
    rng: random.Random,
) -> EnemyActionType:
    """Choose what an enemy does this turn.

    Aggressive enemies always attack. Defensive ones often defend when
    badly hurt. Basic ones occasionally defend.
    """
    if ai == EnemyAI.AGGRESSIVE:
        return EnemyActionType.ATTACK
    if ai == EnemyAI.DEFENSIVE:
        if hp < max_hp * DEFENSIVE_HP_THRESHOLD and rng.random() < DEFENSIVE_DEFEND_CHANCE:
            return EnemyActionType.DEFEND
        return EnemyActionType.ATTACK
    if rng.random() < BASIC_DEFEND_CHANCE:
        return EnemyActionType.DEFEND
    return EnemyActionType.ATTACK


def buff_bonus(buffs: list[ActiveBuff], buff_type: BuffType) -> int:
    """Total bonus from active buffs on one stat. Buffs stack."""
    return sum(b.value for b in buffs if b.type == buff_type)


def tick_buffs(buffs: list[ActiveBuff]) -> list[ActiveBuff]:
    """Count every buff down one turn, dropping the expired ones."""
    return [
        b.model_copy(update={"remaining_turns": b.remaining_turns - 1})
        for b in buffs
        if b.remaining_turns > 1
    ]
