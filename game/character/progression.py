"""XP curve, level-up stat gains and multi-level XP application."""

import math

from aws_lambda_powertools import Logger
from pydantic import BaseModel, Field

from shared.exceptions import ValidationError
from shared.items import StatName, get_item

from .equipment import ItemLookup, effective_stat
from .models import PlayerData

logger = Logger(child=True)

BASE_LEVEL_XP = 100
LEVEL_XP_GROWTH = 1.5
MAX_LEVEL = 50


class LevelUpStats(BaseModel):
    """Stat deltas granted on reaching a level."""

    max_hp: int
    attack: int
    defense: int


class LevelUp(BaseModel):
    """One level gained during an XP grant."""

    level: int
    stats: LevelUpStats


class XpGrantResult(BaseModel):
    """What happened when XP was granted."""

    old_level: int
    new_level: int
    xp_gained: int
    levels_gained: int = 0
    level_ups: list[LevelUp] = Field(default_factory=list)


def xp_for_level(level: int) -> int:
    """XP needed to go from ``level - 1`` to ``level``."""
    if level <= 1:
        return 0
    return math.floor(BASE_LEVEL_XP * LEVEL_XP_GROWTH ** (level - 2))


def xp_threshold(level: int) -> int:
    """Total XP at which a character of ``level`` advances to the next level.

    XP is cumulative: thresholds run 100, 250, 475, 812 and keep growing.

    Args:
        level: Current level (1 or higher)

    Returns:
        Cumulative XP required to reach ``level + 1``
    """
    return sum(xp_for_level(n) for n in range(2, level + 2))


def is_max_level(level: int) -> bool:
    return level >= MAX_LEVEL


def level_up_stats(new_level: int) -> LevelUpStats:
    """Stat gains for reaching ``new_level``."""
    return LevelUpStats(
        max_hp=10 + (new_level // 2) * 2,
        attack=2 + new_level // 3,
        defense=1 + new_level // 4,
    )


def apply_xp(player: PlayerData, amount: int, lookup: ItemLookup = get_item) -> XpGrantResult:
    """Grant XP and apply every level-up it earns.

    All deltas are summed first and written to ``player`` in one step, so no
    reader ever sees a half-levelled character. Current health rises by the
    same amount as max health, bounded by the new effective max. Levels stop
    at MAX_LEVEL; XP keeps accumulating past the cap.

    Args:
        player: Player record to update in place
        amount: XP to add (0 or more)
        lookup: Item catalog lookup, for the effective health cap

    Returns:
        XpGrantResult describing the levels gained

    Raises:
        ValidationError: If amount is negative
    """
    if amount < 0:
        raise ValidationError("XP amount cannot be negative", field="amount")

    old_level = player.level
    xp = player.xp + amount
    level = old_level
    level_ups: list[LevelUp] = []
    hp_gain = attack_gain = defense_gain = 0

    while level < MAX_LEVEL and xp >= xp_threshold(level):
        level += 1
        stats = level_up_stats(level)
        hp_gain += stats.max_hp
        attack_gain += stats.attack
        defense_gain += stats.defense
        level_ups.append(LevelUp(level=level, stats=stats))

    player.xp = xp
    if level_ups:
        player.level = level
        player.max_health += hp_gain
        player.attack += attack_gain
        player.defense += defense_gain
        effective_max = effective_stat(player, StatName.MAX_HEALTH, lookup)
        player.health = min(player.health + hp_gain, effective_max)
        logger.info(
            "Level up",
            extra={"old_level": old_level, "new_level": level, "xp": xp},
        )

    return XpGrantResult(
        old_level=old_level,
        new_level=level,
        xp_gained=amount,
        levels_gained=len(level_ups),
        level_ups=level_ups,
    )
