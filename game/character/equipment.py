"""Effective-stat computation: base attributes plus equipped item bonuses.

Everything here is a pure function of a PlayerData snapshot and an item
lookup, so combat can call it as often as it likes.
"""

from collections.abc import Callable

from pydantic import BaseModel

from shared.items import ItemDefinition, StatName, get_item

from .models import EquippedItems, PlayerData

ItemLookup = Callable[[str], ItemDefinition | None]

# Mana regained per room move before equipment bonuses
BASE_MANA_REGEN = 2


class EffectiveStats(BaseModel):
    """All effective stats at once."""

    attack: int
    defense: int
    luck: int
    max_health: int
    max_mana: int
    mana_regen: int


def equipment_bonus(
    equipped: EquippedItems,
    stat: StatName,
    lookup: ItemLookup = get_item,
) -> int:
    """Sum the bonus every equipped item grants to ``stat``.

    Unknown item IDs and items without stats contribute nothing.
    """
    total = 0
    for item_id in equipped.item_ids():
        item = lookup(item_id)
        if item is not None and item.stats is not None:
            total += item.stats.bonus(stat)
    return total


def base_stat(player: PlayerData, stat: StatName) -> int:
    """Return the pre-equipment value of ``stat``."""
    if stat == StatName.ATTACK:
        return player.attack
    if stat == StatName.DEFENSE:
        return player.defense
    if stat == StatName.LUCK:
        return player.luck
    if stat == StatName.MAX_HEALTH:
        return player.max_health
    if stat == StatName.MAX_MANA:
        return player.base_mana
    return BASE_MANA_REGEN


def effective_stat(
    player: PlayerData,
    stat: StatName,
    lookup: ItemLookup = get_item,
) -> int:
    """Base stat plus equipment bonuses.

    Args:
        player: Player snapshot
        stat: Stat to compute
        lookup: Item catalog lookup

    Returns:
        Effective value of the stat
    """
    return base_stat(player, stat) + equipment_bonus(player.equipped, stat, lookup)


def effective_stats(player: PlayerData, lookup: ItemLookup = get_item) -> EffectiveStats:
    """Compute every effective stat in one pass."""
    return EffectiveStats(**{
        stat.value: effective_stat(player, stat, lookup) for stat in StatName
    })

