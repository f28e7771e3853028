"""Change notifications emitted by CharacterState."""

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StateEvent(str, Enum):
    """Closed set of things that can change on a character."""

    HEALTH_CHANGED = "health_changed"
    MANA_CHANGED = "mana_changed"
    GOLD_CHANGED = "gold_changed"
    INVENTORY_CHANGED = "inventory_changed"
    EQUIPMENT_CHANGED = "equipment_changed"
    XP_CHANGED = "xp_changed"
    LEVEL_UP = "level_up"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    DUNGEON_CHANGED = "dungeon_changed"
    DUNGEON_COMPLETED = "dungeon_completed"
    RESTED = "rested"
    ITEM_PURCHASED = "item_purchased"
    ITEM_SOLD = "item_sold"
    BATTLE_WON = "battle_won"
    BATTLE_LOST = "battle_lost"
    QUEST_COMPLETED = "quest_completed"
    CLOUD_LOADED = "cloud_loaded"
    RESET = "reset"


class StateChange(BaseModel):
    """A single notification delivered to listeners."""

    event: StateEvent
    payload: dict[str, Any] = Field(default_factory=dict)


Listener = Callable[[StateChange], None]
