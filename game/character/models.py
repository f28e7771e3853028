"""Pydantic models for the local character record."""

from pydantic import BaseModel, Field

from shared.items import EquipmentSlot, get_starting_items

from .classes import CharacterClass, get_class

# Starter character
STARTING_HEALTH = 100
STARTING_ATTACK = 15
STARTING_DEFENSE = 5
STARTING_LUCK = 0
STARTING_MANA = 30
STARTING_GOLD = 50
STARTING_ROOM = "entrance"


class EquippedItems(BaseModel):
    """The three equipment slots. Each holds one item ID or nothing."""

    weapon: str | None = None
    armor: str | None = None
    accessory: str | None = None

    def get(self, slot: EquipmentSlot) -> str | None:
        """Return the item ID in ``slot``."""
        if slot == EquipmentSlot.WEAPON:
            return self.weapon
        if slot == EquipmentSlot.ARMOR:
            return self.armor
        return self.accessory

    def set(self, slot: EquipmentSlot, item_id: str | None) -> None:
        """Put ``item_id`` (or nothing) into ``slot``."""
        if slot == EquipmentSlot.WEAPON:
            self.weapon = item_id
        elif slot == EquipmentSlot.ARMOR:
            self.armor = item_id
        else:
            self.accessory = item_id

    def item_ids(self) -> list[str]:
        """IDs of everything currently equipped."""
        return [i for i in (self.weapon, self.armor, self.accessory) if i is not None]


class DungeonProgress(BaseModel):
    """Position in the current dungeon run. ``dungeon_id=None`` means no run."""

    dungeon_id: str | None = None
    floor_number: int = Field(default=1, ge=1)
    current_room_id: str = STARTING_ROOM

    @property
    def is_active(self) -> bool:
        """Whether a dungeon run is in progress."""
        return self.dungeon_id is not None


class CloudIdentity(BaseModel):
    """Remote identity the session autosaves to."""

    user_id: str
    character_id: str


class PlayerData(BaseModel):
    """Everything the engine knows about the player.

    Stats here are base values; equipment bonuses are applied by
    ``character.equipment``. ``max_mana`` caches the effective mana cap
    (``base_mana`` plus equipment).

    ``character_class`` is None for the classless starter character.
    """

    health: int = Field(default=STARTING_HEALTH, ge=0)
    max_health: int = Field(default=STARTING_HEALTH, ge=1)
    mana: int = Field(default=STARTING_MANA, ge=0)
    max_mana: int = Field(default=STARTING_MANA, ge=0)
    base_mana: int = Field(default=STARTING_MANA, ge=0)
    attack: int = STARTING_ATTACK
    defense: int = STARTING_DEFENSE
    luck: int = STARTING_LUCK
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    gold: int = Field(default=STARTING_GOLD, ge=0)
    items: dict[str, int] = Field(default_factory=get_starting_items)
    equipped: EquippedItems = Field(default_factory=EquippedItems)
    dungeon: DungeonProgress = Field(default_factory=DungeonProgress)
    battles_won: int = Field(default=0, ge=0)
    battles_lost: int = Field(default=0, ge=0)
    total_gold_earned: int = Field(default=0, ge=0)
    dungeons_completed: int = Field(default=0, ge=0)
    achievements: set[str] = Field(default_factory=set)
    character_class: CharacterClass | None = None

    @classmethod
    def for_class(cls, character_class: CharacterClass | str | None = None) -> "PlayerData":
        """Fresh level 1 record, with the class's starting stats if one is given."""
        if character_class is None:
            return cls()
        definition = get_class(character_class)
        return cls(
            health=definition.base_hp,
            max_health=definition.base_hp,
            attack=definition.base_attack,
            defense=definition.base_defense,
            character_class=definition.id,
        )


class ActionResult(BaseModel):
    """Outcome of a player-facing operation that may be refused by game rules."""

    accepted: bool
    reason: str | None = None
    message: str | None = None

    @classmethod
    def ok(cls, message: str | None = None) -> "ActionResult":
        """Accepted result."""
        return cls(accepted=True, message=message)

    @classmethod
    def rejected(cls, reason: str) -> "ActionResult":
        """Refused result; nothing was changed."""
        return cls(accepted=False, reason=reason)
