"""CharacterState - the single mutation surface for a player's record.

One instance is created per play session and handed to whoever needs it
(combat, shop, cloud sync). Nothing else writes to the underlying
PlayerData; readers get copies.
"""

from aws_lambda_powertools import Logger

from shared.exceptions import GameStateError, ValidationError
from shared.items import BATTLE_ONLY_EFFECTS, EffectType, EquipmentSlot, StatName, get_item
from shared.models import CharacterRecord

from .equipment import EffectiveStats, ItemLookup, effective_stat, effective_stats
from .events import Listener, StateChange, StateEvent
from .classes import CharacterClass
from .models import (
    STARTING_ROOM,
    ActionResult,
    CloudIdentity,
    DungeonProgress,
    EquippedItems,
    PlayerData,
)
from .progression import XpGrantResult, apply_xp

logger = Logger(child=True)

FIRST_VICTORY = "first_victory"


class CharacterState:
    """Authoritative in-memory player and dungeon record."""

    def __init__(self, data: PlayerData | None = None, lookup: ItemLookup = get_item) -> None:
        """Initialize character state.

        Args:
            data: Starting record; a fresh starter character if omitted
            lookup: Item catalog lookup
        """
        self._data = data if data is not None else PlayerData()
        self._lookup = lookup
        self._listeners: dict[StateEvent, list[Listener]] = {}
        self._cloud_identity: CloudIdentity | None = None
        self._in_battle = False
        self._refresh_caps()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, event: StateEvent, listener: Listener) -> None:
        """Call ``listener`` whenever ``event`` is emitted."""
        self._listeners.setdefault(event, []).append(listener)

    def unsubscribe(self, event: StateEvent, listener: Listener) -> bool:
        """Stop calling ``listener`` for ``event``.

        Returns:
            True if the listener was registered
        """
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)
            return True
        return False

    def notify(self, event: StateEvent, **payload) -> None:
        """Emit ``event`` to its listeners.

        Collaborators that complete a compound operation (a purchase, a
        rest) call this after their last mutation.
        """
        change = StateChange(event=event, payload=payload)
        for listener in list(self._listeners.get(event, [])):
            listener(change)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def health(self) -> int:
        return self._data.health

    @property
    def max_health(self) -> int:
        """Base max health, before equipment."""
        return self._data.max_health

    @property
    def mana(self) -> int:
        return self._data.mana

    @property
    def max_mana(self) -> int:
        """Effective mana cap (base mana plus equipment)."""
        return self._data.max_mana

    @property
    def base_mana(self) -> int:
        return self._data.base_mana

    @property
    def attack(self) -> int:
        return self._data.attack

    @property
    def defense(self) -> int:
        return self._data.defense

    @property
    def luck(self) -> int:
        return self._data.luck

    @property
    def level(self) -> int:
        return self._data.level

    @property
    def xp(self) -> int:
        return self._data.xp

    @property
    def gold(self) -> int:
        return self._data.gold

    @property
    def items(self) -> dict[str, int]:
        return dict(self._data.items)

    @property
    def equipped(self) -> EquippedItems:
        return self._data.equipped.model_copy()

    @property
    def dungeon(self) -> DungeonProgress:
        return self._data.dungeon.model_copy()

    @property
    def battles_won(self) -> int:
        return self._data.battles_won

    @property
    def battles_lost(self) -> int:
        return self._data.battles_lost

    @property
    def total_gold_earned(self) -> int:
        return self._data.total_gold_earned

    @property
    def dungeons_completed(self) -> int:
        return self._data.dungeons_completed

    @property
    def character_class(self) -> CharacterClass | None:
        return self._data.character_class

    @property
    def achievements(self) -> frozenset[str]:
        return frozenset(self._data.achievements)

    @property
    def cloud_identity(self) -> CloudIdentity | None:
        return self._cloud_identity

    @property
    def in_battle(self) -> bool:
        return self._in_battle

    @property
    def lookup(self) -> ItemLookup:
        """Item catalog lookup this state resolves items with."""
        return self._lookup

    def snapshot(self) -> PlayerData:
        """Deep copy of the whole record."""
        return self._data.model_copy(deep=True)

    def effective_stat(self, stat: StatName) -> int:
        """Base stat plus equipment bonuses."""
        return effective_stat(self._data, stat, self._lookup)

    def effective_stats(self) -> EffectiveStats:
        """Every effective stat at once."""
        return effective_stats(self._data, self._lookup)

    @property
    def effective_max_health(self) -> int:
        return self.effective_stat(StatName.MAX_HEALTH)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def add_item(self, item_id: str, quantity: int = 1) -> None:
        """Add ``quantity`` of an item to the inventory.

        Raises:
            ValidationError: If quantity is not positive
        """
        if quantity < 1:
            raise ValidationError("Quantity must be positive", field="quantity")
        self._data.items[item_id] = self._data.items.get(item_id, 0) + quantity
        self.notify(StateEvent.INVENTORY_CHANGED, item_id=item_id, quantity=self._data.items[item_id])

    def remove_item(self, item_id: str, quantity: int = 1) -> bool:
        """Remove items from the inventory.

        Returns:
            False (and nothing removed) if fewer than ``quantity`` are held
        """
        if quantity < 1:
            raise ValidationError("Quantity must be positive", field="quantity")
        held = self._data.items.get(item_id, 0)
        if held < quantity:
            return False
        if held == quantity:
            del self._data.items[item_id]
        else:
            self._data.items[item_id] = held - quantity
        self.notify(StateEvent.INVENTORY_CHANGED, item_id=item_id, quantity=held - quantity)
        return True

    def has_item(self, item_id: str, quantity: int = 1) -> bool:
        return self._data.items.get(item_id, 0) >= quantity

    def get_item_count(self, item_id: str) -> int:
        return self._data.items.get(item_id, 0)

    # ------------------------------------------------------------------
    # Gold
    # ------------------------------------------------------------------

    def add_gold(self, amount: int) -> None:
        """Add gold; counts toward total gold earned."""
        if amount < 0:
            raise ValidationError("Gold amount cannot be negative", field="amount")
        self._data.gold += amount
        self._data.total_gold_earned += amount
        self.notify(StateEvent.GOLD_CHANGED, gold=self._data.gold, delta=amount)

    def spend_gold(self, amount: int) -> bool:
        """Spend gold.

        Returns:
            False (and nothing spent) if the character cannot afford it
        """
        if amount < 0:
            raise ValidationError("Gold amount cannot be negative", field="amount")
        if self._data.gold < amount:
            return False
        self._data.gold -= amount
        self.notify(StateEvent.GOLD_CHANGED, gold=self._data.gold, delta=-amount)
        return True

    # ------------------------------------------------------------------
    # Health and mana
    # ------------------------------------------------------------------

    def heal(self, amount: int) -> int:
        """Restore health up to the effective max.

        Returns:
            Health actually restored
        """
        if amount < 0:
            raise ValidationError("Heal amount cannot be negative", field="amount")
        before = self._data.health
        self._data.health = min(before + amount, self.effective_max_health)
        self._health_changed(before)
        return self._data.health - before

    def damage(self, amount: int) -> int:
        """Lose health, never below zero.

        Returns:
            Health actually lost
        """
        if amount < 0:
            raise ValidationError("Damage amount cannot be negative", field="amount")
        before = self._data.health
        self._data.health = max(0, before - amount)
        self._health_changed(before)
        return before - self._data.health

    def set_health(self, value: int) -> None:
        """Set health directly, clamped to [0, effective max]."""
        before = self._data.health
        self._data.health = max(0, min(value, self.effective_max_health))
        self._health_changed(before)

    def full_heal(self) -> int:
        """Restore health to the effective max."""
        return self.heal(self.effective_max_health)

    def use_mana(self, amount: int) -> bool:
        """Spend mana.

        Returns:
            False (and nothing spent) if there is not enough mana
        """
        if amount < 0:
            raise ValidationError("Mana amount cannot be negative", field="amount")
        if self._data.mana < amount:
            return False
        before = self._data.mana
        self._data.mana -= amount
        self._mana_changed(before)
        return True

    def restore_mana(self, amount: int) -> int:
        """Restore mana up to the cap.

        Returns:
            Mana actually restored
        """
        if amount < 0:
            raise ValidationError("Mana amount cannot be negative", field="amount")
        before = self._data.mana
        self._data.mana = min(before + amount, self._data.max_mana)
        self._mana_changed(before)
        return self._data.mana - before

    def set_mana(self, value: int) -> None:
        """Set mana directly, clamped to [0, cap]."""
        before = self._data.mana
        self._data.mana = max(0, min(value, self._data.max_mana))
        self._mana_changed(before)

    def full_restore_mana(self) -> int:
        """Restore mana to the cap."""
        return self.restore_mana(self._data.max_mana)

    def regenerate_mana(self) -> int:
        """Regain the effective mana regen amount (base plus equipment)."""
        return self.restore_mana(self.effective_stat(StatName.MANA_REGEN))

    def use_consumable(self, item_id: str) -> ActionResult:
        """Use a healing or mana consumable from the inventory.

        Damage and buff consumables only work in battle and are refused here.
        """
        item = self._lookup(item_id)
        if item is None or not item.is_consumable:
            return ActionResult.rejected("not_consumable")
        if not self.has_item(item_id):
            return ActionResult.rejected("not_owned")

        effect = item.effect
        if effect.type in BATTLE_ONLY_EFFECTS:
            return ActionResult.rejected("battle_only")
        if effect.type == EffectType.HEAL and self._data.health >= self.effective_max_health:
            return ActionResult.rejected("health_full")
        if effect.type == EffectType.MANA_RESTORE and self._data.mana >= self._data.max_mana:
            return ActionResult.rejected("mana_full")

        self.remove_item(item_id)
        if effect.type == EffectType.HEAL:
            restored = self.heal(effect.value)
            return ActionResult.ok(f"Restored {restored} HP")
        restored = self.restore_mana(effect.value)
        return ActionResult.ok(f"Restored {restored} MP")

    # ------------------------------------------------------------------
    # Equipment
    # ------------------------------------------------------------------

    def equip(self, item_id: str) -> bool:
        """Move an item from the inventory into its slot.

        Anything already in the slot goes back to the inventory first.

        Returns:
            False (nothing changed) if the item is unknown, not equipment,
            not held, or a battle is in progress
        """
        if self._in_battle:
            return False
        item = self._lookup(item_id)
        if item is None or not item.is_equipment or not self.has_item(item_id):
            return False

        slot = item.slot
        previous = self._data.equipped.get(slot)
        if previous is not None:
            self._data.items[previous] = self._data.items.get(previous, 0) + 1
        self._take_one(item_id)
        self._data.equipped.set(slot, item_id)
        self._refresh_caps()

        logger.info("Item equipped", extra={"item_id": item_id, "slot": slot.value})
        self.notify(StateEvent.INVENTORY_CHANGED, item_id=item_id, quantity=self.get_item_count(item_id))
        self.notify(StateEvent.EQUIPMENT_CHANGED, slot=slot.value, item_id=item_id, previous=previous)
        return True

    def unequip(self, slot: EquipmentSlot) -> bool:
        """Return the item in ``slot`` to the inventory.

        Returns:
            False if the slot is empty or a battle is in progress
        """
        if self._in_battle:
            return False
        item_id = self._data.equipped.get(slot)
        if item_id is None:
            return False

        self._data.equipped.set(slot, None)
        self._data.items[item_id] = self._data.items.get(item_id, 0) + 1
        self._refresh_caps()

        logger.info("Item unequipped", extra={"item_id": item_id, "slot": slot.value})
        self.notify(StateEvent.INVENTORY_CHANGED, item_id=item_id, quantity=self.get_item_count(item_id))
        self.notify(StateEvent.EQUIPMENT_CHANGED, slot=slot.value, item_id=None, previous=item_id)
        return True

    # ------------------------------------------------------------------
    # Progression and record
    # ------------------------------------------------------------------

    def add_xp(self, amount: int) -> XpGrantResult:
        """Grant XP, applying every level-up it earns before anyone is told."""
        result = apply_xp(self._data, amount, self._lookup)
        self.notify(StateEvent.XP_CHANGED, xp=self._data.xp, delta=amount)
        for level_up in result.level_ups:
            self.notify(StateEvent.LEVEL_UP, level=level_up.level, stats=level_up.stats.model_dump())
        return result

    def award_achievement(self, achievement_id: str) -> bool:
        """Unlock an achievement.

        Returns:
            False if it was already unlocked
        """
        if achievement_id in self._data.achievements:
            return False
        self._data.achievements.add(achievement_id)
        logger.info("Achievement unlocked", extra={"achievement_id": achievement_id})
        self.notify(StateEvent.ACHIEVEMENT_UNLOCKED, achievement_id=achievement_id)
        return True

    def has_achievement(self, achievement_id: str) -> bool:
        return achievement_id in self._data.achievements

    def record_battle_win(self) -> None:
        """Count a victory. Call after rewards are applied."""
        self._data.battles_won += 1
        if self._data.battles_won == 1:
            self.award_achievement(FIRST_VICTORY)
        self.notify(StateEvent.BATTLE_WON, battles_won=self._data.battles_won)

    def record_battle_loss(self) -> None:
        self._data.battles_lost += 1
        self.notify(StateEvent.BATTLE_LOST, battles_lost=self._data.battles_lost)

    # ------------------------------------------------------------------
    # Battle flag
    # ------------------------------------------------------------------

    def begin_battle(self) -> None:
        """Mark a battle as in progress. Equipment is locked until it ends.

        Raises:
            GameStateError: If a battle is already running
        """
        if self._in_battle:
            raise GameStateError("A battle is already in progress", current_state="in_battle")
        self._in_battle = True

    def end_battle(self) -> None:
        self._in_battle = False

    # ------------------------------------------------------------------
    # Dungeon run
    # ------------------------------------------------------------------

    def has_active_dungeon_run(self) -> bool:
        return self._data.dungeon.is_active

    def enter_dungeon(self, dungeon_id: str, floor_number: int = 1) -> None:
        """Start (or resume) a run at ``floor_number``."""
        if not dungeon_id:
            raise ValidationError("Dungeon ID is required", field="dungeon_id")
        if floor_number < 1:
            raise ValidationError("Floor number must be at least 1", field="floor_number")
        self._data.dungeon = DungeonProgress(dungeon_id=dungeon_id, floor_number=floor_number)
        logger.info("Dungeon entered", extra={"dungeon_id": dungeon_id, "floor": floor_number})
        self._dungeon_changed()

    def advance_floor(self) -> int:
        """Go one floor deeper.

        Returns:
            The new floor number

        Raises:
            GameStateError: If no run is active
        """
        if not self._data.dungeon.is_active:
            raise GameStateError("No active dungeon run", current_state="no_run")
        self._data.dungeon.floor_number += 1
        self._data.dungeon.current_room_id = STARTING_ROOM
        self._dungeon_changed()
        return self._data.dungeon.floor_number

    def set_current_room(self, room_id: str) -> int:
        """Move to another room, regenerating mana.

        Returns:
            Mana regenerated by the move
        """
        if self._data.dungeon.current_room_id == room_id:
            return 0
        self._data.dungeon.current_room_id = room_id
        return self.regenerate_mana()

    def complete_dungeon(self) -> int:
        """Finish the current run as cleared and count it.

        Returns:
            Total dungeons completed

        Raises:
            GameStateError: If no run is active
        """
        dungeon = self._data.dungeon
        if not dungeon.is_active:
            raise GameStateError("No active dungeon run", current_state="no_run")
        dungeon_id = dungeon.dungeon_id
        self._data.dungeons_completed += 1
        logger.info(
            "Dungeon completed",
            extra={"dungeon_id": dungeon_id, "dungeons_completed": self._data.dungeons_completed},
        )
        self.clear_dungeon_run()
        self.notify(
            StateEvent.DUNGEON_COMPLETED,
            dungeon_id=dungeon_id,
            dungeons_completed=self._data.dungeons_completed,
        )
        return self._data.dungeons_completed

    def clear_dungeon_run(self) -> None:
        """End the current run, if any."""
        if not self._data.dungeon.is_active:
            return
        self._data.dungeon = DungeonProgress()
        logger.info("Dungeon run cleared")
        self._dungeon_changed()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def set_cloud_identity(self, identity: CloudIdentity | None) -> None:
        self._cloud_identity = identity

    def load_remote(
        self,
        record: CharacterRecord,
        items: dict[str, int] | None = None,
        dungeon: DungeonProgress | None = None,
    ) -> None:
        """Overwrite progress with a remote character record.

        Args:
            record: Remote character record
            items: Replacement inventory, or None to keep the local one
            dungeon: Run to resume, or None to keep the local one

        Raises:
            GameStateError: If a battle is in progress
        """
        if self._in_battle:
            raise GameStateError("Cannot load remote state during a battle", current_state="in_battle")

        data = self._data
        data.max_health = record.max_hp
        data.health = record.hp
        data.xp = record.xp
        data.level = record.level
        data.gold = record.gold
        data.attack = record.attack
        data.defense = record.defense
        data.luck = 0
        data.battles_won = record.battles_won
        data.battles_lost = record.battles_lost
        data.total_gold_earned = record.total_gold_earned
        data.dungeons_completed = record.dungeons_completed
        data.character_class = _known_class(record.class_id)
        data.achievements = set(record.achievements)
        data.equipped = EquippedItems(
            weapon=record.equipped_weapon_id,
            armor=record.equipped_armor_id,
            accessory=record.equipped_accessory_id,
        )
        if items is not None:
            data.items = {item_id: qty for item_id, qty in items.items() if qty > 0}
        if dungeon is not None:
            data.dungeon = dungeon
        self._refresh_caps()

        logger.info(
            "Remote character loaded",
            extra={"character_id": record.id, "level": data.level, "gold": data.gold},
        )
        self.notify(StateEvent.CLOUD_LOADED, character_id=record.id)

    def to_record(self, identity: CloudIdentity) -> CharacterRecord:
        """Build the remote record for this character."""
        data = self._data
        return CharacterRecord(
            id=identity.character_id,
            user_id=identity.user_id,
            level=data.level,
            xp=data.xp,
            hp=data.health,
            max_hp=data.max_health,
            gold=data.gold,
            attack=data.attack,
            defense=data.defense,
            equipped_weapon_id=data.equipped.weapon,
            equipped_armor_id=data.equipped.armor,
            equipped_accessory_id=data.equipped.accessory,
            current_dungeon_id=data.dungeon.dungeon_id,
            current_floor=data.dungeon.floor_number if data.dungeon.is_active else 0,
            battles_won=data.battles_won,
            battles_lost=data.battles_lost,
            total_gold_earned=data.total_gold_earned,
            achievements=sorted(data.achievements),
            class_id=data.character_class.value if data.character_class else None,
            dungeons_completed=data.dungeons_completed,
        )

    def reset(self, character_class: CharacterClass | str | None = None) -> None:
        """Start over with a fresh level 1 character.

        Listeners stay registered; the cloud identity is dropped.

        Args:
            character_class: Class to start as; the classless starter if omitted

        Raises:
            GameStateError: If a battle is in progress
            NotFoundError: If the class is unknown
        """
        if self._in_battle:
            raise GameStateError("Cannot reset during a battle", current_state="in_battle")
        self._data = PlayerData.for_class(character_class)
        self._cloud_identity = None
        self._refresh_caps()
        logger.info("Character reset", extra={"character_class": character_class})
        self.notify(StateEvent.RESET, character_class=self._data.character_class)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _take_one(self, item_id: str) -> None:
        held = self._data.items[item_id]
        if held == 1:
            del self._data.items[item_id]
        else:
            self._data.items[item_id] = held - 1

    def _refresh_caps(self) -> None:
        # Raising a cap leaves current values alone; shrinking one clamps them
        data = self._data
        data.max_mana = effective_stat(data, StatName.MAX_MANA, self._lookup)
        data.mana = min(data.mana, data.max_mana)
        data.health = min(data.health, effective_stat(data, StatName.MAX_HEALTH, self._lookup))

    def _health_changed(self, before: int) -> None:
        if self._data.health != before:
            self.notify(StateEvent.HEALTH_CHANGED, health=self._data.health, delta=self._data.health - before)

    def _mana_changed(self, before: int) -> None:
        if self._data.mana != before:
            self.notify(StateEvent.MANA_CHANGED, mana=self._data.mana, delta=self._data.mana - before)

    def _dungeon_changed(self) -> None:
        dungeon = self._data.dungeon
        self.notify(
            StateEvent.DUNGEON_CHANGED,
            dungeon_id=dungeon.dungeon_id,
            floor_number=dungeon.floor_number if dungeon.is_active else 0,
        )


def _known_class(class_id: str | None) -> CharacterClass | None:
    if class_id is None:
        return None
    try:
        return CharacterClass(class_id)
    except ValueError:
        logger.warning("Unknown remote character class ignored", extra={"class_id": class_id})
        return None
