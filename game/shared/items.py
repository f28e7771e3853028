"""Item catalog and starting inventory for StudyQuest.

The catalog is the read-only item capability consumed by the character
state, the shop and the combat engine. Nothing in the engine mutates it.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class ItemType(str, Enum):
    """Types of items in the game."""

    EQUIPMENT = "equipment"
    CONSUMABLE = "consumable"
    KEY_ITEM = "key_item"
    SPECIAL = "special"


class EquipmentSlot(str, Enum):
    """The three equipment slots a character has."""

    WEAPON = "weapon"
    ARMOR = "armor"
    ACCESSORY = "accessory"


class StatName(str, Enum):
    """Stats that equipment can modify."""

    ATTACK = "attack"
    DEFENSE = "defense"
    LUCK = "luck"
    MAX_HEALTH = "max_health"
    MAX_MANA = "max_mana"
    MANA_REGEN = "mana_regen"


class EffectType(str, Enum):
    """What a consumable does when used."""

    HEAL = "heal"
    MANA_RESTORE = "mana_restore"
    DAMAGE = "damage"  # Battle only
    BUFF_ATTACK = "buff_attack"  # Battle only
    BUFF_DEFENSE = "buff_defense"  # Battle only
    BUFF_LUCK = "buff_luck"  # Battle only


BATTLE_ONLY_EFFECTS = frozenset({
    EffectType.DAMAGE,
    EffectType.BUFF_ATTACK,
    EffectType.BUFF_DEFENSE,
    EffectType.BUFF_LUCK,
})


class ItemStats(BaseModel):
    """Stat bonuses granted while an item is equipped."""

    attack: int = 0
    defense: int = 0
    luck: int = 0
    max_health: int = 0
    max_mana: int = 0
    mana_regen: int = 0

    def bonus(self, stat: StatName) -> int:
        """Return the bonus this item grants to ``stat``."""
        return getattr(self, stat.value)


class ItemEffect(BaseModel):
    """Effect applied when a consumable is used."""

    type: EffectType
    value: int = Field(..., ge=0)
    duration: int = Field(default=0, ge=0)
    """Turns a buff lasts (buff effects only)."""


class ItemDefinition(BaseModel):
    """Item template from the catalog."""

    id: str  # Unique item ID (e.g., "health_potion")
    name: str  # Display name
    item_type: ItemType
    description: str = ""
    tier: int = Field(default=1, ge=1)
    # Equipment properties
    slot: EquipmentSlot | None = None
    stats: ItemStats | None = None
    # Consumable properties
    effect: ItemEffect | None = None
    # Economy
    buy_price: int = Field(default=0, ge=0)
    sell_price: int = Field(default=0, ge=0)
    purchasable: bool = True

    @model_validator(mode="after")
    def validate_shape(self) -> "ItemDefinition":
        """Equipment needs a slot, consumables need an effect."""
        if self.item_type == ItemType.EQUIPMENT and self.slot is None:
            raise ValueError(f"Equipment item '{self.id}' must define a slot")
        if self.item_type == ItemType.CONSUMABLE and self.effect is None:
            raise ValueError(f"Consumable item '{self.id}' must define an effect")
        return self

    @property
    def is_equipment(self) -> bool:
        """Whether this item can go into an equipment slot."""
        return self.item_type == ItemType.EQUIPMENT and self.slot is not None

    @property
    def is_consumable(self) -> bool:
        """Whether this item is consumed on use."""
        return self.item_type == ItemType.CONSUMABLE and self.effect is not None


def _weapon(item_id, name, tier, attack, buy, sell, description="", **extra) -> ItemDefinition:
    return ItemDefinition(
        id=item_id,
        name=name,
        item_type=ItemType.EQUIPMENT,
        slot=EquipmentSlot.WEAPON,
        tier=tier,
        stats=ItemStats(attack=attack, **extra),
        buy_price=buy,
        sell_price=sell,
        description=description,
    )


def _armor(item_id, name, tier, defense, buy, sell, description="", **extra) -> ItemDefinition:
    return ItemDefinition(
        id=item_id,
        name=name,
        item_type=ItemType.EQUIPMENT,
        slot=EquipmentSlot.ARMOR,
        tier=tier,
        stats=ItemStats(defense=defense, **extra),
        buy_price=buy,
        sell_price=sell,
        description=description,
    )


def _accessory(item_id, name, tier, buy, sell, description="", **stats) -> ItemDefinition:
    return ItemDefinition(
        id=item_id,
        name=name,
        item_type=ItemType.EQUIPMENT,
        slot=EquipmentSlot.ACCESSORY,
        tier=tier,
        stats=ItemStats(**stats),
        buy_price=buy,
        sell_price=sell,
        description=description,
    )


def _consumable(
    item_id, name, tier, effect, value, buy, sell, description="", duration=0
) -> ItemDefinition:
    return ItemDefinition(
        id=item_id,
        name=name,
        item_type=ItemType.CONSUMABLE,
        tier=tier,
        effect=ItemEffect(type=effect, value=value, duration=duration),
        buy_price=buy,
        sell_price=sell,
        description=description,
    )


# =============================================================================
# ITEM CATALOG - All items that can exist in the game
# =============================================================================

_ITEMS: list[ItemDefinition] = [
    # Tier 1 - Training Grounds
    _consumable("health_potion", "Health Potion", 1, EffectType.HEAL, 30, 15, 5,
                "Restores 30 HP."),
    _consumable("mana_vial", "Mana Vial", 1, EffectType.MANA_RESTORE, 15, 20, 7,
                "Restores 15 MP."),
    _consumable("strength_tonic", "Strength Tonic", 1, EffectType.BUFF_ATTACK, 3, 25, 8,
                "Boosts ATK by 3 for 3 turns.", duration=3),
    _weapon("wooden_sword", "Wooden Sword", 1, 5, 50, 15,
            "A basic wooden training sword."),
    _weapon("fishbone_dagger", "Fishbone Dagger", 1, 7, 80, 25,
            "A sharp dagger made from a giant fish bone."),
    _armor("leather_armor", "Leather Armor", 1, 3, 40, 12,
           "Basic leather protection."),
    _accessory("lucky_charm", "Lucky Charm", 1, 100, 30,
               "Increases critical hit chance.", luck=5),
    # Tier 2 - Enchanted Forest
    _consumable("greater_potion", "Greater Potion", 2, EffectType.HEAL, 60, 30, 10,
                "Restores 60 HP."),
    _consumable("mana_flask", "Mana Flask", 2, EffectType.MANA_RESTORE, 30, 40, 13,
                "Restores 30 MP."),
    _consumable("forest_brew", "Forest Brew", 2, EffectType.BUFF_DEFENSE, 4, 45, 15,
                "Boosts DEF by 4 for 3 turns.", duration=3),
    _consumable("yarn_ball_bomb", "Yarn Ball Bomb", 2, EffectType.DAMAGE, 25, 35, 12,
                "An explosive yarn ball! Deals 25 damage to an enemy."),
    _weapon("iron_sword", "Iron Sword", 2, 12, 150, 50, "A sturdy iron blade."),
    _weapon("thorn_whip", "Thorn Whip", 2, 10, 180, 60,
            "A whip woven from enchanted forest vines.", luck=2),
    _armor("iron_armor", "Iron Armor", 2, 8, 200, 65,
           "Heavy iron plate armor.", max_health=20),
    _armor("tuna_can_shield", "Tuna Can Shield", 2, 5, 120, 40,
           "A shield made from a giant tuna can."),
    _accessory("forest_amulet", "Forest Amulet", 2, 180, 55,
               "An amulet infused with forest magic.", max_mana=10, mana_regen=1),
    # Tier 3 - Crystal Caves
    _consumable("super_potion", "Super Potion", 3, EffectType.HEAL, 100, 60, 20,
                "Restores 100 HP."),
    _consumable("mana_crystal", "Mana Crystal", 3, EffectType.MANA_RESTORE, 50, 70, 23,
                "Restores 50 MP."),
    _consumable("crystal_elixir", "Crystal Elixir", 3, EffectType.BUFF_LUCK, 10, 80, 25,
                "Boosts LUCK by 10 for 5 turns.", duration=5),
    _weapon("crystal_sword", "Crystal Sword", 3, 18, 300, 95,
            "A blade forged from pure cave crystal."),
    _weapon("crystal_staff", "Crystal Staff", 3, 10, 350, 110,
            "A staff that channels crystalline energy.", max_mana=20),
    _armor("crystal_armor", "Crystal Armor", 3, 14, 400, 130,
           "Armor made from interlocking crystal plates.", max_health=30),
    _accessory("mana_ring", "Mana Ring", 3, 300, 95,
               "A ring that enhances magical capacity.", max_mana=25, mana_regen=2),
    # Tier 4 - Ancient Library
    _consumable("max_potion", "Max Potion", 4, EffectType.HEAL, 999, 100, 30,
                "Fully restores HP."),
    _consumable("scholars_focus", "Scholar's Focus", 4, EffectType.BUFF_ATTACK, 8, 120, 35,
                "Boosts ATK by 8 for 4 turns.", duration=4),
    _weapon("quill_blade", "Quill Blade", 4, 22, 500, 160,
            "A sword shaped like an oversized quill pen."),
    _armor("librarian_robe", "Librarian's Robe", 4, 18, 550, 175,
           "Enchanted robes worn by ancient library keepers.", max_mana=15),
    _accessory("reading_glasses", "Enchanted Reading Glasses", 4, 450, 140,
               "Magical spectacles that enhance perception.", luck=12),
    # Tier 5 - Volcano
    _consumable("lava_brew", "Lava Brew", 5, EffectType.HEAL, 150, 150, 45,
                "Restores 150 HP."),
    _consumable("molten_mana", "Molten Mana", 5, EffectType.MANA_RESTORE, 100, 150, 45,
                "Restores 100 MP."),
    _weapon("flame_sword", "Flame Sword", 5, 30, 800, 260,
            "A blade wreathed in eternal flames."),
    _armor("dragon_scale_armor", "Dragon Scale Armor", 5, 25, 850, 275,
           "Armor crafted from volcanic dragon scales.", max_health=50),
    _accessory("ember_pendant", "Ember Pendant", 5, 700, 225,
               "A pendant with a forever-burning ember inside.", attack=8),
    # Tier 6 - The Void
    _consumable("void_elixir", "Void Elixir", 6, EffectType.HEAL, 250, 300, 90,
                "Restores 250 HP."),
    _consumable("void_shield_potion", "Void Shield Potion", 6, EffectType.BUFF_DEFENSE, 15,
                350, 105, "Boosts DEF by 15 for 5 turns.", duration=5),
    _weapon("void_blade", "Void Blade", 6, 45, 1500, 480,
            "A sword forged from solidified nothingness."),
    _armor("reality_warper_armor", "Reality Warper Armor", 6, 35, 1600, 520,
           "Armor that bends reality to protect its wearer.", max_health=80),
    _accessory("cosmic_amulet", "Cosmic Amulet", 6, 1400, 450,
               "An amulet containing a tiny universe.", luck=10, max_mana=40, mana_regen=3),
    # Key items
    ItemDefinition(
        id="dungeon_key",
        name="Dungeon Key",
        item_type=ItemType.KEY_ITEM,
        description="Opens a locked door somewhere below.",
        purchasable=False,
    ),
]

ITEM_CATALOG: dict[str, ItemDefinition] = {item.id: item for item in _ITEMS}

# Inventory a brand-new character starts with
STARTING_ITEMS: dict[str, int] = {"health_potion": 3}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def get_item(item_id: str) -> ItemDefinition | None:
    """Look up an item definition by ID.

    Args:
        item_id: Catalog item ID

    Returns:
        ItemDefinition if found, None otherwise
    """
    return ITEM_CATALOG.get(item_id)


def shop_items(max_tier: int) -> list[ItemDefinition]:
    """List purchasable items up to a tier, cheapest first.

    Args:
        max_tier: Highest tier the shop stocks

    Returns:
        Purchasable item definitions sorted by buy price
    """
    stock = [
        item
        for item in ITEM_CATALOG.values()
        if item.purchasable and item.tier <= max_tier
    ]
    return sorted(stock, key=lambda item: (item.buy_price, item.id))


def get_starting_items() -> dict[str, int]:
    """Get the starting inventory for a new game.

    Returns:
        Mapping of item ID to quantity (a copy, safe to modify)
    """
    return dict(STARTING_ITEMS)
