"""Character classes and the bonuses they grant."""

from enum import Enum

from pydantic import BaseModel

from shared.exceptions import NotFoundError


class CharacterClass(str, Enum):
    SCHOLAR = "scholar"
    KNIGHT = "knight"
    ROGUE = "rogue"


class ClassBonus(str, Enum):
    """Which reward or roll a class improves."""

    XP_GAIN = "xp_gain"
    GOLD_GAIN = "gold_gain"
    CRIT_CHANCE = "crit_chance"


class ClassDefinition(BaseModel):
    """Starting stats and special bonus of a class."""

    id: CharacterClass
    name: str
    description: str
    base_hp: int
    base_attack: int
    base_defense: int
    bonus: ClassBonus
    bonus_percent: int = 25


CLASS_DEFINITIONS: dict[CharacterClass, ClassDefinition] = {
    CharacterClass.SCHOLAR: ClassDefinition(
        id=CharacterClass.SCHOLAR,
        name="Scholar",
        description="A wise student who gains extra experience.",
        base_hp=80,
        base_attack=8,
        base_defense=6,
        bonus=ClassBonus.XP_GAIN,
    ),
    CharacterClass.KNIGHT: ClassDefinition(
        id=CharacterClass.KNIGHT,
        name="Knight",
        description="A stalwart warrior who earns more gold.",
        base_hp=120,
        base_attack=10,
        base_defense=8,
        bonus=ClassBonus.GOLD_GAIN,
    ),
    CharacterClass.ROGUE: ClassDefinition(
        id=CharacterClass.ROGUE,
        name="Rogue",
        description="A swift adventurer with a keen eye for critical strikes.",
        base_hp=90,
        base_attack=12,
        base_defense=4,
        bonus=ClassBonus.CRIT_CHANCE,
    ),
}


def get_class(class_id: CharacterClass | str) -> ClassDefinition:
    """Look up a class definition.

    Raises:
        NotFoundError: If ``class_id`` is not a known class
    """
    try:
        return CLASS_DEFINITIONS[CharacterClass(class_id)]
    except ValueError:
        raise NotFoundError("CharacterClass", str(class_id)) from None


def bonus_percent(class_id: CharacterClass | None, bonus: ClassBonus) -> int:
    """Percent bonus ``class_id`` grants to ``bonus``; 0 for classless characters."""
    if class_id is None:
        return 0
    definition = CLASS_DEFINITIONS[class_id]
    return definition.bonus_percent if definition.bonus == bonus else 0


def apply_bonus(amount: int, percent: int) -> int:
    """``amount`` raised by ``percent``, rounded down."""
    return amount * (100 + percent) // 100
