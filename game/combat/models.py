"""Pydantic models for turn-based battles."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class BattlePhase(str, Enum):
    """Battle state machine phases."""

    INTRO = "intro"
    PLAYER_TURN = "player_turn"
    ENEMY_TURN = "enemy_turn"
    VICTORY = "victory"
    DEFEAT = "defeat"
    FLEE = "flee"


TERMINAL_PHASES = frozenset({BattlePhase.VICTORY, BattlePhase.DEFEAT, BattlePhase.FLEE})


class BattleOutcome(str, Enum):
    """How a battle ended, as reported to the caller."""

    VICTORY = "victory"
    DEFEAT = "defeat"
    FLEE = "flee"


class CombatActionType(str, Enum):
    """Player combat action types."""

    ATTACK = "attack"
    MAGIC = "magic"  # Costs mana, ignores defense
    DEFEND = "defend"  # Halves the next hit
    ITEM = "item"  # Use a consumable
    FLEE = "flee"  # Luck-based escape


class EnemyActionType(str, Enum):
    """What an enemy can do on its turn."""

    ATTACK = "attack"
    DEFEND = "defend"


class EnemyAI(str, Enum):
    """Enemy behaviour profiles."""

    BASIC = "basic"
    AGGRESSIVE = "aggressive"
    DEFENSIVE = "defensive"


class EnemyTier(str, Enum):
    """Enemy difficulty buckets."""

    LOW = "low"
    MID = "mid"
    HIGH = "high"
    BOSS = "boss"


class BuffType(str, Enum):
    """Stats a temporary battle buff can raise."""

    ATTACK = "attack"
    DEFENSE = "defense"
    LUCK = "luck"


class CombatAction(BaseModel):
    """Player's chosen combat action."""

    action_type: CombatActionType
    item_id: str | None = None  # For item actions


class EnemyDefinition(BaseModel):
    """Enemy template from the catalog."""

    id: str
    name: str
    max_hp: int = Field(..., ge=1)
    attack: int = Field(..., ge=0)
    defense: int = Field(..., ge=0)
    xp_reward: int = Field(..., ge=0)
    gold_min: int = Field(..., ge=0)
    gold_max: int = Field(..., ge=0)
    ai: EnemyAI = EnemyAI.BASIC
    tier: EnemyTier = EnemyTier.LOW


class CombatStats(BaseModel):
    """Per-battle copy of a combatant's stats.

    Built once at battle start; changes are written back to the character
    explicitly when the battle resolves.
    """

    name: str
    hp: int = Field(..., ge=0)
    max_hp: int = Field(..., ge=1)
    attack: int
    defense: int
    luck: int = 0
    mana: int = 0
    max_mana: int = 0


class ActiveBuff(BaseModel):
    """Temporary stat boost on the player for the rest of a battle."""

    type: BuffType
    value: int
    remaining_turns: int = Field(..., ge=1)
    source: str
    """Item ID that granted the buff."""


class DamageResult(BaseModel):
    """Outcome of one damage calculation."""

    damage: int = Field(..., ge=1)
    is_critical: bool = False
    was_defended: bool = False


class BattleContext(BaseModel):
    """Everything the caller supplies when starting a battle."""

    enemy: EnemyDefinition
    floor: int = Field(default=1, ge=1)
    dungeon_id: str | None = None
    return_target: str = "town"
    """Where the caller goes once the battle ends."""

    return_data: dict[str, Any] = Field(default_factory=dict)
    """Opaque caller data handed back on battle end."""


class CombatLogEntry(BaseModel):
    """Single entry in the battle log."""

    turn: int
    actor: str  # "player" or enemy name
    action: str
    damage: int | None = None
    is_critical: bool = False
    message: str


class VictoryRewards(BaseModel):
    """Rewards granted on victory."""

    gold: int
    xp: int
    levels_gained: int = 0
    new_levels: list[int] = Field(default_factory=list)
    """Each level reached, in order."""


class TurnResult(BaseModel):
    """Outcome of one player action and the enemy response."""

    accepted: bool
    """False if the action was refused; nothing changed and the turn was not used."""

    reason: str | None = None
    phase: BattlePhase
    log: list[CombatLogEntry] = Field(default_factory=list)
    rewards: VictoryRewards | None = None
    gold_lost: int = 0
