"""Turn-based battle state machine.

A CombatEngine runs one battle between the player and a single enemy:

    intro -> player_turn <-> enemy_turn -> victory | defeat | flee

The player's stats are copied into a CombatStats snapshot at the start.
HP and mana are written back to the character after every accepted
action; gold, XP and the battle record change only when the battle ends.
"""

import math
import random
from collections.abc import Callable
from typing import Any

from aws_lambda_powertools import Logger

from character.classes import ClassBonus, apply_bonus, bonus_percent
from character.state import CharacterState
from shared.exceptions import GameStateError, ValidationError
from shared.items import EffectType

from .enemies import get_dungeon_tier, scale_enemy_stats
from .models import (
    TERMINAL_PHASES,
    ActiveBuff,
    BattleContext,
    BattleOutcome,
    BattlePhase,
    BuffType,
    CombatAction,
    CombatActionType,
    CombatLogEntry,
    CombatStats,
    EnemyActionType,
    TurnResult,
    VictoryRewards,
)
from .rewards import gold_reward, xp_reward
from .rules import (
    MAGIC_MANA_COST,
    attempt_flee,
    buff_bonus,
    calculate_damage,
    decide_enemy_action,
    magic_damage,
    tick_buffs,
)

logger = Logger(child=True)

# Fraction of gold lost on defeat
DEFEAT_GOLD_PENALTY = 0.10

# Fraction of effective max HP restored after defeat
DEFEAT_HP_RECOVERY = 0.25

PLAYER = "player"

BUFF_EFFECTS = {
    EffectType.BUFF_ATTACK: BuffType.ATTACK,
    EffectType.BUFF_DEFENSE: BuffType.DEFENSE,
    EffectType.BUFF_LUCK: BuffType.LUCK,
}

BattleEndCallback = Callable[[BattleOutcome, dict[str, Any]], None]


class _Rejected(Exception):
    """Player action refused by the rules; nothing changed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class CombatEngine:
    """Runs a single battle against one enemy."""

    def __init__(
        self,
        state: CharacterState,
        context: BattleContext,
        on_battle_end: BattleEndCallback | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Set up a battle.

        Args:
            state: Player character (locked for equipment changes until the end)
            context: Enemy, floor, dungeon and return target
            on_battle_end: Called exactly once with the outcome and return data
            rng: Random source; seed it for reproducible battles

        Raises:
            GameStateError: If the player has no HP or is already in a battle
        """
        if state.health <= 0:
            raise GameStateError("Cannot start a battle with 0 HP", current_state="defeated")

        self.state = state
        self.context = context
        self.rng = rng or random.Random()
        self._on_battle_end = on_battle_end

        self.dungeon_tier = get_dungeon_tier(context.dungeon_id)
        scaled = scale_enemy_stats(context.enemy, context.floor, self.dungeon_tier)
        self.enemy_definition = scaled
        self.enemy = CombatStats(
            name=scaled.name,
            hp=scaled.max_hp,
            max_hp=scaled.max_hp,
            attack=scaled.attack,
            defense=scaled.defense,
        )
        stats = state.effective_stats()
        self.player = CombatStats(
            name=PLAYER,
            hp=state.health,
            max_hp=stats.max_health,
            attack=stats.attack,
            defense=stats.defense,
            luck=stats.luck,
            mana=state.mana,
            max_mana=state.max_mana,
        )

        self.phase = BattlePhase.INTRO
        self.turn = 1
        self.log: list[CombatLogEntry] = []
        self.buffs: list[ActiveBuff] = []
        self.player_defending = False
        self.enemy_defending = False
        self.outcome: BattleOutcome | None = None
        self.rewards: VictoryRewards | None = None
        self._gold_lost = 0
        self._action_in_progress = False
        self._end_notified = False

        state.begin_battle()
        logger.info(
            "Battle started",
            extra={
                "enemy": scaled.id,
                "floor": context.floor,
                "dungeon_id": context.dungeon_id,
                "enemy_hp": scaled.max_hp,
            },
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def intro_message(self) -> str:
        return f"A wild {self.enemy.name} appears!"

    @property
    def is_over(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def acknowledge_intro(self) -> BattlePhase:
        """Move from the intro to the player's first turn.

        Raises:
            GameStateError: If the intro was already acknowledged
        """
        self._require_phase(BattlePhase.INTRO)
        self.phase = BattlePhase.PLAYER_TURN
        return self.phase

    def perform(self, action: CombatAction) -> TurnResult:
        """Resolve one player action and, if the battle goes on, the enemy's reply.

        Args:
            action: The player's action

        Returns:
            TurnResult; ``accepted=False`` when the rules refused the action
            or another action is still resolving (a listener acting from
            inside a state change). Nothing changes in either case.

        Raises:
            GameStateError: If it is not the player's turn
        """
        if self._action_in_progress:
            logger.debug("Nested action ignored", extra={"action": action.action_type.value})
            return TurnResult(accepted=False, reason="action_in_progress", phase=self.phase)
        self._require_phase(BattlePhase.PLAYER_TURN)

        self._action_in_progress = True
        log_start = len(self.log)
        try:
            try:
                self._resolve_player_action(action)
            except _Rejected as rejected:
                logger.debug(
                    "Action rejected",
                    extra={"action": action.action_type.value, "reason": rejected.reason},
                )
                return TurnResult(accepted=False, reason=rejected.reason, phase=self.phase)

            if self.phase == BattlePhase.FLEE:
                self._write_back()
                self._finish(BattleOutcome.FLEE)
            elif self.enemy.hp <= 0:
                self._win()
            else:
                self._enemy_turn()

            return TurnResult(
                accepted=True,
                phase=self.phase,
                log=self.log[log_start:],
                rewards=self.rewards,
                gold_lost=self._gold_lost if self.phase == BattlePhase.DEFEAT else 0,
            )
        finally:
            self._action_in_progress = False

    def attack(self) -> TurnResult:
        return self.perform(CombatAction(action_type=CombatActionType.ATTACK))

    def cast_magic(self) -> TurnResult:
        return self.perform(CombatAction(action_type=CombatActionType.MAGIC))

    def defend(self) -> TurnResult:
        return self.perform(CombatAction(action_type=CombatActionType.DEFEND))

    def use_item(self, item_id: str) -> TurnResult:
        return self.perform(CombatAction(action_type=CombatActionType.ITEM, item_id=item_id))

    def flee(self) -> TurnResult:
        return self.perform(CombatAction(action_type=CombatActionType.FLEE))

    # ------------------------------------------------------------------
    # Player actions
    # ------------------------------------------------------------------

    def _resolve_player_action(self, action: CombatAction) -> None:
        action_type = action.action_type
        if action_type == CombatActionType.ATTACK:
            self._player_attack()
        elif action_type == CombatActionType.MAGIC:
            self._player_magic()
        elif action_type == CombatActionType.DEFEND:
            self.player_defending = True
            self._log(PLAYER, "defend", message="You brace yourself.")
        elif action_type == CombatActionType.ITEM:
            self._player_item(action.item_id)
        else:
            self._player_flee()

    def _player_attack(self) -> None:
        result = calculate_damage(
            attack=self.player.attack + buff_bonus(self.buffs, BuffType.ATTACK),
            defense=self.enemy.defense,
            rng=self.rng,
            luck=self.player.luck + buff_bonus(self.buffs, BuffType.LUCK),
            defending=self.enemy_defending,
            crit_bonus_percent=bonus_percent(self.state.character_class, ClassBonus.CRIT_CHANCE),
        )
        self.enemy_defending = False
        self.enemy.hp = max(0, self.enemy.hp - result.damage)
        message = f"You hit {self.enemy.name} for {result.damage} damage."
        if result.is_critical:
            message = "Critical hit! " + message
        self._log(PLAYER, "attack", damage=result.damage, is_critical=result.is_critical, message=message)

    def _player_magic(self) -> None:
        if self.player.mana < MAGIC_MANA_COST:
            raise _Rejected("insufficient_mana")
        self.player.mana -= MAGIC_MANA_COST
        damage = magic_damage(self.player.attack + buff_bonus(self.buffs, BuffType.ATTACK))
        self.enemy.hp = max(0, self.enemy.hp - damage)
        message = f"Your spell blasts {self.enemy.name} for {damage} damage."
        self._log(PLAYER, "magic", damage=damage, message=message)

    def _player_item(self, item_id: str | None) -> None:
        if not item_id:
            raise ValidationError("Item actions need an item_id", field="item_id")

        item = self.state.lookup(item_id)
        if item is None or not item.is_consumable:
            raise _Rejected("not_consumable")
        if not self.state.has_item(item_id):
            raise _Rejected("not_owned")

        effect = item.effect
        if effect.type == EffectType.HEAL and self.player.hp >= self.player.max_hp:
            raise _Rejected("health_full")
        if effect.type == EffectType.MANA_RESTORE and self.player.mana >= self.player.max_mana:
            raise _Rejected("mana_full")

        self.state.remove_item(item_id)
        if effect.type == EffectType.HEAL:
            before = self.player.hp
            self.player.hp = min(self.player.max_hp, before + effect.value)
            message = f"You use {item.name} and recover {self.player.hp - before} HP."
        elif effect.type == EffectType.MANA_RESTORE:
            before = self.player.mana
            self.player.mana = min(self.player.max_mana, before + effect.value)
            message = f"You use {item.name} and recover {self.player.mana - before} MP."
        elif effect.type == EffectType.DAMAGE:
            self.enemy.hp = max(0, self.enemy.hp - effect.value)
            message = f"You throw {item.name} for {effect.value} damage."
        else:
            buff_type = BUFF_EFFECTS[effect.type]
            self.buffs.append(ActiveBuff(
                type=buff_type,
                value=effect.value,
                remaining_turns=max(1, effect.duration),
                source=item_id,
            ))
            message = f"You use {item.name}. {buff_type.value.upper()} +{effect.value}."
        self._log(PLAYER, "item", message=message)

    def _player_flee(self) -> None:
        luck = self.player.luck + buff_bonus(self.buffs, BuffType.LUCK)
        if attempt_flee(luck, self.rng):
            self.phase = BattlePhase.FLEE
            self._log(PLAYER, "flee", message="You got away safely!")
        else:
            self._log(PLAYER, "flee", message="You couldn't escape!")

    # ------------------------------------------------------------------
    # Enemy turn
    # ------------------------------------------------------------------

    def _enemy_turn(self) -> None:
        self.phase = BattlePhase.ENEMY_TURN
        choice = decide_enemy_action(
            self.enemy_definition.ai, self.enemy.hp, self.enemy.max_hp, self.rng
        )

        if choice == EnemyActionType.DEFEND:
            self.enemy_defending = True
            self._log(self.enemy.name, "defend", message=f"{self.enemy.name} takes a defensive stance.")
        else:
            result = calculate_damage(
                attack=self.enemy.attack,
                defense=self.player.defense + buff_bonus(self.buffs, BuffType.DEFENSE),
                rng=self.rng,
                defending=self.player_defending,
            )
            self.player.hp = max(0, self.player.hp - result.damage)
            message = f"{self.enemy.name} hits you for {result.damage} damage."
            if result.was_defended:
                message += " (blocked half)"
            self._log(
                self.enemy.name, "attack", damage=result.damage, is_critical=result.is_critical, message=message
            )

        self.player_defending = False
        self.buffs = tick_buffs(self.buffs)
        self._write_back()

        if self.player.hp <= 0:
            self._lose()
        else:
            self.turn += 1
            self.phase = BattlePhase.PLAYER_TURN

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _win(self) -> None:
        self.phase = BattlePhase.VICTORY
        self._write_back()
        self.state.end_battle()

        base = self.context.enemy
        floor = self.context.floor
        character_class = self.state.character_class
        gold = apply_bonus(
            gold_reward(base, floor, self.dungeon_tier),
            bonus_percent(character_class, ClassBonus.GOLD_GAIN),
        )
        xp = apply_bonus(
            xp_reward(base, floor, self.dungeon_tier),
            bonus_percent(character_class, ClassBonus.XP_GAIN),
        )
        self.state.add_gold(gold)
        grant = self.state.add_xp(xp)
        self.rewards = VictoryRewards(
            gold=gold,
            xp=xp,
            levels_gained=grant.levels_gained,
            new_levels=[lu.level for lu in grant.level_ups],
        )
        self.state.record_battle_win()

        self._log(PLAYER, "victory", message=f"{self.enemy.name} was defeated! +{gold} gold, +{xp} XP.")
        self._finish(BattleOutcome.VICTORY)

    def _lose(self) -> None:
        self.phase = BattlePhase.DEFEAT
        self.state.end_battle()

        self._gold_lost = math.floor(self.state.gold * DEFEAT_GOLD_PENALTY)
        self.state.spend_gold(self._gold_lost)
        recovered = max(1, math.floor(self.state.effective_max_health * DEFEAT_HP_RECOVERY))
        self.state.set_health(recovered)
        self.state.clear_dungeon_run()
        self.state.record_battle_loss()

        self._log(self.enemy.name, "defeat", message=f"You were defeated and lost {self._gold_lost} gold.")
        self._finish(BattleOutcome.DEFEAT)

    def _finish(self, outcome: BattleOutcome) -> None:
        self.outcome = outcome
        self.state.end_battle()
        logger.info(
            "Battle ended",
            extra={"outcome": outcome.value, "enemy": self.enemy_definition.id, "turns": self.turn},
        )
        if self._end_notified:
            return
        self._end_notified = True
        if self._on_battle_end is not None:
            self._on_battle_end(outcome, self._return_data())

    def _return_data(self) -> dict[str, Any]:
        data = dict(self.context.return_data)
        data["return_target"] = self.context.return_target
        if self.rewards is not None:
            data["rewards"] = self.rewards.model_dump()
        return data

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write_back(self) -> None:
        self.state.set_health(self.player.hp)
        self.state.set_mana(self.player.mana)

    def _require_phase(self, phase: BattlePhase) -> None:
        if self.phase != phase:
            raise GameStateError(
                f"Expected phase {phase.value}, battle is in {self.phase.value}",
                current_state=self.phase.value,
            )

    def _log(
        self,
        actor: str,
        action: str,
        message: str,
        damage: int | None = None,
        is_critical: bool = False,
    ) -> None:
        entry = CombatLogEntry(
            turn=self.turn,
            actor=actor,
            action=action,
            damage=damage,
            is_critical=is_critical,
            message=message,
        )
        self.log.append(entry)
        logger.debug("Combat log", extra=entry.model_dump())
