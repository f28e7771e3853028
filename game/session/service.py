"""Game session - wires one character, its cloud sync and its battles together."""

import random
from typing import Any

from aws_lambda_powertools import Logger

from character.classes import CharacterClass
from character.quests import QuestLog
from character.shop import ShopService
from character.state import CharacterState
from cloud.dynamo_gateway import DynamoPersistenceGateway
from cloud.gateway import PersistenceGateway, RetryPolicy
from cloud.reconciler import CloudReconciler
from combat.engine import BattleEndCallback, CombatEngine
from combat.enemies import get_dungeon_tier, get_enemy
from combat.models import BattleContext, EnemyDefinition
from shared.config import Config, get_config
from shared.db import DynamoDBClient
from shared.exceptions import GameStateError

logger = Logger()


class GameSession:
    """One play session: a character, its cloud sync and at most one battle."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        state: CharacterState | None = None,
        policy: RetryPolicy | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize game session.

        Args:
            gateway: Remote persistence store
            state: Character state (a fresh starter character if omitted)
            policy: Retry settings for cloud calls
            rng: Random source for battles
        """
        self.state = state or CharacterState()
        self.reconciler = CloudReconciler(self.state, gateway, policy)
        self.quests = QuestLog(self.state)
        self.quests.attach()
        self.rng = rng or random.Random()
        self.battle: CombatEngine | None = None

    @classmethod
    def from_config(cls, config: Config | None = None) -> "GameSession":
        """Build a session backed by DynamoDB from environment configuration."""
        config = config or get_config()
        gateway = DynamoPersistenceGateway(DynamoDBClient(config.table_name), config.user_id)
        return cls(gateway, policy=RetryPolicy.from_config(config))

    @property
    def shop(self) -> ShopService:
        """Town shop stocking items up to the current dungeon's tier."""
        return ShopService(self.state, max_tier=max(1, get_dungeon_tier(self.state.dungeon.dungeon_id)))

    async def new_game(self, character_class: CharacterClass | str | None = None) -> bool:
        """Start over with a fresh level 1 character.

        Args:
            character_class: Class to play; the classless starter if omitted

        Returns:
            True if autosave has a remote target
        """
        self._require_no_battle()
        self.state.reset(character_class)
        synced = await self.reconciler.initialize_for_new_game()
        self.reconciler.attach()
        if synced:
            self.reconciler.request_autosave()
        logger.info(
            "New game started",
            extra={"cloud_sync": synced, "character_class": self.state.character_class},
        )
        return synced

    async def continue_game(self) -> bool:
        """Resume from the remote character.

        Returns:
            True if remote progress was loaded; False means local state is kept
        """
        self._require_no_battle()
        loaded = await self.reconciler.load_from_cloud()
        self.reconciler.attach()
        logger.info("Game continued", extra={"loaded_from_cloud": loaded, "level": self.state.level})
        return loaded

    def start_battle(
        self,
        enemy: EnemyDefinition | str,
        floor: int | None = None,
        dungeon_id: str | None = None,
        return_target: str = "town",
        return_data: dict[str, Any] | None = None,
        on_battle_end: BattleEndCallback | None = None,
    ) -> CombatEngine:
        """Begin a battle.

        Floor and dungeon default to the active run, if any.

        Args:
            enemy: Enemy definition or catalog ID
            floor: Dungeon floor for scaling
            dungeon_id: Dungeon for tier scaling
            return_target: Where the caller goes afterwards
            return_data: Opaque data handed back on battle end
            on_battle_end: Called once when the battle ends

        Returns:
            The running CombatEngine, in its intro phase

        Raises:
            GameStateError: If a battle is already running
            NotFoundError: If the enemy ID is unknown
        """
        self._require_no_battle()
        definition = get_enemy(enemy) if isinstance(enemy, str) else enemy
        dungeon = self.state.dungeon
        if dungeon.is_active:
            dungeon_id = dungeon_id or dungeon.dungeon_id
            floor = floor or dungeon.floor_number

        context = BattleContext(
            enemy=definition,
            floor=floor or 1,
            dungeon_id=dungeon_id,
            return_target=return_target,
            return_data=return_data or {},
        )
        self.battle = CombatEngine(self.state, context, on_battle_end=on_battle_end, rng=self.rng)
        return self.battle

    async def close(self) -> None:
        """Flush pending saves and stop autosaving."""
        await self.reconciler.wait_for_pending()
        self.reconciler.detach()
        self.quests.detach()

    def _require_no_battle(self) -> None:
        if self.battle is not None and not self.battle.is_over:
            raise GameStateError("A battle is in progress", current_state=self.battle.phase.value)
