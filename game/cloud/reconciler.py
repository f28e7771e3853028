"""Keeps a CharacterState in step with the remote character record.

Pulls happen once per session (continue game). Pushes are autosaves that
fire after selected state changes; they never block gameplay and a failed
push leaves the game playable offline.

Pushes run one at a time. Each save request takes a generation number and a
queued push whose generation is no longer the newest is dropped, so the
remote record always ends on the last snapshot taken.
"""

import asyncio
from collections.abc import Awaitable, Callable

from aws_lambda_powertools import Logger

from character.events import StateChange, StateEvent
from character.models import CloudIdentity, DungeonProgress
from character.state import CharacterState
from shared.exceptions import GameStateError
from shared.models import CharacterRecord, InventorySlot

from .gateway import GatewayResult, PersistenceGateway, RetryPolicy, T, call_gateway

logger = Logger(child=True)

# Changes that trigger a full character autosave
AUTOSAVE_EVENTS = frozenset({
    StateEvent.BATTLE_WON,
    StateEvent.RESTED,
    StateEvent.ITEM_PURCHASED,
    StateEvent.ITEM_SOLD,
    StateEvent.EQUIPMENT_CHANGED,
    StateEvent.QUEST_COMPLETED,
})

# Remote dungeon ids that mean "no run in progress"
INACTIVE_DUNGEON_IDS = frozenset({"", "training"})


def remote_dungeon_progress(record: CharacterRecord) -> DungeonProgress | None:
    """Dungeon run to resume from a remote record, or None if it has none."""
    dungeon_id = record.current_dungeon_id
    if dungeon_id is None or dungeon_id in INACTIVE_DUNGEON_IDS:
        return None
    if not record.current_floor or record.current_floor < 1:
        return None
    return DungeonProgress(dungeon_id=dungeon_id, floor_number=record.current_floor)


class CloudReconciler:
    """Merges remote progress into local state and autosaves it back."""

    def __init__(
        self,
        state: CharacterState,
        gateway: PersistenceGateway,
        policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize reconciler.

        Args:
            state: Local character state
            gateway: Remote persistence store
            policy: Retry settings for gateway calls
        """
        self.state = state
        self.gateway = gateway
        self.policy = policy or RetryPolicy()
        self._pending: set[asyncio.Task] = set()
        self._attached = False
        self._save_lock = asyncio.Lock()
        self._character_generation = 0
        self._dungeon_generation = 0

    @property
    def character_id(self) -> str | None:
        identity = self.state.cloud_identity
        return identity.character_id if identity else None

    @property
    def is_cloud_sync_enabled(self) -> bool:
        return self.state.cloud_identity is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    async def has_saved_game(self) -> bool:
        """Whether the current user already has a remote character."""
        user_id = await self._current_user_id()
        if user_id is None:
            return False
        result = await self._call("get_character", lambda: self.gateway.get_character(user_id))
        return result.ok and result.value is not None

    async def load_from_cloud(self) -> bool:
        """Replace local progress with the remote character.

        Inventory is replaced only when the remote one is non-empty. A
        dungeon run is resumed only when the remote record holds an active
        one.

        Returns:
            True if remote state was loaded; False if offline or unavailable

        Raises:
            GameStateError: If a battle is in progress
        """
        if self.state.in_battle:
            raise GameStateError("Cannot load from cloud during a battle", current_state="in_battle")

        user_id = await self._current_user_id()
        if user_id is None:
            return False

        result = await self._call(
            "get_or_create_character", lambda: self.gateway.get_or_create_character(user_id)
        )
        if not result.ok or result.value is None:
            logger.warning("No remote character available, playing offline", extra={"user_id": user_id})
            return False
        record = result.value

        inventory = await self._call("get_inventory", lambda: self.gateway.get_inventory(record.id))
        items = None
        if inventory.ok and inventory.value:
            items = {slot.item_id: slot.quantity for slot in inventory.value}
        else:
            logger.warning(
                "Remote inventory empty or unavailable, keeping local inventory",
                extra={"character_id": record.id, "error": inventory.error},
            )

        self.state.load_remote(record, items=items, dungeon=remote_dungeon_progress(record))
        self.state.set_cloud_identity(CloudIdentity(user_id=user_id, character_id=record.id))
        logger.info("Loaded from cloud", extra={"character_id": record.id, "level": record.level})
        return True

    async def initialize_for_new_game(self) -> bool:
        """Establish the remote identity without pulling any progress.

        Returns:
            True if autosave now has a target
        """
        user_id = await self._current_user_id()
        if user_id is None:
            return False

        result = await self._call(
            "get_or_create_character", lambda: self.gateway.get_or_create_character(user_id)
        )
        if not result.ok or result.value is None:
            logger.warning("Cloud identity unavailable for new game", extra={"user_id": user_id})
            return False

        self.state.set_cloud_identity(CloudIdentity(user_id=user_id, character_id=result.value.id))
        logger.info("Cloud identity established", extra={"character_id": result.value.id})
        return True

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    async def save_to_cloud(self) -> bool:
        """Write the character record and inventory now."""
        snapshot = self._snapshot()
        if snapshot is None:
            return False
        self._character_generation += 1
        return await self._push_latest(self._character_generation, *snapshot)

    async def save_dungeon_progress(self) -> bool:
        """Write the current dungeon run now."""
        snapshot = self._dungeon_snapshot()
        if snapshot is None:
            return False
        self._dungeon_generation += 1
        return await self._push_dungeon_latest(self._dungeon_generation, *snapshot)

    def request_autosave(self) -> asyncio.Task | None:
        """Schedule a character save without waiting for it.

        The record is captured before this returns, so later changes do not
        leak into this save. If a newer save is requested before this one
        reaches the front of the queue, this one is skipped.

        Returns:
            The scheduled task, or None if sync is off or no loop is running
        """
        snapshot = self._snapshot()
        if snapshot is None:
            return None
        self._character_generation += 1
        generation = self._character_generation
        return self._spawn("autosave", lambda: self._push_latest(generation, *snapshot))

    def request_dungeon_sync(self) -> asyncio.Task | None:
        """Schedule a dungeon progress save without waiting for it."""
        snapshot = self._dungeon_snapshot()
        if snapshot is None:
            return None
        self._dungeon_generation += 1
        generation = self._dungeon_generation
        return self._spawn("dungeon_sync", lambda: self._push_dungeon_latest(generation, *snapshot))

    async def wait_for_pending(self) -> None:
        """Wait for every scheduled save to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Event wiring
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Start autosaving on state changes."""
        if self._attached:
            return
        for event in AUTOSAVE_EVENTS:
            self.state.subscribe(event, self._on_autosave_event)
        self.state.subscribe(StateEvent.DUNGEON_CHANGED, self._on_dungeon_event)
        self._attached = True

    def detach(self) -> None:
        """Stop autosaving."""
        if not self._attached:
            return
        for event in AUTOSAVE_EVENTS:
            self.state.unsubscribe(event, self._on_autosave_event)
        self.state.unsubscribe(StateEvent.DUNGEON_CHANGED, self._on_dungeon_event)
        self._attached = False

    def _on_autosave_event(self, change: StateChange) -> None:
        logger.debug("Autosave triggered", extra={"event": change.event.value})
        self.request_autosave()

    def _on_dungeon_event(self, change: StateChange) -> None:
        self.request_dungeon_sync()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _current_user_id(self) -> str | None:
        result = await self._call("get_current_user_id", self.gateway.get_current_user_id)
        if not result.ok or not result.value:
            logger.warning("No authenticated user, cloud sync disabled")
            return None
        return result.value

    async def _call(self, operation: str, call: Callable[[], Awaitable[T]]) -> GatewayResult[T]:
        return await call_gateway(operation, call, self.policy)

    def _snapshot(self) -> tuple[CharacterRecord, list[InventorySlot]] | None:
        identity = self.state.cloud_identity
        if identity is None:
            return None
        record = self.state.to_record(identity)
        slots = [
            InventorySlot(item_id=item_id, quantity=qty)
            for item_id, qty in sorted(self.state.items.items())
        ]
        return record, slots

    def _dungeon_snapshot(self) -> tuple[str, str | None, int] | None:
        identity = self.state.cloud_identity
        if identity is None:
            return None
        dungeon = self.state.dungeon
        floor = dungeon.floor_number if dungeon.is_active else 0
        return identity.character_id, dungeon.dungeon_id, floor

    async def _push_latest(
        self, generation: int, record: CharacterRecord, slots: list[InventorySlot]
    ) -> bool:
        async with self._save_lock:
            if generation != self._character_generation:
                logger.debug("Superseded character save skipped", extra={"generation": generation})
                return True
            return await self._push(record, slots)

    async def _push_dungeon_latest(
        self, generation: int, character_id: str, dungeon_id: str | None, floor: int
    ) -> bool:
        async with self._save_lock:
            if generation != self._dungeon_generation:
                logger.debug("Superseded dungeon save skipped", extra={"generation": generation})
                return True
            return await self._push_dungeon(character_id, dungeon_id, floor)

    async def _push(self, record: CharacterRecord, slots: list[InventorySlot]) -> bool:
        saved = await self._call("save_character", lambda: self.gateway.save_character(record))
        if not saved.ok:
            return False
        saved = await self._call("save_inventory", lambda: self.gateway.save_inventory(record.id, slots))
        if saved.ok:
            logger.info("Character saved to cloud", extra={"character_id": record.id})
        return saved.ok

    async def _push_dungeon(self, character_id: str, dungeon_id: str | None, floor: int) -> bool:
        saved = await self._call(
            "save_dungeon_progress",
            lambda: self.gateway.save_dungeon_progress(character_id, dungeon_id, floor),
        )
        if saved.ok:
            logger.info(
                "Dungeon progress saved",
                extra={"character_id": character_id, "dungeon_id": dungeon_id, "floor": floor},
            )
        return saved.ok

    def _spawn(self, name: str, make: Callable[[], Awaitable[bool]]) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, save skipped", extra={"save": name})
            return None
        task = loop.create_task(make(), name=f"studyquest-{name}")
        self._pending.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Background save crashed",
                extra={"task": task.get_name(), "error": str(error)},
            )
