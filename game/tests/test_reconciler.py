"""Tests for cloud reconciliation and autosave."""

import asyncio

import pytest

from character.models import CloudIdentity
from character.shop import ShopService
from cloud.gateway import RetryPolicy
from cloud.reconciler import CloudReconciler, remote_dungeon_progress
from shared.exceptions import GameStateError
from shared.items import EquipmentSlot
from shared.models import CharacterRecord, InventorySlot

FAST = RetryPolicy(max_attempts=2, delay=0, timeout=1)


@pytest.fixture
def reconciler(state, gateway):
    """Reconciler over the fake gateway."""
    return CloudReconciler(state, gateway, FAST)


@pytest.fixture
def remote(gateway):
    """A saved level 5 character mid-run in the forest."""
    record = CharacterRecord(
        id="char-1", user_id="user-1", level=5, xp=900, hp=80, max_hp=150, gold=420,
        attack=25, defense=11, equipped_armor_id="leather_armor",
        current_dungeon_id="forest", current_floor=3,
    )
    gateway.characters["user-1"] = record
    gateway.inventories["char-1"] = [InventorySlot(item_id="mana_vial", quantity=4)]
    return record


class TestRemoteDungeon:
    """Tests for deciding whether a remote run is active."""

    @pytest.mark.parametrize(
        ("dungeon_id", "floor", "active"),
        [
            ("forest", 3, True),
            ("training", 2, False),
            ("", 2, False),
            (None, 2, False),
            ("forest", 0, False),
            ("forest", None, False),
        ],
    )
    def test_active_run_detection(self, dungeon_id, floor, active):
        record = CharacterRecord(id="c", user_id="u", current_dungeon_id=dungeon_id, current_floor=floor)
        assert (remote_dungeon_progress(record) is not None) == active


class TestLoadFromCloud:
    """Tests for pulling remote state."""

    @pytest.mark.asyncio
    async def test_overwrites_local_state(self, reconciler, state, remote):
        assert await reconciler.load_from_cloud()
        assert (state.level, state.xp, state.gold) == (5, 900, 420)
        assert (state.health, state.max_health) == (80, 150)
        assert (state.attack, state.defense) == (25, 11)
        assert state.equipped.armor == "leather_armor"
        assert state.items == {"mana_vial": 4}
        assert state.dungeon.dungeon_id == "forest"
        assert state.dungeon.floor_number == 3
        assert reconciler.character_id == "char-1"
        assert reconciler.is_cloud_sync_enabled

    @pytest.mark.asyncio
    async def test_empty_remote_inventory_keeps_local(self, reconciler, state, remote, gateway):
        gateway.inventories["char-1"] = []
        await reconciler.load_from_cloud()
        assert state.items == {"health_potion": 3}

    @pytest.mark.asyncio
    async def test_inventory_failure_keeps_local(self, reconciler, state, remote, gateway):
        gateway.fail_operations.add("get_inventory")
        assert await reconciler.load_from_cloud()
        assert state.items == {"health_potion": 3}
        assert state.level == 5

    @pytest.mark.asyncio
    async def test_sentinel_dungeon_not_imported(self, reconciler, state, remote):
        remote.current_dungeon_id = "training"
        state.enter_dungeon("crystal", 2)
        await reconciler.load_from_cloud()
        assert state.dungeon.dungeon_id == "crystal"
        assert state.dungeon.floor_number == 2

    @pytest.mark.asyncio
    async def test_offline_when_no_user(self, state, gateway):
        gateway.user_id = None
        reconciler = CloudReconciler(state, gateway, FAST)
        assert not await reconciler.load_from_cloud()
        assert reconciler.character_id is None
        assert state.level == 1

    @pytest.mark.asyncio
    async def test_network_failure_is_not_fatal(self, reconciler, state, remote, gateway):
        gateway.fail_operations.add("get_or_create_character")
        assert not await reconciler.load_from_cloud()
        assert reconciler.character_id is None
        assert state.gold == 50
        assert gateway.calls.count("get_or_create_character") == FAST.max_attempts

    @pytest.mark.asyncio
    async def test_refused_mid_battle(self, reconciler, state, remote):
        state.begin_battle()
        with pytest.raises(GameStateError):
            await reconciler.load_from_cloud()

    @pytest.mark.asyncio
    async def test_has_saved_game(self, reconciler, gateway, remote):
        assert await reconciler.has_saved_game()
        gateway.characters.clear()
        assert not await reconciler.has_saved_game()


class TestNewGame:
    """Tests for establishing identity without pulling."""

    @pytest.mark.asyncio
    async def test_identity_only(self, reconciler, state, remote):
        assert await reconciler.initialize_for_new_game()
        assert reconciler.character_id == "char-1"
        assert state.level == 1
        assert state.gold == 50

    @pytest.mark.asyncio
    async def test_creates_remote_character(self, reconciler, gateway):
        assert await reconciler.initialize_for_new_game()
        assert reconciler.character_id == "char-user-1"

    @pytest.mark.asyncio
    async def test_failure_leaves_sync_off(self, reconciler, gateway):
        gateway.fail_operations.add("get_or_create_character")
        assert not await reconciler.initialize_for_new_game()
        assert not reconciler.is_cloud_sync_enabled


class TestSave:
    """Tests for pushing state."""

    @pytest.mark.asyncio
    async def test_save_without_identity(self, reconciler, gateway):
        assert not await reconciler.save_to_cloud()
        assert gateway.character_saves == []

    @pytest.mark.asyncio
    async def test_save_to_cloud(self, reconciler, state, gateway):
        state.set_cloud_identity(CloudIdentity(user_id="user-1", character_id="char-1"))
        state.add_gold(10)
        assert await reconciler.save_to_cloud()
        assert gateway.characters["user-1"].gold == 60
        assert gateway.inventories["char-1"] == [InventorySlot(item_id="health_potion", quantity=3)]

    @pytest.mark.asyncio
    async def test_save_failure_reported(self, reconciler, state, gateway):
        state.set_cloud_identity(CloudIdentity(user_id="user-1", character_id="char-1"))
        gateway.fail_operations.add("save_character")
        assert not await reconciler.save_to_cloud()

    @pytest.mark.asyncio
    async def test_save_dungeon_progress(self, reconciler, state, gateway):
        state.set_cloud_identity(CloudIdentity(user_id="user-1", character_id="char-1"))
        state.enter_dungeon("volcano", 4)
        assert await reconciler.save_dungeon_progress()
        assert gateway.dungeon_saves == [("char-1", "volcano", 4)]


class TestAutosave:
    """Tests for fire-and-forget saves driven by state changes."""

    @pytest.fixture
    def synced(self, state, reconciler):
        """State with an identity and autosave attached."""
        state.set_cloud_identity(CloudIdentity(user_id="user-1", character_id="char-1"))
        reconciler.attach()
        return state

    @pytest.mark.asyncio
    async def test_purchase_triggers_autosave(self, synced, reconciler, gateway):
        ShopService(synced).buy_item("health_potion")
        assert reconciler.pending_count == 1
        await reconciler.wait_for_pending()
        assert gateway.characters["user-1"].gold == 35
        assert reconciler.pending_count == 0

    @pytest.mark.asyncio
    async def test_snapshot_taken_at_request_time(self, synced, reconciler, gateway):
        """Later local changes do not leak into an earlier save."""
        shop = ShopService(synced)
        shop.buy_item("health_potion")
        synced.add_gold(1000)
        await reconciler.wait_for_pending()
        assert gateway.character_saves[0].gold == 35

    @pytest.mark.asyncio
    async def test_equip_and_unequip_trigger_autosave(self, synced, reconciler, gateway):
        synced.add_item("wooden_sword")
        synced.equip("wooden_sword")
        await reconciler.wait_for_pending()
        synced.unequip(EquipmentSlot.WEAPON)
        await reconciler.wait_for_pending()
        assert [r.equipped_weapon_id for r in gateway.character_saves] == ["wooden_sword", None]

    @pytest.mark.asyncio
    async def test_gold_change_alone_does_not_autosave(self, synced, reconciler, gateway):
        synced.add_gold(5)
        await reconciler.wait_for_pending()
        assert gateway.character_saves == []

    @pytest.mark.asyncio
    async def test_dungeon_changes_push_progress(self, synced, reconciler, gateway):
        synced.enter_dungeon("forest")
        synced.advance_floor()
        await reconciler.wait_for_pending()
        synced.clear_dungeon_run()
        await reconciler.wait_for_pending()
        assert gateway.dungeon_saves == [("char-1", "forest", 2), ("char-1", None, 0)]

    @pytest.mark.asyncio
    async def test_burst_saves_only_latest(self, synced, reconciler, gateway):
        """Queued saves overtaken by a newer request are dropped."""
        shop = ShopService(synced)
        shop.buy_item("health_potion")
        shop.buy_item("health_potion")
        shop.buy_item("health_potion")
        await reconciler.wait_for_pending()
        assert [r.gold for r in gateway.character_saves] == [5]
        assert gateway.inventories["char-1"] == [InventorySlot(item_id="health_potion", quantity=6)]

    @pytest.mark.asyncio
    async def test_retried_save_does_not_overwrite_newer(self, synced, reconciler, gateway):
        """A save that needs a retry cannot land after a newer one."""
        gateway.fail_once.add("save_character")
        shop = ShopService(synced)

        shop.buy_item("health_potion")
        await asyncio.sleep(0)
        shop.buy_item("health_potion")
        await reconciler.wait_for_pending()

        assert synced.gold == 20
        assert gateway.characters["user-1"].gold == 20
        assert gateway.character_saves[-1].gold == 20

    @pytest.mark.asyncio
    async def test_explicit_save_waits_for_queued_autosave(self, synced, reconciler, gateway):
        ShopService(synced).buy_item("health_potion")
        synced.add_gold(100)
        assert await reconciler.save_to_cloud()
        await reconciler.wait_for_pending()
        assert gateway.characters["user-1"].gold == 135

    @pytest.mark.asyncio
    async def test_failed_autosave_keeps_playing(self, synced, reconciler, gateway):
        gateway.fail_operations.add("save_character")
        assert ShopService(synced).buy_item("health_potion").accepted
        await reconciler.wait_for_pending()
        assert synced.get_item_count("health_potion") == 4

    @pytest.mark.asyncio
    async def test_detach_stops_autosave(self, synced, reconciler, gateway):
        reconciler.detach()
        ShopService(synced).buy_item("health_potion")
        assert reconciler.pending_count == 0

    def test_no_event_loop_skips_save(self, state, reconciler):
        state.set_cloud_identity(CloudIdentity(user_id="user-1", character_id="char-1"))
        assert reconciler.request_autosave() is None

    @pytest.mark.asyncio
    async def test_no_identity_no_task(self, reconciler):
        assert reconciler.request_autosave() is None
