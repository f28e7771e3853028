"""Tests for the game session wiring."""

import random

import pytest

from character.classes import CharacterClass
from cloud.dynamo_gateway import DynamoPersistenceGateway
from cloud.gateway import RetryPolicy
from combat.models import BattleOutcome, BattlePhase
from session.service import GameSession
from shared.config import Config
from shared.exceptions import GameStateError, NotFoundError
from shared.models import CharacterRecord

FAST = RetryPolicy(max_attempts=1, delay=0, timeout=1)


@pytest.fixture
def session(gateway):
    """Session over the fake gateway with a seeded random source."""
    return GameSession(gateway, policy=FAST, rng=random.Random(7))


class TestLifecycle:
    """Tests for starting and resuming games."""

    @pytest.mark.asyncio
    async def test_new_game_resets_and_autosaves(self, session, gateway):
        session.state.add_gold(500)
        assert await session.new_game()
        await session.close()
        assert session.state.gold == 50
        assert gateway.characters["user-1"].id == "char-user-1"
        assert gateway.character_saves[-1].gold == 50

    @pytest.mark.asyncio
    async def test_new_game_as_class(self, session, gateway):
        assert await session.new_game("knight")
        await session.close()
        assert session.state.character_class == CharacterClass.KNIGHT
        assert session.state.max_health == 120
        assert gateway.character_saves[-1].class_id == "knight"

    @pytest.mark.asyncio
    async def test_quest_reward_is_autosaved(self, session, gateway, paper_slime):
        await session.new_game()
        session.start_battle(paper_slime).acknowledge_intro()
        session.battle.attack()
        await session.close()
        assert session.quests.is_completed("story_first_battle")
        saved = gateway.characters["user-1"]
        assert saved.gold == session.state.gold == 50 + 7 + 50
        assert "quest:story_first_battle" in saved.achievements

    @pytest.mark.asyncio
    async def test_new_game_offline(self, gateway):
        gateway.user_id = None
        session = GameSession(gateway, policy=FAST)
        assert not await session.new_game()
        assert gateway.character_saves == []

    @pytest.mark.asyncio
    async def test_continue_game(self, session, gateway):
        gateway.characters["user-1"] = CharacterRecord(id="char-9", user_id="user-1", level=4, gold=300)
        assert await session.continue_game()
        assert session.state.level == 4
        assert session.reconciler.character_id == "char-9"

    @pytest.mark.asyncio
    async def test_shop_purchase_autosaves_after_continue(self, session, gateway):
        await session.continue_game()
        assert session.shop.buy_item("health_potion").accepted
        await session.close()
        assert gateway.character_saves[-1].gold == 35

    @pytest.mark.asyncio
    async def test_cannot_restart_mid_battle(self, session):
        session.start_battle("rat")
        with pytest.raises(GameStateError):
            await session.new_game()


class TestBattles:
    """Tests for starting battles from a session."""

    def test_start_battle_by_id(self, session):
        battle = session.start_battle("grey_slime")
        assert battle.phase == BattlePhase.INTRO
        assert battle.enemy.name == "Grey Slime"

    def test_unknown_enemy(self, session):
        with pytest.raises(NotFoundError):
            session.start_battle("dragon")

    def test_defaults_to_active_run(self, session):
        session.state.enter_dungeon("forest", 3)
        battle = session.start_battle("grey_slime")
        assert battle.context.dungeon_id == "forest"
        assert battle.context.floor == 3

    def test_one_battle_at_a_time(self, session):
        session.start_battle("rat")
        with pytest.raises(GameStateError):
            session.start_battle("rat")

    def test_next_battle_after_previous_ends(self, session, paper_slime):
        ended = []
        battle = session.start_battle(paper_slime, on_battle_end=lambda outcome, data: ended.append(outcome))
        battle.acknowledge_intro()
        battle.attack()
        assert ended == [BattleOutcome.VICTORY]
        assert session.start_battle("rat").phase == BattlePhase.INTRO

    def test_shop_tier_follows_dungeon(self, session):
        assert max(item.tier for item in session.shop.stock()) == 1
        session.state.enter_dungeon("volcano")
        assert max(item.tier for item in session.shop.stock()) == 5


class TestFromConfig:
    """Tests for building a DynamoDB-backed session."""

    def test_from_config(self, env_setup):
        config = Config(
            table_name="test-table", environment="dev", log_level="INFO",
            user_id="user-7", sync_max_attempts=5,
        )
        session = GameSession.from_config(config)
        gateway = session.reconciler.gateway
        assert isinstance(gateway, DynamoPersistenceGateway)
        assert gateway.user_id == "user-7"
        assert session.reconciler.policy.max_attempts == 5

