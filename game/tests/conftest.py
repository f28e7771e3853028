"""Shared fixtures for the StudyQuest test suite."""

import os
import random

import boto3
import pytest
from moto import mock_aws

from character.models import PlayerData
from character.state import CharacterState
from combat.models import BattleContext, EnemyAI, EnemyDefinition, EnemyTier
from shared.config import get_config
from shared.exceptions import PersistenceError
from shared.models import CharacterRecord, InventorySlot

TABLE_NAME = "test-table"


@pytest.fixture
def env_setup(monkeypatch):
    """Point boto3 and Config at a fake environment."""
    monkeypatch.setenv("TABLE_NAME", TABLE_NAME)
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    yield
    if hasattr(get_config, "_config"):
        del get_config._config


@pytest.fixture
def dynamodb_table(env_setup):
    """Create the single game table inside a moto mock."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name=os.environ["AWS_DEFAULT_REGION"])
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        table.wait_until_exists()
        yield table


@pytest.fixture
def rng():
    """Seeded random source for reproducible battles."""
    return random.Random(1234)


@pytest.fixture
def state():
    """Fresh starter character."""
    return CharacterState()


@pytest.fixture
def rich_state():
    """Character with plenty of gold and a stocked bag."""
    return CharacterState(PlayerData(
        gold=5000,
        items={"health_potion": 3, "iron_sword": 1, "leather_armor": 1, "mana_ring": 1},
    ))


@pytest.fixture
def training_dummy():
    """Enemy that can take a lot of punishment but barely hits back."""
    return EnemyDefinition(
        id="training_dummy",
        name="Training Dummy",
        max_hp=1000,
        attack=0,
        defense=0,
        xp_reward=10,
        gold_min=4,
        gold_max=6,
        ai=EnemyAI.AGGRESSIVE,
        tier=EnemyTier.LOW,
    )


@pytest.fixture
def paper_slime():
    """Enemy that dies to any single hit."""
    return EnemyDefinition(
        id="paper_slime",
        name="Paper Slime",
        max_hp=1,
        attack=1,
        defense=0,
        xp_reward=15,
        gold_min=5,
        gold_max=10,
        ai=EnemyAI.BASIC,
        tier=EnemyTier.LOW,
    )


@pytest.fixture
def brute():
    """Enemy that hits far harder than a starter character can survive."""
    return EnemyDefinition(
        id="brute",
        name="Brute",
        max_hp=1000,
        attack=1000,
        defense=0,
        xp_reward=100,
        gold_min=50,
        gold_max=100,
        ai=EnemyAI.AGGRESSIVE,
        tier=EnemyTier.BOSS,
    )


@pytest.fixture
def dummy_context(training_dummy):
    """Battle context against the training dummy on floor 1."""
    return BattleContext(enemy=training_dummy, return_target="dungeon", return_data={"room": "r1"})


class FakeGateway:
    """In-memory PersistenceGateway with switchable failures."""

    def __init__(self, user_id: str | None = "user-1") -> None:
        self.user_id = user_id
        self.characters: dict[str, CharacterRecord] = {}
        self.inventories: dict[str, list[InventorySlot]] = {}
        self.dungeon_saves: list[tuple[str, str | None, int]] = []
        self.character_saves: list[CharacterRecord] = []
        self.fail_operations: set[str] = set()
        self.fail_once: set[str] = set()
        self.calls: list[str] = []

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_once:
            self.fail_once.discard(operation)
            raise PersistenceError("connection reset", operation=operation)
        if operation in self.fail_operations:
            raise PersistenceError("network down", operation=operation)

    async def get_current_user_id(self) -> str | None:
        self._maybe_fail("get_current_user_id")
        return self.user_id

    async def get_character(self, user_id: str) -> CharacterRecord | None:
        self._maybe_fail("get_character")
        return self.characters.get(user_id)

    async def get_or_create_character(self, user_id: str) -> CharacterRecord | None:
        self._maybe_fail("get_or_create_character")
        if user_id not in self.characters:
            self.characters[user_id] = CharacterRecord(id=f"char-{user_id}", user_id=user_id)
        return self.characters[user_id]

    async def get_inventory(self, character_id: str) -> list[InventorySlot]:
        self._maybe_fail("get_inventory")
        return list(self.inventories.get(character_id, []))

    async def save_character(self, record: CharacterRecord) -> None:
        self._maybe_fail("save_character")
        self.characters[record.user_id] = record
        self.character_saves.append(record)

    async def save_inventory(self, character_id: str, slots: list[InventorySlot]) -> None:
        self._maybe_fail("save_inventory")
        self.inventories[character_id] = list(slots)

    async def save_dungeon_progress(
        self, character_id: str, dungeon_id: str | None, floor_number: int
    ) -> None:
        self._maybe_fail("save_dungeon_progress")
        self.dungeon_saves.append((character_id, dungeon_id, floor_number))


@pytest.fixture
def gateway():
    """In-memory gateway for user-1."""
    return FakeGateway()
