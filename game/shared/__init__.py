"""Shared building blocks for the StudyQuest engine packages."""

from .config import Config, get_config
from .db import DynamoDBClient
from .exceptions import (
    ConfigurationError,
    GameStateError,
    NotFoundError,
    PersistenceError,
    StudyQuestError,
    ValidationError,
)
from .items import (
    ITEM_CATALOG,
    EffectType,
    EquipmentSlot,
    ItemDefinition,
    ItemEffect,
    ItemStats,
    ItemType,
    StatName,
    get_item,
)
from .models import CharacterRecord, InventorySlot

__all__ = [
    # Config
    "Config",
    "get_config",
    # Database
    "DynamoDBClient",
    # Exceptions
    "ConfigurationError",
    "GameStateError",
    "NotFoundError",
    "PersistenceError",
    "StudyQuestError",
    "ValidationError",
    # Items
    "ITEM_CATALOG",
    "EffectType",
    "EquipmentSlot",
    "ItemDefinition",
    "ItemEffect",
    "ItemStats",
    "ItemType",
    "StatName",
    "get_item",
    # Records
    "CharacterRecord",
    "InventorySlot",
]
