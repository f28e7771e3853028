"""PersistenceGateway backed by a single DynamoDB table."""

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from shared.db import DynamoDBClient
from shared.exceptions import PersistenceError
from shared.models import CharacterRecord, InventorySlot
from shared.utils import generate_id

logger = Logger(child=True)

T = TypeVar("T")

# DynamoDB error codes that clear up on their own
TRANSIENT_ERROR_CODES = frozenset({
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InternalServerError",
    "ServiceUnavailable",
})


class DynamoPersistenceGateway:
    """Stores characters and inventory through DynamoDBClient.

    boto3 is blocking, so every call runs in a worker thread.
    """

    def __init__(self, db: DynamoDBClient, user_id: str | None = None) -> None:
        """Initialize gateway.

        Args:
            db: DynamoDB client instance
            user_id: Authenticated user, or None when playing offline
        """
        self.db = db
        self.user_id = user_id

    async def get_current_user_id(self) -> str | None:
        return self.user_id

    async def get_character(self, user_id: str) -> CharacterRecord | None:
        """Fetch the user's character, if one exists."""
        rows = await self._run("get_character", self.db.query_by_pk, f"USER#{user_id}", "CHAR#")
        if not rows:
            return None
        return CharacterRecord.from_db_item(rows[0])

    async def get_or_create_character(self, user_id: str) -> CharacterRecord | None:
        """Fetch the user's character, creating a starter record if missing."""
        existing = await self.get_character(user_id)
        if existing is not None:
            return existing

        record = CharacterRecord(id=generate_id(), user_id=user_id)
        pk, sk, data = record.to_db_item()
        await self._run("create_character", self.db.put_item, pk, sk, data)
        logger.info("Remote character created", extra={"user_id": user_id, "character_id": record.id})
        return record

    async def get_inventory(self, character_id: str) -> list[InventorySlot]:
        rows = await self._run("get_inventory", self.db.query_by_pk, f"CHAR#{character_id}", "INV#")
        try:
            return [InventorySlot.from_db_item(row) for row in rows]
        except (KeyError, ValueError) as e:
            raise PersistenceError(
                f"Malformed inventory row: {e}", operation="get_inventory", retryable=False
            ) from e

    async def save_character(self, record: CharacterRecord) -> None:
        pk, sk, data = record.to_db_item()
        await self._run("save_character", self.db.upsert_item, pk, sk, data)

    async def save_inventory(self, character_id: str, slots: list[InventorySlot]) -> None:
        items = []
        for slot in slots:
            _, sk = slot.to_db_keys(character_id)
            items.append((sk, {"quantity": slot.quantity}))
        await self._run("save_inventory", self.db.replace_partition, f"CHAR#{character_id}", "INV#", items)

    async def save_dungeon_progress(
        self, character_id: str, dungeon_id: str | None, floor_number: int
    ) -> None:
        """Record the current dungeon run on the character.

        Raises:
            PersistenceError: If there is no user or the character is missing
        """
        if self.user_id is None:
            raise PersistenceError(
                "No authenticated user", operation="save_dungeon_progress", retryable=False
            )
        updated = await self._run(
            "save_dungeon_progress",
            self.db.update_item,
            f"USER#{self.user_id}",
            f"CHAR#{character_id}",
            {"current_dungeon_id": dungeon_id, "current_floor": floor_number},
        )
        if updated is None:
            raise PersistenceError(
                f"Character '{character_id}' not found",
                operation="save_dungeon_progress",
                retryable=False,
            )

    async def _run(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            raise PersistenceError(
                str(e), operation=operation, retryable=code in TRANSIENT_ERROR_CODES
            ) from e
        except BotoCoreError as e:
            raise PersistenceError(str(e), operation=operation) from e
