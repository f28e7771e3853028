"""DynamoDB client wrapper for the StudyQuest single-table design."""

from typing import Any

import boto3
from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

from .utils import utc_now

logger = Logger(child=True)


class DynamoDBClient:
    """DynamoDB client wrapper with consistent error handling and logging.

    Characters live under ``USER#<user_id>`` / ``CHAR#<character_id>``;
    their inventory stacks under ``CHAR#<character_id>`` / ``INV#<item_id>``.
    """

    def __init__(self, table_name: str) -> None:
        """Initialize with table name.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.table = boto3.resource("dynamodb").Table(table_name)

    def put_item(self, pk: str, sk: str, data: dict[str, Any]) -> dict[str, Any]:
        """Put an item into the table, stamping timestamps.

        Args:
            pk: Partition key value
            sk: Sort key value
            data: Additional attributes to store

        Returns:
            The complete item that was stored
        """
        now = utc_now()
        item = {"PK": pk, "SK": sk, **data, "updated_at": now}
        item.setdefault("created_at", now)

        try:
            self.table.put_item(Item=item)
            logger.debug("Item written", extra={"pk": pk, "sk": sk})
            return item
        except ClientError as e:
            logger.error("Failed to put item", extra={"error": str(e), "pk": pk, "sk": sk})
            raise

    def get_item(self, pk: str, sk: str) -> dict[str, Any] | None:
        """Get a single item by PK and SK.

        Returns:
            Item dict or None if not found
        """
        try:
            response = self.table.get_item(Key={"PK": pk, "SK": sk})
            return response.get("Item")
        except ClientError as e:
            logger.error("Failed to get item", extra={"error": str(e), "pk": pk, "sk": sk})
            raise

    def query_by_pk(self, pk: str, sk_prefix: str | None = None) -> list[dict[str, Any]]:
        """Query all items under a partition key, following pagination.

        Args:
            pk: Partition key value
            sk_prefix: Optional sort key prefix filter

        Returns:
            List of matching items
        """
        params: dict[str, Any] = {
            "KeyConditionExpression": "PK = :pk",
            "ExpressionAttributeValues": {":pk": pk},
        }
        if sk_prefix:
            params["KeyConditionExpression"] += " AND begins_with(SK, :sk)"
            params["ExpressionAttributeValues"][":sk"] = sk_prefix

        items: list[dict[str, Any]] = []
        try:
            while True:
                response = self.table.query(**params)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                params["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error("Failed to query", extra={"error": str(e), "pk": pk})
            raise

        logger.debug("Query complete", extra={"pk": pk, "count": len(items)})
        return items

    def update_item(self, pk: str, sk: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        """Update specific attributes of an existing item.

        Values set to None are removed from the item.

        Args:
            pk: Partition key value
            sk: Sort key value
            updates: Dict of attribute names to new values

        Returns:
            Updated item or None if not found
        """
        if not updates:
            return self.get_item(pk, sk)

        update_expr, names, values = _update_expression(updates)
        try:
            response = self.table.update_item(
                Key={"PK": pk, "SK": sk},
                UpdateExpression=update_expr,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
                ConditionExpression="attribute_exists(PK)",
            )
            logger.debug("Item updated", extra={"pk": pk, "sk": sk})
            return response.get("Attributes")
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.warning("Item not found for update", extra={"pk": pk, "sk": sk})
                return None
            logger.error("Failed to update", extra={"error": str(e), "pk": pk, "sk": sk})
            raise

    def upsert_item(self, pk: str, sk: str, data: dict[str, Any]) -> dict[str, Any]:
        """Write every attribute in ``data``, creating the item if needed.

        Unlike ``put_item`` this keeps the stored ``created_at``, so repeated
        saves of the same record only move ``updated_at``. None values are
        removed from the item.

        Returns:
            The item as stored after the write
        """
        update_expr, names, values = _update_expression(data, keep_created_at=True)
        try:
            response = self.table.update_item(
                Key={"PK": pk, "SK": sk},
                UpdateExpression=update_expr,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            logger.error("Failed to upsert", extra={"error": str(e), "pk": pk, "sk": sk})
            raise

        logger.debug("Item upserted", extra={"pk": pk, "sk": sk})
        return response["Attributes"]

    def replace_partition(
        self,
        pk: str,
        sk_prefix: str,
        items: list[tuple[str, dict[str, Any]]],
    ) -> int:
        """Replace every item under ``pk``/``sk_prefix`` with ``items``.

        Used for inventory, which is written wholesale. Stale sort keys are
        deleted in the same batch as the new items are written.

        Args:
            pk: Partition key value
            sk_prefix: Sort key prefix that owns the collection
            items: (SK, data) pairs to store

        Returns:
            Number of items written
        """
        existing = {row["SK"] for row in self.query_by_pk(pk, sk_prefix)}
        wanted = {sk for sk, _ in items}
        now = utc_now()
        try:
            with self.table.batch_writer() as batch:
                for sk in existing - wanted:
                    batch.delete_item(Key={"PK": pk, "SK": sk})
                for sk, data in items:
                    batch.put_item(Item={"PK": pk, "SK": sk, **data, "updated_at": now})
        except ClientError as e:
            logger.error("Failed to replace items", extra={"error": str(e), "pk": pk})
            raise

        logger.debug(
            "Partition replaced",
            extra={"pk": pk, "written": len(items), "deleted": len(existing - wanted)},
        )
        return len(items)


def _update_expression(
    updates: dict[str, Any],
    keep_created_at: bool = False,
) -> tuple[str, dict[str, str], dict[str, Any]]:
    """Build SET/REMOVE clauses for an update_item call.

    Returns:
        Tuple of (UpdateExpression, ExpressionAttributeNames, ExpressionAttributeValues)
    """
    set_parts = ["updated_at = :updated_at"]
    remove_parts = []
    names: dict[str, str] = {}
    values: dict[str, Any] = {":updated_at": utc_now()}

    if keep_created_at:
        set_parts.append("created_at = if_not_exists(created_at, :updated_at)")

    for i, (key, value) in enumerate(updates.items()):
        name = f"#attr{i}"
        names[name] = key
        if value is None:
            remove_parts.append(name)
        else:
            set_parts.append(f"{name} = :val{i}")
            values[f":val{i}"] = value

    update_expr = "SET " + ", ".join(set_parts)
    if remove_parts:
        update_expr += " REMOVE " + ", ".join(remove_parts)
    return update_expr, names, values
