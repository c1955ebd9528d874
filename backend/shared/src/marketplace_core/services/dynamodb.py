"""Thin DynamoDB table access shared by the booking, listing, notification
and webhook audit stores.

Tables are named ``{prefix}-{table}`` where the prefix defaults to
``marketplace-{environment}`` and can be overridden with
DYNAMODB_TABLE_PREFIX. Conditional writes report a failed condition as a
return value instead of raising, since every caller treats it as an
expected outcome (duplicate insert, lost compare-and-swap).
"""

import datetime as dt
import os
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any

import boto3
from boto3.dynamodb.conditions import ConditionBase
from botocore.exceptions import ClientError
from pydantic import BaseModel

CONDITION_FAILED = "ConditionalCheckFailedException"


@lru_cache(maxsize=1)
def get_dynamodb_service() -> "DynamoDBService":
    """Process-wide DynamoDBService, reused across Lambda invocations."""
    return DynamoDBService()


def reset_dynamodb_service() -> None:
    """Drop the shared instance so the next call binds to the current boto3 session."""
    get_dynamodb_service.cache_clear()


def to_dynamodb_item(value: Any) -> Any:
    """Convert models and Python values to DynamoDB-compatible values.

    Dates and datetimes become ISO strings, enums their values, floats
    Decimals; None attributes are dropped.
    """
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if isinstance(value, dict):
        return {k: to_dynamodb_item(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [to_dynamodb_item(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (dt.datetime, dt.date)):
        return value.isoformat()
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _condition_failed(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == CONDITION_FAILED


class DynamoDBService:
    def __init__(self, environment: str | None = None) -> None:
        self.environment = environment or os.getenv("ENVIRONMENT", "dev")
        self.name_prefix = os.getenv(
            "DYNAMODB_TABLE_PREFIX", f"marketplace-{self.environment}"
        )
        self._resource = boto3.resource("dynamodb")
        self._tables: dict[str, Any] = {}

    def table(self, name: str) -> Any:
        """Table resource for a short name such as ``"bookings"``."""
        if name not in self._tables:
            self._tables[name] = self._resource.Table(f"{self.name_prefix}-{name}")
        return self._tables[name]

    def get_item(
        self, table: str, key: dict[str, Any], consistent_read: bool = True
    ) -> dict[str, Any] | None:
        """Fetch one item by primary key, or None."""
        response = self.table(table).get_item(Key=key, ConsistentRead=consistent_read)
        return response.get("Item")

    def put_item(self, table: str, item: dict[str, Any]) -> None:
        """Unconditional write (audit records)."""
        self.table(table).put_item(Item=item)

    def put_if_absent(self, table: str, item: dict[str, Any], key_attribute: str) -> bool:
        """Insert ``item`` unless an item with the same key exists.

        Returns:
            True if written, False if the key was already taken
        """
        try:
            self.table(table).put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(#key)",
                ExpressionAttributeNames={"#key": key_attribute},
            )
        except ClientError as e:
            if _condition_failed(e):
                return False
            raise
        return True

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Apply an update expression and return the item as written.

        Returns:
            All attributes after the update, or None if
            ``condition_expression`` did not hold
        """
        kwargs: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": expression_attribute_values,
            "ReturnValues": "ALL_NEW",
        }
        if expression_attribute_names:
            kwargs["ExpressionAttributeNames"] = expression_attribute_names
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression

        try:
            response = self.table(table).update_item(**kwargs)
        except ClientError as e:
            if _condition_failed(e):
                return None
            raise
        return response.get("Attributes")

    def query(
        self,
        table: str,
        key_condition: ConditionBase,
        index_name: str | None = None,
        scan_index_forward: bool = True,
    ) -> list[dict[str, Any]]:
        """Query a table or GSI, following pagination to the last page."""
        kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ScanIndexForward": scan_index_forward,
        }
        if index_name:
            kwargs["IndexName"] = index_name

        items: list[dict[str, Any]] = []
        while True:
            response = self.table(table).query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key
