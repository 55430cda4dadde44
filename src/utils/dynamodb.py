"""
Centralized DynamoDB table access utilities.

Provides singleton-pattern table accessors with lazy initialization
and test monkeypatch support.
"""

import os
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

import boto3
from boto3.dynamodb.types import TypeSerializer

from .config import get_required_env

if TYPE_CHECKING:
    from mypy_boto3_dynamodb import DynamoDBClient, DynamoDBServiceResource
    from mypy_boto3_dynamodb.service_resource import Table


# Module-level cache for test overrides
_table_overrides: dict[str, Optional["Table"]] = {}

_serializer = TypeSerializer()


def _get_dynamodb() -> "DynamoDBServiceResource":
    """Get DynamoDB resource with optional endpoint override for LocalStack."""
    return boto3.resource("dynamodb", endpoint_url=os.getenv("DYNAMODB_ENDPOINT"))


def get_dynamodb_client() -> "DynamoDBClient":
    """Get the low-level DynamoDB client used for transactions."""
    return boto3.client("dynamodb", endpoint_url=os.getenv("DYNAMODB_ENDPOINT"))


class TableAccessor:
    """Centralized access to DynamoDB tables with environment-based naming."""

    _instance: Optional["TableAccessor"] = None

    def __new__(cls) -> "TableAccessor":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def _table(self, key: str, env_name: str) -> "Table":
        if override := _table_overrides.get(key):
            return override
        return _get_dynamodb().Table(get_required_env(env_name))

    @property
    def orders(self) -> "Table":
        """Get orders table instance."""
        return self._table("orders", "ORDERS_TABLE_NAME")

    @property
    def assignments(self) -> "Table":
        """Get booster assignments table instance."""
        return self._table("assignments", "ASSIGNMENTS_TABLE_NAME")

    @property
    def notifications(self) -> "Table":
        """Get notifications table instance."""
        return self._table("notifications", "NOTIFICATIONS_TABLE_NAME")

    @property
    def messages(self) -> "Table":
        """Get chat messages table instance."""
        return self._table("messages", "MESSAGES_TABLE_NAME")


# Singleton instance for import
tables = TableAccessor()


def table_name(env_name: str) -> str:
    """Resolve a table name for low-level client calls."""
    return get_required_env(env_name)


def serialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a Python dict into DynamoDB attribute value format."""
    return {k: _serializer.serialize(v) for k, v in item.items() if v is not None}


def serialize_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize ExpressionAttributeValues for the low-level client."""
    return {k: _serializer.serialize(v) for k, v in values.items()}


def to_decimal(value: Any) -> Decimal:
    """Convert a number (or numeric string) to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def scan_all(table: "Table", **scan_kwargs: Any) -> Iterator[Dict[str, Any]]:
    """Scan a table following LastEvaluatedKey pagination."""
    while True:
        response = table.scan(**scan_kwargs)
        yield from response.get("Items", [])
        last_evaluated_key = response.get("LastEvaluatedKey")
        if last_evaluated_key is None:
            break
        scan_kwargs["ExclusiveStartKey"] = last_evaluated_key


def query_all(table: "Table", **query_kwargs: Any) -> List[Dict[str, Any]]:
    """Query a table or index following LastEvaluatedKey pagination."""
    items: List[Dict[str, Any]] = []
    while True:
        response = table.query(**query_kwargs)
        items.extend(response.get("Items", []))
        last_evaluated_key = response.get("LastEvaluatedKey")
        if last_evaluated_key is None:
            break
        query_kwargs["ExclusiveStartKey"] = last_evaluated_key
    return items


# Test utilities
def override_table(name: str, table: Optional["Table"]) -> None:
    """Override a table for testing. Set to None to clear override."""
    _table_overrides[name] = table


def clear_all_overrides() -> None:
    """Clear all table overrides (call in test teardown)."""
    _table_overrides.clear()


def reset_singleton() -> None:
    """Reset the singleton instance (for testing isolation)."""
    TableAccessor._instance = None
