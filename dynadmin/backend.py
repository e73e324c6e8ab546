"""
Backend handle: the one place dynadmin talks to DynamoDB.

A DynamoBackend wraps a single boto3 DynamoDB client. It is created once at
process start (see DynamoBackend.from_settings) and passed by reference to the
scanner and the browser. boto3 clients are safe to share between threads, and
the backend itself holds no per-request state.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import boto3

from ._logging import logger, redact_key
from .config import AdminSettings, TableDescription
from .exceptions import RequestTimeoutError, handle_dynamo_errors
from .serializer import DynamoSerializer

# DynamoDB accepts at most 25 put/delete requests per BatchWriteItem call
BATCH_WRITE_LIMIT = 25


@dataclass
class Chunk:
    """
    One bounded batch of records returned by a single Scan or Query call.

    Attributes:
        items: Records of this chunk, as plain Python dicts
        last_evaluated_key: Cursor to resume after this chunk (None when exhausted)
        raw_last_evaluated_key: The same cursor exactly as DynamoDB returned it,
                                used as the next ExclusiveStartKey
    """

    items: list[dict[str, Any]]
    last_evaluated_key: dict[str, Any] | None = None
    raw_last_evaluated_key: dict[str, Any] | None = field(default=None, repr=False)

    @property
    def has_more(self) -> bool:
        return self.last_evaluated_key is not None


class DynamoBackend:
    def __init__(self, client: Any, serializer: DynamoSerializer | None = None) -> None:
        self.client = client
        self.serializer = serializer or DynamoSerializer()

    @classmethod
    def from_settings(cls, settings: AdminSettings) -> "DynamoBackend":
        """Builds the backend (and its boto3 client) from admin settings."""
        logger.info(
            "Creating DynamoDB client",
            extra={"endpoint": settings.endpoint_url, "region": settings.region},
        )
        return cls(boto3.client("dynamodb", **settings.client_kwargs()))

    # --- Table metadata ---

    def describe_table(self, table_name: str) -> TableDescription:
        with handle_dynamo_errors(table_name=table_name, operation="DescribeTable"):
            response = self.client.describe_table(TableName=table_name)
        return TableDescription.from_response(response)

    def list_table_names(self) -> list[str]:
        names: list[str] = []
        with handle_dynamo_errors(operation="ListTables"):
            for page in self.client.get_paginator("list_tables").paginate():
                names.extend(page.get("TableNames", []))
        return names

    # --- Chunked reads ---

    def scan_chunk(self, params: dict[str, Any], deadline: float | None = None) -> Chunk:
        """
        Issues a single Scan call.

        Args:
            params: Low-level Scan parameters (TableName, Limit, FilterExpression,
                    ExclusiveStartKey...)
            deadline: Absolute time.monotonic() value after which the request is refused
        """
        return self._read_chunk("Scan", self.client.scan, params, deadline)

    def query_chunk(self, params: dict[str, Any], deadline: float | None = None) -> Chunk:
        """Issues a single Query call. Same contract as scan_chunk()."""
        return self._read_chunk("Query", self.client.query, params, deadline)

    def _read_chunk(
        self,
        operation: str,
        method: Callable[..., dict[str, Any]],
        params: dict[str, Any],
        deadline: float | None,
    ) -> Chunk:
        table_name = params.get("TableName")
        if deadline is not None and time.monotonic() >= deadline:
            raise RequestTimeoutError(
                f"Deadline exceeded before {operation} on '{table_name}'", operation=operation
            )

        with handle_dynamo_errors(table_name=table_name, operation=operation):
            response = method(**params)

        items = [self.serializer.from_dynamo(item) for item in response.get("Items", [])]
        raw_key = response.get("LastEvaluatedKey")
        cursor = self.serializer.serialize_cursor(raw_key) if raw_key else None
        return Chunk(
            items=items, last_evaluated_key=cursor, raw_last_evaluated_key=raw_key or None
        )

    # --- Single item pass-through ---

    def get_item(self, table_name: str, key: dict[str, Any]) -> dict[str, Any] | None:
        logger.debug(
            "Fetching item",
            extra={"table": table_name, "operation": "get", "key_hash": redact_key(key)},
        )
        with handle_dynamo_errors(table_name=table_name, operation="GetItem"):
            response = self.client.get_item(
                TableName=table_name, Key=self.serializer.to_dynamo(key)
            )

        if "Item" not in response:
            logger.info("Item not found", extra={"table": table_name, "operation": "get"})
            return None
        return self.serializer.from_dynamo(response["Item"])

    def put_item(self, table_name: str, item: dict[str, Any]) -> None:
        logger.info("Saving item", extra={"table": table_name, "operation": "put"})
        with handle_dynamo_errors(table_name=table_name, operation="PutItem"):
            self.client.put_item(TableName=table_name, Item=self.serializer.to_dynamo(item))

    def delete_item(self, table_name: str, key: dict[str, Any]) -> None:
        logger.info(
            "Deleting item",
            extra={"table": table_name, "operation": "delete", "key_hash": redact_key(key)},
        )
        with handle_dynamo_errors(table_name=table_name, operation="DeleteItem"):
            self.client.delete_item(TableName=table_name, Key=self.serializer.to_dynamo(key))

    def batch_write(self, table_name: str, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Puts items in batches of 25.

        No retry: items DynamoDB reports as unprocessed are returned to the caller.

        Returns:
            The unprocessed items, as plain Python dicts
        """
        unprocessed: list[dict[str, Any]] = []
        for start in range(0, len(items), BATCH_WRITE_LIMIT):
            batch = items[start : start + BATCH_WRITE_LIMIT]
            requests = [{"PutRequest": {"Item": self.serializer.to_dynamo(item)}} for item in batch]

            logger.info(
                "Writing batch",
                extra={"table": table_name, "operation": "batch_write", "count": len(batch)},
            )
            with handle_dynamo_errors(table_name=table_name, operation="BatchWriteItem"):
                response = self.client.batch_write_item(RequestItems={table_name: requests})

            for request in response.get("UnprocessedItems", {}).get(table_name, []):
                unprocessed.append(self.serializer.from_dynamo(request["PutRequest"]["Item"]))

        if unprocessed:
            logger.warning(
                "Batch write left unprocessed items",
                extra={"table": table_name, "operation": "batch_write", "count": len(unprocessed)},
            )
        return unprocessed
