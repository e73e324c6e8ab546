"""
Chunked reads over Scan and Query.

DynamoDB never returns a full result set: every Scan/Query call returns at most
`Limit` items plus a LastEvaluatedKey to resume from. The ChunkedScanner drives
those calls strictly one after the other (a cursor is only valid relative to the
call that produced it) and exposes them either as a lazy sequence of chunks or
as an accumulate-until-stop loop.
"""

import threading
from collections.abc import Callable, Iterator
from enum import Enum
from typing import Any

from ._logging import logger, redact_key
from .backend import Chunk, DynamoBackend
from .config import DEFAULT_CHUNK_SIZE
from .exceptions import OperationCancelled

# stop(chunk_items, next_key) -> True to stop reading
StopPredicate = Callable[[list[dict[str, Any]], dict[str, Any] | None], bool]


class ReadOperation(str, Enum):
    SCAN = "scan"
    QUERY = "query"


class ChunkedScanner:
    """
    Reads a table in small fixed-size chunks, following continuation cursors.

    The chunk size is deliberately independent of any page size: small chunks
    bound the work DynamoDB does per round trip and let callers stop reading
    as soon as they have enough records.
    """

    def __init__(self, backend: DynamoBackend, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size < 1:
            raise ValueError(f"chunk_size must be an integer >= 1, got {chunk_size!r}")
        self.backend = backend
        self.serializer = backend.serializer
        self.chunk_size = chunk_size

    def iter_chunks(
        self,
        operation: ReadOperation | str,
        table_name: str,
        params: dict[str, Any] | None = None,
        start_key: dict[str, Any] | None = None,
        *,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> Iterator[Chunk]:
        """
        Lazily yields chunks until DynamoDB reports no further cursor.

        Each iteration starts over from `start_key`; breaking out early issues
        no further requests.

        Args:
            operation: ReadOperation.SCAN or ReadOperation.QUERY
            table_name: Table to read
            params: Extra low-level parameters (FilterExpression,
                    KeyConditionExpression, ExpressionAttribute*...)
            start_key: Plain-Python cursor to resume after (None for start of table)
            cancel: Checked before every backend call
            deadline: time.monotonic() deadline passed to every backend call

        Raises:
            OperationCancelled: If `cancel` is set before a backend call
            BackendRequestFailed: If a backend call fails
        """
        operation = ReadOperation(operation)
        read = (
            self.backend.scan_chunk
            if operation is ReadOperation.SCAN
            else self.backend.query_chunk
        )

        request: dict[str, Any] = {**(params or {}), "TableName": table_name}
        request["Limit"] = self.chunk_size
        # Low-level form; cursors returned by DynamoDB are passed back untouched
        cursor = self.serializer.deserialize_cursor(start_key) if start_key else None

        logger.info(
            "Starting chunked read",
            extra={
                "table": table_name,
                "operation": operation.value,
                "chunk_size": self.chunk_size,
                "has_filter": "FilterExpression" in request,
                "has_cursor": cursor is not None,
            },
        )

        chunks = 0
        while True:
            if cancel is not None and cancel.is_set():
                logger.info(
                    "Chunked read cancelled",
                    extra={"table": table_name, "operation": operation.value, "chunks": chunks},
                )
                raise OperationCancelled(f"{operation.value} on '{table_name}' was cancelled")

            if cursor:
                request["ExclusiveStartKey"] = cursor

            chunk = read(dict(request), deadline)
            chunks += 1

            logger.debug(
                "Fetched chunk",
                extra={
                    "table": table_name,
                    "operation": operation.value,
                    "count": len(chunk.items),
                    "has_more": chunk.has_more,
                    "cursor_hash": redact_key(chunk.last_evaluated_key) if chunk.has_more else None,
                },
            )
            yield chunk

            if chunk.last_evaluated_key is None:
                return
            cursor = chunk.raw_last_evaluated_key or self.serializer.deserialize_cursor(
                chunk.last_evaluated_key
            )

    def scan(
        self,
        operation: ReadOperation | str,
        table_name: str,
        params: dict[str, Any] | None = None,
        start_key: dict[str, Any] | None = None,
        stop: StopPredicate | None = None,
        *,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> list[dict[str, Any]]:
        """
        Accumulates records chunk by chunk until `stop` fires or the table is exhausted.

        `stop(chunk_items, next_key)` is evaluated after every chunk; returning
        True ends the read. On any error nothing is returned: the accumulation
        is local to this call and dropped with the exception.
        """
        records: list[dict[str, Any]] = []
        for chunk in self.iter_chunks(
            operation, table_name, params, start_key, cancel=cancel, deadline=deadline
        ):
            records.extend(chunk.items)
            if stop is not None and stop(chunk.items, chunk.last_evaluated_key):
                if chunk.has_more:
                    logger.info(
                        "Chunked read stopped early",
                        extra={"table": table_name, "count": len(records)},
                    )
                break
        return records
