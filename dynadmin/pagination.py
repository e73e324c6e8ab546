"""
Fixed-size pages over chunked DynamoDB reads.

This module turns the scanner's cursor-linked chunks into stable pages of a
caller-chosen size, with an opaque key token that resumes right after the
last record of the page.
"""

import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ._logging import logger, redact_key
from .config import DEFAULT_PAGE_SIZE, AttributeType, KeySchema
from .exceptions import InvalidPageSize
from .filters import build_filter, build_query
from .keys import decode_key, encode_key, extract_key
from .scanner import ChunkedScanner, ReadOperation


@dataclass
class Page:
    """
    Represents a single page of records with its continuation cursor.

    Attributes:
        items: Records of this page, in DynamoDB iteration order
        next_key: Key of the last record of this page (None if no more pages)
        next_token: next_key encoded as a URL key token (None if no more pages)
        count: Number of records in this page
    """

    items: list[dict[str, Any]]
    next_key: dict[str, Any] | None
    next_token: str | None
    count: int

    @property
    def has_more(self) -> bool:
        """Returns True if there are more pages available."""
        return self.next_key is not None


class Paginator:
    def __init__(self, scanner: ChunkedScanner) -> None:
        self.scanner = scanner

    def get_page(
        self,
        operation: ReadOperation | str,
        key_schema: KeySchema,
        table_name: str,
        filter_spec: Mapping[str, str] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        start_token: str | Mapping[str, Any] | None = None,
        *,
        attribute_definitions: Mapping[str, AttributeType | str] | None = None,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> Page:
        """
        Reads exactly one page of at most `page_size` records.

        The scanner keeps reading chunks until one record more than the page
        size has been seen (or the table is exhausted). That lookahead record
        only proves a next page exists; it is dropped, together with anything
        else the last chunk returned, and the next page resumes right after the
        last record of this one.

        Args:
            operation: ReadOperation.SCAN or ReadOperation.QUERY
            key_schema: Primary key of the table
            table_name: Table to read
            filter_spec: attribute -> value equality filter (for queries it
                         must contain the hash key)
            page_size: Maximum number of records in the page (>= 1)
            start_token: Key token (or key mapping) of the last record of the
                         previous page; None or "" for the first page
            attribute_definitions: Declared attribute types used to coerce
                                   filter values (defaults to the key types)
            cancel: Cancellation signal checked before every backend call
            deadline: time.monotonic() deadline for every backend call

        Returns:
            Page of records; next_token is None when no records remain.

        Raises:
            InvalidPageSize: If page_size is not an integer >= 1
            InvalidKeyToken: If start_token does not match the key schema
            InvalidFilterValue: If a filter value cannot be coerced
            BackendRequestFailed: If any chunk read fails (no partial page)
            OperationCancelled: If `cancel` fires while reading
        """
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
            raise InvalidPageSize(page_size)

        operation = ReadOperation(operation)
        start_key = self._start_key(start_token, key_schema)
        definitions = attribute_definitions or key_schema.attribute_definitions()

        if operation is ReadOperation.QUERY:
            params = build_query(filter_spec or {}, key_schema, definitions)
        else:
            params = build_filter(filter_spec, definitions)

        buffer: list[dict[str, Any]] = []

        def collect(items: list[dict[str, Any]], next_key: dict[str, Any] | None) -> bool:
            for item in items:
                if len(buffer) > page_size:
                    break
                buffer.append(item)
            return len(buffer) > page_size

        self.scanner.scan(
            operation, table_name, params, start_key, collect, cancel=cancel, deadline=deadline
        )

        next_key: dict[str, Any] | None = None
        next_token: str | None = None
        if len(buffer) > page_size:
            items = buffer[:page_size]
            next_key = extract_key(items[-1], key_schema)
            next_token = encode_key(*next_key.values())
        else:
            items = buffer

        logger.info(
            "Page assembled",
            extra={
                "table": table_name,
                "operation": operation.value,
                "page_size": page_size,
                "count": len(items),
                "has_more": next_key is not None,
                "cursor_hash": redact_key(next_key) if next_key else None,
            },
        )
        return Page(items=items, next_key=next_key, next_token=next_token, count=len(items))

    @staticmethod
    def _start_key(
        start_token: str | Mapping[str, Any] | None, key_schema: KeySchema
    ) -> dict[str, Any] | None:
        if not start_token:
            return None
        if isinstance(start_token, Mapping):
            return dict(start_token)
        return decode_key(start_token, key_schema)
