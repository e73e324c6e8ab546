"""
TableBrowser: what an admin view (routes, templates) calls.

Every method looks the table up with describe_table first. Table metadata is
never cached, so schema changes are picked up on the next request.

Usage:
    browser = TableBrowser.from_settings(AdminSettings.from_env())

    page = browser.get_page("Movies", filters={"year": "2013"}, page_size=25)
    for item in page.items:
        print(browser.encode_item_key("Movies", item))

    if page.has_more:
        page2 = browser.get_page("Movies", filters={"year": "2013"},
                                 start_token=page.next_token)
"""

import threading
from collections.abc import Mapping
from typing import Any

from ._logging import logger, redact_key
from .backend import DynamoBackend
from .config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_PAGE_SIZE,
    AdminSettings,
    AttributeType,
    KeySchema,
    TableDescription,
)
from .exceptions import ItemNotFoundError
from .keys import decode_key, encode_key, encode_record_key, extract_key
from .pagination import Page, Paginator
from .scanner import ChunkedScanner, ReadOperation


def choose_operation(filter_spec: Mapping[str, str], key_schema: KeySchema) -> ReadOperation:
    """Queries when the filters pin the hash key, scans otherwise."""
    if filter_spec.get(key_schema.hash_key.name):
        return ReadOperation.QUERY
    return ReadOperation.SCAN


class TableBrowser:
    def __init__(
        self,
        backend: DynamoBackend,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.backend = backend
        self.paginator = Paginator(ChunkedScanner(backend, chunk_size=chunk_size))
        self.page_size = page_size

    @classmethod
    def from_settings(cls, settings: AdminSettings) -> "TableBrowser":
        return cls(
            DynamoBackend.from_settings(settings),
            chunk_size=settings.chunk_size,
            page_size=settings.page_size,
        )

    # --- Tables ---

    def describe(self, table_name: str) -> TableDescription:
        return self.backend.describe_table(table_name)

    def list_tables(self) -> list[TableDescription]:
        return [self.describe(name) for name in self.backend.list_table_names()]

    # --- Pages ---

    def get_page(
        self,
        table_name: str,
        filters: Mapping[str, str] | None = None,
        page_size: int | None = None,
        start_token: str | None = None,
        *,
        operation: ReadOperation | str | None = None,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> Page:
        """
        Returns one page of a table.

        Args:
            table_name: Table to browse
            filters: attribute -> value equality filters
            page_size: Records per page (defaults to the browser's page size)
            start_token: next_token of the previous page
            operation: Force SCAN or QUERY; by default a query is used when
                       the filters contain the hash key
            cancel: Cancellation signal checked before every backend call
            deadline: time.monotonic() deadline for every backend call
        """
        description = self.describe(table_name)
        filter_spec = dict(filters or {})
        if operation is None:
            operation = choose_operation(filter_spec, description.key_schema)

        return self.paginator.get_page(
            operation,
            description.key_schema,
            table_name,
            filter_spec,
            self.page_size if page_size is None else page_size,
            start_token,
            attribute_definitions=description.attribute_definitions,
            cancel=cancel,
            deadline=deadline,
        )

    # --- Keys ---

    @staticmethod
    def encode_key(hash_value: Any, range_value: Any | None = None) -> str:
        return encode_key(hash_value, range_value)

    def encode_item_key(self, table_name: str, item: dict[str, Any]) -> str:
        return encode_record_key(item, self.describe(table_name).key_schema)

    def decode_key(self, table_name: str, token: str) -> dict[str, Any]:
        return decode_key(token, self.describe(table_name).key_schema)

    # --- Items ---

    def get_item(self, table_name: str, token: str) -> dict[str, Any]:
        """
        Raises:
            InvalidKeyToken: If the token doesn't match the table's key schema
            ItemNotFoundError: If no item has that key
        """
        key = self.decode_key(table_name, token)
        item = self.backend.get_item(table_name, key)
        if item is None:
            raise ItemNotFoundError(key)
        return item

    def delete_item(self, table_name: str, token: str) -> None:
        self.backend.delete_item(table_name, self.decode_key(table_name, token))

    def put_item(self, table_name: str, item: dict[str, Any]) -> str:
        """
        Writes a new item, reads it back, and returns its key token.

        Raises:
            MissingKeyAttribute: If the item lacks a key attribute (nothing is written)
            ItemNotFoundError: If the item cannot be read back
        """
        key_schema = self.describe(table_name).key_schema
        key = extract_key(item, key_schema)
        self.backend.put_item(table_name, item)
        if self.backend.get_item(table_name, key) is None:
            raise ItemNotFoundError(key)
        return encode_key(*key.values())

    def replace_item(self, table_name: str, token: str, item: dict[str, Any]) -> dict[str, Any]:
        """Overwrites the item addressed by `token` and returns the stored version."""
        key = self.decode_key(table_name, token)
        logger.debug(
            "Replacing item",
            extra={"table": table_name, "operation": "replace", "key_hash": redact_key(key)},
        )
        self.backend.put_item(table_name, item)
        stored = self.backend.get_item(table_name, key)
        if stored is None:
            raise ItemNotFoundError(key)
        return stored

    def batch_write(
        self, table_name: str, items: dict[str, Any] | list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Puts one item or a list of items; returns the unprocessed ones."""
        if isinstance(items, dict):
            items = [items]
        return self.backend.batch_write(table_name, items)

    def new_item_template(self, table_name: str) -> dict[str, Any]:
        """Key attributes pre-filled with an empty value of their type, for an "add item" form."""
        template: dict[str, Any] = {}
        for attribute in self.describe(table_name).key_schema.attributes:
            if attribute.attribute_type is AttributeType.STRING:
                template[attribute.name] = ""
            elif attribute.attribute_type is AttributeType.BINARY:
                template[attribute.name] = b""
            else:
                template[attribute.name] = 0
        return template
