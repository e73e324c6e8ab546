"""
Shared pytest fixtures and configuration for dynadmin tests.

Unit tests run against MagicMock clients or the in-memory paging fake in
tests/helpers; integration tests (tests/integration) run the real backend
against moto's in-process DynamoDB.
"""

from typing import Any
from unittest.mock import MagicMock

import pytest

from dynadmin.backend import DynamoBackend
from dynadmin.config import AttributeType, KeySchema
from tests.helpers.fake_dynamo import InMemoryDynamoClient, make_items


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests with mocked dependencies")
    config.addinivalue_line("markers", "integration: Integration tests against moto DynamoDB")


@pytest.fixture
def mock_client():
    """
    Creates a fully mocked boto3 DynamoDB client.

    This fixture provides a mock client for unit tests that only need to
    check the parameters sent to DynamoDB.
    """
    client = MagicMock()
    client.get_paginator.return_value = MagicMock()
    return client


@pytest.fixture
def mock_backend(mock_client) -> DynamoBackend:
    return DynamoBackend(mock_client)


@pytest.fixture
def hash_schema() -> KeySchema:
    """Hash-only key schema: pk (S)."""
    return KeySchema.of("pk", AttributeType.STRING)


@pytest.fixture
def composite_schema() -> KeySchema:
    """Hash + range key schema: pk (S), ts (N)."""
    return KeySchema.of("pk", AttributeType.STRING, "ts", AttributeType.NUMBER)


@pytest.fixture
def fake_table():
    """
    Factory for an in-memory table.

    Usage:
        backend, client = fake_table(30)
        backend, client = fake_table(30, with_range=True, keep=lambda item: ...)
    """

    def _make(
        count: int, with_range: bool = False, **kwargs: Any
    ) -> tuple[DynamoBackend, InMemoryDynamoClient]:
        key_names = ["pk", "ts"] if with_range else ["pk"]
        client = InMemoryDynamoClient(make_items(count, with_range), key_names, **kwargs)
        return DynamoBackend(client), client

    return _make


@pytest.fixture
def describe_response() -> dict[str, Any]:
    """A describe_table response for a hash + range table with a numeric GSI key."""
    return {
        "Table": {
            "TableName": "events",
            "KeySchema": [
                {"AttributeName": "pk", "KeyType": "HASH"},
                {"AttributeName": "ts", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": "pk", "AttributeType": "S"},
                {"AttributeName": "ts", "AttributeType": "N"},
                {"AttributeName": "position", "AttributeType": "N"},
            ],
            "ItemCount": 12,
        }
    }


SETTINGS_ENV_VARS = (
    "DYNAMO_ENDPOINT",
    "AWS_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "DYNADMIN_CHUNK_SIZE",
    "DYNADMIN_PAGE_SIZE",
    "ENDPOINT_URL",
    "REGION",
    "ACCESS_KEY_ID",
    "SECRET_ACCESS_KEY",
    "CHUNK_SIZE",
    "PAGE_SIZE",
)


@pytest.fixture
def clean_settings_env(monkeypatch):
    """Removes every variable AdminSettings reads, so only the test's own values apply."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
