"""
Fixtures for integration tests against moto's in-process DynamoDB.

Tables:
    Messages: room_id (S, HASH) + ts (N, RANGE)
    Users:    email (S, HASH)
"""

from collections.abc import Generator
from os import environ
from typing import Any

import boto3
import pytest
from moto import mock_aws

from dynadmin.backend import DynamoBackend
from dynadmin.browser import TableBrowser


@pytest.fixture(scope="session", autouse=True)
def aws_credentials() -> None:
    """Set up fake AWS credentials for moto."""
    environ["AWS_ACCESS_KEY_ID"] = "testing"
    environ["AWS_SECRET_ACCESS_KEY"] = "testing"  # noqa: S105
    environ["AWS_SECURITY_TOKEN"] = "testing"  # noqa: S105
    environ["AWS_SESSION_TOKEN"] = "testing"  # noqa: S105
    environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_client() -> Generator[Any, None, None]:
    """Low-level DynamoDB client with the Messages and Users tables created."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="us-east-1")
        client.create_table(
            TableName="Messages",
            KeySchema=[
                {"AttributeName": "room_id", "KeyType": "HASH"},
                {"AttributeName": "ts", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "room_id", "AttributeType": "S"},
                {"AttributeName": "ts", "AttributeType": "N"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        client.create_table(
            TableName="Users",
            KeySchema=[{"AttributeName": "email", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "email", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        yield client


@pytest.fixture
def backend(dynamodb_client) -> DynamoBackend:
    return DynamoBackend(dynamodb_client)


@pytest.fixture
def browser(backend) -> TableBrowser:
    return TableBrowser(backend, chunk_size=4, page_size=7)


@pytest.fixture
def seeded_messages(dynamodb_client) -> list[tuple[str, int]]:
    """
    Writes 30 messages: 20 in "general" (ts 0..19) and 10 in "random" (ts 0..9).

    Returns the (room_id, ts) keys that were written.
    """
    keys = [("general", ts) for ts in range(20)] + [("random", ts) for ts in range(10)]
    for room_id, ts in keys:
        dynamodb_client.put_item(
            TableName="Messages",
            Item={
                "room_id": {"S": room_id},
                "ts": {"N": str(ts)},
                "kind": {"S": "note" if ts % 3 == 0 else "chat"},
                "body": {"S": f"message {ts} in {room_id}"},
            },
        )
    return keys
