"""
Unit tests for ChunkedScanner.

The scanner runs against the in-memory paging client, so every test can
inspect exactly which requests were sent and in which order.
"""

import threading
import time
from decimal import Decimal

import pytest
from botocore.exceptions import ClientError

from dynadmin.backend import DynamoBackend
from dynadmin.exceptions import (
    BackendRequestFailed,
    OperationCancelled,
    ProvisionedThroughputExceededError,
    RequestTimeoutError,
)
from dynadmin.scanner import ChunkedScanner, ReadOperation
from tests.helpers.fake_dynamo import InMemoryDynamoClient


def _throttled() -> ClientError:
    return ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
        "Scan",
    )


@pytest.mark.unit
class TestChunkedScannerSetup:
    @pytest.mark.parametrize("chunk_size", [0, -1, True, "10", 2.5])
    def test_invalid_chunk_size(self, mock_backend, chunk_size) -> None:
        with pytest.raises(ValueError):
            ChunkedScanner(mock_backend, chunk_size=chunk_size)

    def test_unknown_operation(self, fake_table) -> None:
        backend, client = fake_table(3)
        with pytest.raises(ValueError):
            list(ChunkedScanner(backend).iter_chunks("delete", "t"))
        assert client.calls == []


@pytest.mark.unit
class TestIterChunks:
    """Test the lazy chunk sequence."""

    def test_follows_cursors_sequentially(self, fake_table) -> None:
        backend, client = fake_table(25)
        scanner = ChunkedScanner(backend, chunk_size=10)

        chunks = list(scanner.iter_chunks(ReadOperation.SCAN, "items"))

        assert [len(c.items) for c in chunks] == [10, 10, 5]
        assert chunks[0].last_evaluated_key == {"pk": "item-009"}
        assert chunks[-1].last_evaluated_key is None

        requests = [kwargs for _, kwargs in client.calls]
        assert all(r["TableName"] == "items" and r["Limit"] == 10 for r in requests)
        assert "ExclusiveStartKey" not in requests[0]
        assert requests[1]["ExclusiveStartKey"] == {"pk": {"S": "item-009"}}
        assert requests[2]["ExclusiveStartKey"] == {"pk": {"S": "item-019"}}

    def test_items_are_plain_python(self, fake_table) -> None:
        backend, _ = fake_table(1)
        chunk = next(ChunkedScanner(backend).iter_chunks("scan", "items"))
        assert chunk.items == [{"pk": "item-000", "position": 0, "parity": "even"}]

    def test_exact_multiple_of_chunk_size(self, fake_table) -> None:
        backend, client = fake_table(20)
        chunks = list(ChunkedScanner(backend, chunk_size=10).iter_chunks("scan", "items"))

        assert [len(c.items) for c in chunks] == [10, 10]
        assert len(client.calls) == 2

    def test_trailing_cursor_ends_with_empty_chunk(self, fake_table) -> None:
        """Test a cursor at the very end of the table costs one extra, empty read."""
        backend, client = fake_table(20, trailing_cursor=True)
        chunks = list(ChunkedScanner(backend, chunk_size=10).iter_chunks("scan", "items"))

        assert [len(c.items) for c in chunks] == [10, 10, 0]
        assert chunks[-1].has_more is False
        assert len(client.calls) == 3

    def test_empty_table(self, fake_table) -> None:
        backend, client = fake_table(0)
        chunks = list(ChunkedScanner(backend).iter_chunks("scan", "items"))

        assert len(chunks) == 1
        assert chunks[0].items == []
        assert chunks[0].has_more is False

    def test_start_key(self, fake_table) -> None:
        backend, client = fake_table(10)
        chunk = next(
            ChunkedScanner(backend, chunk_size=3).iter_chunks(
                "scan", "items", start_key={"pk": "item-004"}
            )
        )

        assert client.calls[0][1]["ExclusiveStartKey"] == {"pk": {"S": "item-004"}}
        assert [i["pk"] for i in chunk.items] == ["item-005", "item-006", "item-007"]

    def test_composite_cursor(self, fake_table) -> None:
        backend, client = fake_table(5, with_range=True)
        list(ChunkedScanner(backend, chunk_size=2).iter_chunks("scan", "items"))

        assert client.calls[1][1]["ExclusiveStartKey"] == {
            "pk": {"S": "item-001"},
            "ts": {"N": "1"},
        }

    def test_params_are_passed_and_not_mutated(self, fake_table) -> None:
        backend, client = fake_table(5)
        params = {
            "FilterExpression": "#f0 = :f0",
            "ExpressionAttributeNames": {"#f0": "parity"},
            "ExpressionAttributeValues": {":f0": {"S": "even"}},
        }
        list(ChunkedScanner(backend, chunk_size=2).iter_chunks("scan", "items", params))

        assert all(kwargs["FilterExpression"] == "#f0 = :f0" for _, kwargs in client.calls)
        assert set(params) == {
            "FilterExpression",
            "ExpressionAttributeNames",
            "ExpressionAttributeValues",
        }

    def test_query_uses_query_call(self, fake_table) -> None:
        backend, client = fake_table(3)
        list(ChunkedScanner(backend).iter_chunks("query", "items", {"KeyConditionExpression": "x"}))
        assert [op for op, _ in client.calls] == ["query"]

    def test_cursor_is_sent_back_as_returned(self) -> None:
        """Test numeric cursors are resent digit for digit, never via a float."""
        stamps = ["0.10000000000000000001", "0.10000000000000000002", "0.10000000000000000003"]
        items = [{"pk": {"S": "a"}, "ts": {"N": ts}} for ts in stamps]
        client = InMemoryDynamoClient(items, ["pk", "ts"])
        scanner = ChunkedScanner(DynamoBackend(client), chunk_size=1)

        chunks = list(scanner.iter_chunks("query", "items"))

        assert [c.items[0]["ts"] for c in chunks if c.items] == [Decimal(ts) for ts in stamps]
        assert [kwargs["ExclusiveStartKey"]["ts"] for _, kwargs in client.calls[1:]] == [
            {"N": stamps[0]},
            {"N": stamps[1]},
        ]

    def test_breaking_early_stops_requests(self, fake_table) -> None:
        backend, client = fake_table(50)
        chunks = ChunkedScanner(backend, chunk_size=10).iter_chunks("scan", "items")

        next(chunks)
        chunks.close()

        assert len(client.calls) == 1


@pytest.mark.unit
class TestScan:
    """Test the accumulate-until-stop loop."""

    def test_reads_whole_table_without_stop(self, fake_table) -> None:
        backend, client = fake_table(25)
        records = ChunkedScanner(backend, chunk_size=10).scan("scan", "items")

        assert [r["position"] for r in records] == list(range(25))
        assert len(client.calls) == 3

    def test_stop_after_first_chunk(self, fake_table) -> None:
        backend, client = fake_table(25)
        records = ChunkedScanner(backend, chunk_size=10).scan(
            "scan", "items", stop=lambda items, next_key: True
        )

        assert len(records) == 10
        assert len(client.calls) == 1

    def test_stop_sees_chunk_and_cursor(self, fake_table) -> None:
        backend, _ = fake_table(12)
        seen = []

        def stop(items, next_key):
            seen.append((len(items), next_key))
            return False

        ChunkedScanner(backend, chunk_size=5).scan("scan", "items", stop=stop)

        assert seen == [(5, {"pk": "item-004"}), (5, {"pk": "item-009"}), (2, None)]

    def test_sparse_filtered_chunks(self, fake_table) -> None:
        """Test a filter that drops records inside a chunk doesn't end the read."""
        backend, client = fake_table(20, keep=lambda item: item["parity"]["S"] == "even")
        records = ChunkedScanner(backend, chunk_size=4).scan("scan", "items")

        assert [r["position"] for r in records] == list(range(0, 20, 2))
        assert len(client.calls) == 5

    def test_failure_on_first_chunk(self, fake_table) -> None:
        backend, client = fake_table(25)
        client.failures[1] = _throttled()

        with pytest.raises(ProvisionedThroughputExceededError) as exc_info:
            ChunkedScanner(backend, chunk_size=10).scan("scan", "items")

        assert exc_info.value.operation == "Scan"
        assert len(client.calls) == 1

    def test_failure_on_later_chunk_discards_everything(self, fake_table) -> None:
        backend, client = fake_table(25)
        client.failures[2] = _throttled()

        with pytest.raises(BackendRequestFailed):
            ChunkedScanner(backend, chunk_size=10).scan("scan", "items")

        assert len(client.calls) == 2

    def test_cancelled_before_first_call(self, fake_table) -> None:
        backend, client = fake_table(25)
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelled):
            ChunkedScanner(backend).scan("scan", "items", cancel=cancel)

        assert client.calls == []

    def test_cancelled_between_chunks(self, fake_table) -> None:
        backend, client = fake_table(25)
        cancel = threading.Event()

        def stop(items, next_key):
            cancel.set()
            return False

        with pytest.raises(OperationCancelled):
            ChunkedScanner(backend, chunk_size=10).scan("scan", "items", stop=stop, cancel=cancel)

        assert len(client.calls) == 1

    def test_expired_deadline(self, fake_table) -> None:
        backend, client = fake_table(25)

        with pytest.raises(RequestTimeoutError):
            ChunkedScanner(backend).scan("scan", "items", deadline=time.monotonic() - 1)

        assert client.calls == []

    def test_future_deadline(self, fake_table) -> None:
        backend, _ = fake_table(5)
        records = ChunkedScanner(backend).scan("scan", "items", deadline=time.monotonic() + 60)
        assert len(records) == 5
