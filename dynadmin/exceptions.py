from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError


class DynadminError(Exception):
    """Base exception for all dynadmin errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


# --- Backend failures ---


class BackendRequestFailed(DynadminError):
    """Raised when a call to DynamoDB fails (network, throttling, validation...)."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.operation = operation


class TableNotFoundError(BackendRequestFailed):
    """Raised when the DynamoDB table does not exist."""

    def __init__(
        self,
        table_name: str,
        operation: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(f"Table '{table_name}' not found", operation, original_error)
        self.table_name = table_name


class ProvisionedThroughputExceededError(BackendRequestFailed):
    """Raised when DynamoDB throttles requests."""

    def __init__(
        self,
        message: str = "Request rate exceeded",
        operation: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, operation, original_error)


class RequestTimeoutError(BackendRequestFailed):
    """Raised when a request times out or its deadline has already passed."""

    def __init__(
        self,
        message: str = "Request timed out",
        operation: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, operation, original_error)


class ValidationError(BackendRequestFailed):
    """Raised when DynamoDB rejects the request parameters."""


# --- Engine errors (raised before any backend call) ---


class InvalidKeyToken(DynadminError):
    """Raised when a key token is malformed or does not match the key schema."""

    def __init__(
        self, token: str, reason: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(f"Invalid key token {token!r}: {reason}", original_error)
        self.token = token
        self.reason = reason


class InvalidFilterValue(DynadminError):
    """Raised when a filter value cannot be coerced to its attribute's type."""

    def __init__(
        self,
        attribute: str,
        value: Any,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        msg = message or f"Invalid value {value!r} for filter attribute '{attribute}'"
        super().__init__(msg, original_error)
        self.attribute = attribute
        self.value = value


class MissingKeyAttribute(DynadminError):
    """Raised when a record lacks one of the key schema attributes."""

    def __init__(self, attribute: str) -> None:
        super().__init__(f"Record is missing key attribute '{attribute}'")
        self.attribute = attribute


class InvalidPageSize(DynadminError):
    """Raised when the requested page size is not a positive integer."""

    def __init__(self, page_size: Any) -> None:
        super().__init__(f"Page size must be an integer >= 1, got {page_size!r}")
        self.page_size = page_size


class InvalidKeySchemaError(DynadminError):
    """Raised when a table key schema is not exactly one HASH and at most one RANGE."""


class ItemNotFoundError(DynadminError):
    """Raised when an item addressed by key does not exist."""

    def __init__(self, key: dict[str, Any], original_error: Exception | None = None) -> None:
        super().__init__(f"Item with key {key} not found", original_error)
        self.key = key


class OperationCancelled(DynadminError):
    """Raised when a read is cancelled between two backend calls."""

    def __init__(self, message: str = "Operation cancelled") -> None:
        super().__init__(message)


class ConfigurationError(DynadminError):
    """Raised when the admin settings are invalid."""


class DynamoSerializationError(DynadminError):
    """Raised when serialization to DynamoDB format fails (e.g. unsupported type)."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message, original_error)


@contextmanager
def handle_dynamo_errors(
    table_name: str | None = None, operation: str | None = None
) -> Generator[None, None, None]:
    """
    Context manager that catches botocore errors and raises the
    appropriate BackendRequestFailed subclass.

    Args:
        table_name: Optional table name for better error messages
        operation: Optional DynamoDB operation name (Scan, Query, GetItem...)

    Usage:
        with handle_dynamo_errors(table_name="users", operation="Scan"):
            client.scan(...)
    """
    try:
        yield
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        error_message = e.response.get("Error", {}).get("Message", str(e))

        if error_code == "ResourceNotFoundException":
            raise TableNotFoundError(
                table_name=table_name or "unknown", operation=operation, original_error=e
            ) from e

        if error_code in (
            "ProvisionedThroughputExceededException",
            "ThrottlingException",
            "RequestLimitExceeded",
        ):
            raise ProvisionedThroughputExceededError(
                message=error_message, operation=operation, original_error=e
            ) from e

        if error_code in ("ValidationException", "SerializationException"):
            raise ValidationError(
                message=error_message, operation=operation, original_error=e
            ) from e

        if error_code in ("RequestTimeout", "RequestTimeoutException"):
            raise RequestTimeoutError(
                message=error_message, operation=operation, original_error=e
            ) from e

        # Unknown error: surface the backend's own message
        raise BackendRequestFailed(
            message=f"DynamoDB error ({error_code}): {error_message}",
            operation=operation,
            original_error=e,
        ) from e
    except BotoCoreError as e:
        # Connection failures, endpoint errors, credential problems...
        raise BackendRequestFailed(
            message=f"DynamoDB request failed: {e}", operation=operation, original_error=e
        ) from e
