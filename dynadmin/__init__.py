from .backend import Chunk, DynamoBackend
from .browser import TableBrowser, choose_operation
from .config import (
    AdminSettings,
    AttributeType,
    KeyAttribute,
    KeyRole,
    KeySchema,
    TableDescription,
)
from .exceptions import (
    BackendRequestFailed,
    ConfigurationError,
    DynadminError,
    DynamoSerializationError,
    InvalidFilterValue,
    InvalidKeySchemaError,
    InvalidKeyToken,
    InvalidPageSize,
    ItemNotFoundError,
    MissingKeyAttribute,
    OperationCancelled,
    ProvisionedThroughputExceededError,
    RequestTimeoutError,
    TableNotFoundError,
    ValidationError,
)
from .filters import build_filter, build_query, filter_spec_from_params
from .keys import decode_key, encode_key, encode_record_key, extract_key
from .pagination import Page, Paginator
from .scanner import ChunkedScanner, ReadOperation

__all__ = [
    "TableBrowser",
    "choose_operation",
    # Engine
    "Paginator",
    "Page",
    "ChunkedScanner",
    "ReadOperation",
    "DynamoBackend",
    "Chunk",
    # Keys & filters
    "encode_key",
    "decode_key",
    "encode_record_key",
    "extract_key",
    "build_filter",
    "build_query",
    "filter_spec_from_params",
    # Metadata & settings
    "AdminSettings",
    "AttributeType",
    "KeyAttribute",
    "KeyRole",
    "KeySchema",
    "TableDescription",
    # Exceptions
    "DynadminError",
    "BackendRequestFailed",
    "TableNotFoundError",
    "ProvisionedThroughputExceededError",
    "RequestTimeoutError",
    "ValidationError",
    "InvalidKeyToken",
    "InvalidFilterValue",
    "MissingKeyAttribute",
    "InvalidPageSize",
    "InvalidKeySchemaError",
    "ItemNotFoundError",
    "OperationCancelled",
    "ConfigurationError",
    "DynamoSerializationError",
]
