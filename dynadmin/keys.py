"""
Primary key helpers: projection of records onto their key, and the URL key token.

Token format
------------
A key token is the percent-encoded hash value, optionally followed by one literal
"," and the percent-encoded range value:

    encode_key("general", "2023-01-01")   -> "general,2023-01-01"
    encode_key("a,b", 7)                  -> "a%2Cb,7"

Values are percent-encoded like JavaScript's encodeURIComponent, so a comma inside
a value is always escaped (%2C) and the first literal comma is the delimiter.
Numbers are written as decimal text (Decimal keeps every digit) and binary values
as standard base64.
"""

import base64
import math
import re
from decimal import Decimal
from typing import Any
from urllib.parse import quote, unquote

from boto3.dynamodb.types import Binary

from .config import KeyAttribute, KeySchema
from .exceptions import DynamoSerializationError, InvalidKeyToken, MissingKeyAttribute
from .serializer import DynamoSerializer

KEY_DELIMITER = ","

# Characters encodeURIComponent leaves alone on top of quote()'s own unreserved set
_URI_SAFE = "!*'()"
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

_serializer = DynamoSerializer()


def extract_key(record: dict[str, Any], key_schema: KeySchema) -> dict[str, Any]:
    """
    Projects a record down to its primary key attributes (schema order).

    Raises:
        MissingKeyAttribute: If the record lacks one of the key attributes
    """
    key = {}
    for attribute in key_schema.attributes:
        if attribute.name not in record:
            raise MissingKeyAttribute(attribute.name)
        key[attribute.name] = record[attribute.name]
    return key


def encode_key(hash_value: Any, range_value: Any | None = None) -> str:
    """Encodes a hash value, and optionally a range value, into a URL-safe key token."""
    token = _quote(_render(hash_value))
    if range_value is not None:
        token += KEY_DELIMITER + _quote(_render(range_value))
    return token


def encode_record_key(record: dict[str, Any], key_schema: KeySchema) -> str:
    """Extracts the key of a record (or of a key mapping) and encodes it as a token."""
    key = extract_key(record, key_schema)
    return encode_key(*key.values())


def decode_key(token: str, key_schema: KeySchema) -> dict[str, Any]:
    """
    Decodes a key token into {attribute_name: value}, typed by the key schema.

    Raises:
        InvalidKeyToken: If the token cannot be split, unescaped or coerced
                         according to the schema
    """
    if not token:
        raise InvalidKeyToken(token, "empty token")

    hash_part, delimiter, range_part = token.partition(KEY_DELIMITER)
    range_key = key_schema.range_key

    if delimiter and range_key is None:
        raise InvalidKeyToken(token, "range value given but the table has no range key")
    if not delimiter and range_key is not None:
        raise InvalidKeyToken(token, f"missing value for range key '{range_key.name}'")

    key = {key_schema.hash_key.name: _decode_segment(token, hash_part, key_schema.hash_key)}
    if range_key is not None:
        key[range_key.name] = _decode_segment(token, range_part, range_key)
    return key


def _quote(text: str) -> str:
    return quote(text, safe=_URI_SAFE)


def _render(value: Any) -> str:
    """Renders a key value as text before percent-encoding."""
    if isinstance(value, str):
        return value
    # bool is an int subclass, but never a valid key type
    if isinstance(value, bool):
        raise DynamoSerializationError(f"Unsupported key value {value!r}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise DynamoSerializationError(f"Unsupported key value {value!r}")
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise DynamoSerializationError(f"Unsupported key value {value!r}")
        return repr(value)
    if isinstance(value, Binary):
        value = value.value
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise DynamoSerializationError(
        f"Unsupported key value type {type(value).__name__}: {value!r}"
    )


def _decode_segment(token: str, segment: str, attribute: KeyAttribute) -> Any:
    if not segment:
        raise InvalidKeyToken(token, f"empty value for key '{attribute.name}'")
    if _MALFORMED_ESCAPE.search(segment):
        raise InvalidKeyToken(token, f"malformed percent-escape in key '{attribute.name}'")

    try:
        text = unquote(segment, errors="strict")
    except UnicodeDecodeError as e:
        raise InvalidKeyToken(
            token, f"value for key '{attribute.name}' is not valid UTF-8", original_error=e
        ) from e

    try:
        return _serializer.coerce(text, attribute.attribute_type)
    except ValueError as e:
        raise InvalidKeyToken(
            token,
            f"value for key '{attribute.name}' is not a valid {attribute.attribute_type.name}",
            original_error=e,
        ) from e
