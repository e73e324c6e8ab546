"""
Library logger and key redaction.

dynadmin never configures logging itself; the host application owns handlers
and levels. Records carry their context in `extra` (table, operation,
count...), and key values only ever appear hashed.
"""

import hashlib
import logging
from collections.abc import Mapping
from typing import Any

from boto3.dynamodb.types import Binary

logger = logging.getLogger("dynadmin")

# Add NullHandler to prevent "No handlers could be found" warnings
# if the application doesn't configure logging.
logger.addHandler(logging.NullHandler())


def _digest(value: Any) -> str:
    if isinstance(value, Binary):
        value = value.value
    data = bytes(value) if isinstance(value, (bytes, bytearray)) else str(value).encode("utf-8")
    return hashlib.sha256(data).hexdigest()[:8]


def redact_key(key: Mapping[str, Any] | Any) -> str:
    """
    Hashes key values (primary keys, cursors, tokens) for logging.

    Equal values always hash the same way, so a cursor can be followed across
    log lines without the stored data appearing in them:

        redact_key({"pk": "alice", "ts": 3})  ->  "pk=<8 hex> ts=<8 hex>"
    """
    if isinstance(key, Mapping):
        return " ".join(f"{name}={_digest(key[name])}" for name in sorted(key))
    return _digest(key)
