"""
Equality filters for scans and queries.

A filter spec is a mapping of attribute name -> value as received from the
admin view (always text). Each value is coerced to the attribute's declared
type and embedded in DynamoDB's expression syntax with placeholders, so
attribute names that are reserved words (status, name, ...) or contain
special characters are always safe.

Usage:
    build_filter({"status": "active", "age": "42"}, {"age": AttributeType.NUMBER})
    # {
    #     "FilterExpression": "#f0 = :f0 AND #f1 = :f1",
    #     "ExpressionAttributeNames": {"#f0": "status", "#f1": "age"},
    #     "ExpressionAttributeValues": {":f0": {"S": "active"}, ":f1": {"N": "42"}},
    # }
"""

from collections.abc import Mapping
from typing import Any

from .config import AttributeType, KeySchema
from .exceptions import InvalidFilterValue
from .serializer import DynamoSerializer

# Query-string parameters the admin view uses for navigation, never filters
RESERVED_PARAMS = frozenset({"startKey", "pageNum", "_hash", "range"})

_serializer = DynamoSerializer()


def filter_spec_from_params(params: Mapping[str, Any]) -> dict[str, str]:
    """Keeps the non-empty, non-reserved request parameters as an equality filter spec."""
    return {
        name: str(value)
        for name, value in params.items()
        if name not in RESERVED_PARAMS and value not in (None, "")
    }


def build_filter(
    filter_spec: Mapping[str, str] | None,
    attribute_definitions: Mapping[str, AttributeType | str] | None = None,
) -> dict[str, Any]:
    """
    Translates an equality filter spec into FilterExpression parameters.

    Args:
        filter_spec: attribute name -> textual value, ANDed together
        attribute_definitions: declared attribute types (usually only key
                               and index attributes are declared)

    Returns:
        Dict with FilterExpression, ExpressionAttributeNames and
        ExpressionAttributeValues, or an empty dict for an empty spec.

    Raises:
        InvalidFilterValue: If a value cannot be coerced to its declared type
    """
    clauses, names, values = _equality_clauses("f", filter_spec or {}, attribute_definitions)
    if not clauses:
        return {}
    return {
        "FilterExpression": " AND ".join(clauses),
        "ExpressionAttributeNames": names,
        "ExpressionAttributeValues": values,
    }


def build_query(
    filter_spec: Mapping[str, str],
    key_schema: KeySchema,
    attribute_definitions: Mapping[str, AttributeType | str] | None = None,
) -> dict[str, Any]:
    """
    Splits an equality filter spec into Query parameters.

    The hash key (and the range key, when present in the filter spec) become the
    KeyConditionExpression; every other attribute goes to the FilterExpression.

    Raises:
        InvalidFilterValue: If the filter spec has no value for the hash key, or a
                            value cannot be coerced
    """
    definitions = dict(key_schema.attribute_definitions())
    if attribute_definitions:
        definitions.update(attribute_definitions)

    hash_name = key_schema.hash_key.name
    if not filter_spec.get(hash_name):
        raise InvalidFilterValue(
            hash_name,
            None,
            message=f"A query needs an equality value for hash key '{hash_name}'",
        )

    key_spec = {
        name: value for name, value in filter_spec.items() if name in key_schema.attribute_names
    }
    rest = {name: value for name, value in filter_spec.items() if name not in key_spec}

    key_clauses, names, values = _equality_clauses("k", key_spec, definitions)
    params: dict[str, Any] = {
        "KeyConditionExpression": " AND ".join(key_clauses),
        "ExpressionAttributeNames": names,
        "ExpressionAttributeValues": values,
    }

    filter_params = build_filter(rest, definitions)
    if filter_params:
        params["FilterExpression"] = filter_params["FilterExpression"]
        names.update(filter_params["ExpressionAttributeNames"])
        values.update(filter_params["ExpressionAttributeValues"])

    return params


def _equality_clauses(
    prefix: str,
    spec: Mapping[str, str],
    attribute_definitions: Mapping[str, AttributeType | str] | None,
) -> tuple[list[str], dict[str, str], dict[str, Any]]:
    definitions = attribute_definitions or {}
    clauses: list[str] = []
    names: dict[str, str] = {}
    values: dict[str, Any] = {}

    for i, (name, raw) in enumerate(spec.items()):
        name_placeholder = f"#{prefix}{i}"
        value_placeholder = f":{prefix}{i}"

        attribute_type = definitions.get(name)
        try:
            value = _serializer.coerce(str(raw), attribute_type)
        except ValueError as e:
            raise InvalidFilterValue(name, raw, original_error=e) from e

        clauses.append(f"{name_placeholder} = {value_placeholder}")
        names[name_placeholder] = name
        values[value_placeholder] = _serializer.to_dynamo_value(value)

    return clauses, names, values
