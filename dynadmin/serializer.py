import base64
import binascii
import re
from decimal import Decimal, InvalidOperation
from typing import Any, cast

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

from .config import AttributeType
from .exceptions import DynamoSerializationError

# DynamoDB numbers: up to 38 significant digits, magnitude 1E-130 to 9.99...E+125
MAX_NUMBER_DIGITS = 38
MIN_NUMBER_EXPONENT = -130
MAX_NUMBER_EXPONENT = 125

_NUMBER_TEXT = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def check_number_range(number: Decimal) -> None:
    """
    Raises ValueError if `number` is not a value DynamoDB can store.

    Only the digit tuple and the adjusted exponent are inspected, so huge
    exponents are refused without ever being expanded.
    """
    if not number.is_finite():
        raise ValueError(f"{number} is not a finite number")
    # Decimal drops leading zeros from the coefficient; trailing ones are not significant
    significant = "".join(map(str, number.as_tuple().digits)).rstrip("0")
    if not significant:
        return
    if len(significant) > MAX_NUMBER_DIGITS:
        raise ValueError(f"{number} has more than {MAX_NUMBER_DIGITS} significant digits")
    if not MIN_NUMBER_EXPONENT <= number.adjusted() <= MAX_NUMBER_EXPONENT:
        raise ValueError(f"{number} is outside the DynamoDB number range")


def _restore_number(number: Decimal) -> int | float | Decimal:
    """int when whole, float when the float is exact, the Decimal itself otherwise."""
    if number.is_zero():
        return 0
    if number == number.to_integral_value():
        # ints past 38 digits would no longer serialize back under boto3's number context
        return int(number) if number.adjusted() < MAX_NUMBER_DIGITS else number
    as_float = float(number)
    if Decimal(repr(as_float)) == number:
        return as_float
    return number


class DynamoSerializer:
    """
    Handles the conversion between plain Python values and DynamoDB Low-Level format.

    Architectural Note:
    -------------------
    The low-level format ({"S": ...}, {"N": ...}, {"B": ...}, {"M": ...}) is a tagged
    variant: every value carries its DynamoDB type. Records handed to callers are plain
    Python dicts; numbers come back as int or float when that is exact (Decimal otherwise)
    and binary as boto3's Binary wrapper.
    Boto3's TypeSerializer throws on floats, so floats become Decimal on the way in.
    """

    def __init__(self) -> None:
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def to_dynamo(self, data: dict[str, Any]) -> dict[str, dict[str, Any]]:
        """Converts a standard Python dict to DynamoDB JSON format ({"S": "...", "N": "..."})."""
        clean_data = self._prepare_for_dynamo(data)
        result = {}

        for k, v in clean_data.items():
            try:
                serialized = self._serializer.serialize(v)
            except TypeError as e:
                raise DynamoSerializationError(
                    f"Failed to serialize field '{k}'. value={v!r} error={e!s}", original_error=e
                ) from e

            if not (isinstance(v, (set, frozenset)) and len(v) == 0):
                result[k] = cast(dict[str, Any], serialized)
        return result

    def to_dynamo_value(self, value: Any) -> dict[str, Any]:
        """
        Serializes a single scalar value to DynamoDB format.
        Used for building ExpressionAttributeValues.
        E.g.: 10.5 -> {'N': '10.5'}
        """
        clean_value = self._prepare_for_dynamo(value)
        try:
            result = cast(dict[str, Any], self._serializer.serialize(clean_value))
        except TypeError as e:
            raise DynamoSerializationError(
                f"Failed to serialize value '{value}'. error={e!s}", original_error=e
            ) from e
        return result

    def from_dynamo(self, item: dict[str, Any]) -> dict[str, Any]:
        """Converts DynamoDB JSON format back to standard Python dict."""
        python_data = {k: self._deserializer.deserialize(v) for k, v in item.items()}
        result = self._restore_to_python(python_data)
        assert isinstance(result, dict)
        return result

    def serialize_cursor(self, last_evaluated_key: dict[str, Any]) -> dict[str, Any]:
        """
        Converts DynamoDB LastEvaluatedKey format to plain Python dict.

        Input:  {"pk": {"S": "value"}, "sk": {"N": "123"}}
        Output: {"pk": "value", "sk": 123}
        """
        return self.from_dynamo(last_evaluated_key)

    def deserialize_cursor(self, cursor: dict[str, Any]) -> dict[str, Any]:
        """
        Converts plain Python dict back to DynamoDB key format (ExclusiveStartKey).

        Input:  {"pk": "value", "sk": 123}
        Output: {"pk": {"S": "value"}, "sk": {"N": "123"}}
        """
        return self.to_dynamo(cursor)

    def coerce(self, raw: str, attribute_type: AttributeType | str | None) -> Any:
        """
        Coerces a textual value (URL segment, query parameter) to a declared type.

        - N: plain decimal text (optional sign, fraction and exponent) within
             DynamoDB's number range; int when whole, float when the float is
             exact, Decimal otherwise
        - B: standard base64 decoded to bytes
        - S or undeclared: returned unchanged

        Raises:
            ValueError: If the text is not a valid value of that type
        """
        if attribute_type is None:
            return raw
        attribute_type = AttributeType(attribute_type)

        if attribute_type is AttributeType.NUMBER:
            if not _NUMBER_TEXT.fullmatch(raw):
                raise ValueError(f"{raw!r} is not a number")
            try:
                number = Decimal(raw)
            except InvalidOperation as e:
                raise ValueError(f"{raw!r} is not a number") from e
            check_number_range(number)
            return _restore_number(number)

        if attribute_type is AttributeType.BINARY:
            try:
                return base64.b64decode(raw, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValueError(f"{raw!r} is not valid base64") from e

        return raw

    def _prepare_for_dynamo(self, value: Any) -> Any:
        """
        Recursively prepares Python values for Boto3 TypeSerializer.

        Converts:
        - float -> Decimal (boto3 requirement)
        - bytearray -> bytes
        """
        if isinstance(value, float):
            # Convert to string first to avoid float precision artifacts during Decimal creation
            return Decimal(str(value))
        if isinstance(value, (bytes, Binary)):
            return value
        if isinstance(value, bytearray):
            return bytes(value)
        if isinstance(value, (set, frozenset)):
            # Keep as set for SS/NS/BS support
            # Warning: Empty sets will raise an error in boto3 TypeSerializer
            return {self._prepare_for_dynamo(v) for v in value}
        if isinstance(value, list):
            return [self._prepare_for_dynamo(v) for v in value]
        if isinstance(value, dict):
            return {k: self._prepare_for_dynamo(v) for k, v in value.items()}
        return value

    def _restore_to_python(self, value: Any) -> Any:
        """
        Recursively restores DynamoDB values to Python-friendly types.

        Converts:
        - Decimal -> int (if whole number) or float (if exactly representable)
        """
        if isinstance(value, Decimal):
            return _restore_number(value)
        if isinstance(value, list):
            return [self._restore_to_python(v) for v in value]
        if isinstance(value, dict):
            return {k: self._restore_to_python(v) for k, v in value.items()}
        return value
