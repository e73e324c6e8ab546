from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import AliasChoices, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._logging import logger
from .exceptions import ConfigurationError, InvalidKeySchemaError

DEFAULT_CHUNK_SIZE = 10
DEFAULT_PAGE_SIZE = 25
DEFAULT_ENDPOINT = "http://localhost:8000"


class AttributeType(str, Enum):
    """Scalar attribute types a key or attribute definition can declare."""

    STRING = "S"
    NUMBER = "N"
    BINARY = "B"


class KeyRole(str, Enum):
    HASH = "HASH"
    RANGE = "RANGE"


@dataclass(frozen=True)
class KeyAttribute:
    """One entry of a table's primary key."""

    name: str
    role: KeyRole
    attribute_type: AttributeType = AttributeType.STRING


@dataclass(frozen=True)
class KeySchema:
    """
    Ordered primary key definition of a table.

    Invariant: exactly one HASH attribute and at most one RANGE attribute.
    The HASH attribute always comes first.
    """

    attributes: tuple[KeyAttribute, ...]

    def __post_init__(self) -> None:
        hashes = [a for a in self.attributes if a.role is KeyRole.HASH]
        ranges = [a for a in self.attributes if a.role is KeyRole.RANGE]
        if len(hashes) != 1:
            raise InvalidKeySchemaError(
                f"Key schema must have exactly one HASH attribute, got {len(hashes)}"
            )
        if len(ranges) > 1:
            raise InvalidKeySchemaError(
                f"Key schema can have at most one RANGE attribute, got {len(ranges)}"
            )
        # Normalise ordering: hash first, then range
        object.__setattr__(self, "attributes", tuple(hashes + ranges))

    @classmethod
    def of(
        cls,
        hash_name: str,
        hash_type: AttributeType | str = AttributeType.STRING,
        range_name: str | None = None,
        range_type: AttributeType | str = AttributeType.STRING,
    ) -> "KeySchema":
        """
        Convenience constructor.

        Usage:
            KeySchema.of("room_id", "S", "timestamp", "N")
        """
        attributes = [KeyAttribute(hash_name, KeyRole.HASH, AttributeType(hash_type))]
        if range_name:
            attributes.append(KeyAttribute(range_name, KeyRole.RANGE, AttributeType(range_type)))
        return cls(tuple(attributes))

    @classmethod
    def from_description(
        cls,
        key_schema: list[dict[str, Any]],
        attribute_definitions: list[dict[str, Any]],
    ) -> "KeySchema":
        """Builds a KeySchema from the KeySchema/AttributeDefinitions of describe_table."""
        types = {d["AttributeName"]: d["AttributeType"] for d in attribute_definitions}
        attributes = []
        for entry in key_schema:
            name = entry["AttributeName"]
            if name not in types:
                raise InvalidKeySchemaError(f"Key attribute '{name}' has no attribute definition")
            attributes.append(
                KeyAttribute(
                    name=name,
                    role=KeyRole(entry["KeyType"]),
                    attribute_type=AttributeType(types[name]),
                )
            )
        return cls(tuple(attributes))

    @property
    def hash_key(self) -> KeyAttribute:
        return self.attributes[0]

    @property
    def range_key(self) -> KeyAttribute | None:
        return self.attributes[1] if len(self.attributes) > 1 else None

    @property
    def attribute_names(self) -> list[str]:
        return [a.name for a in self.attributes]

    def attribute_type(self, name: str) -> AttributeType | None:
        for attribute in self.attributes:
            if attribute.name == name:
                return attribute.attribute_type
        return None

    def attribute_definitions(self) -> dict[str, AttributeType]:
        """Returns the key attributes as a name -> type mapping."""
        return {a.name: a.attribute_type for a in self.attributes}


@dataclass(frozen=True)
class TableDescription:
    """
    The parts of a describe_table response the engine relies on.

    Fetched per request and never cached: table metadata is owned by DynamoDB.
    """

    table_name: str
    key_schema: KeySchema
    attribute_definitions: dict[str, AttributeType] = field(default_factory=dict)
    item_count: int | None = None

    @classmethod
    def from_response(cls, response: Mapping[str, Any]) -> "TableDescription":
        """
        Args:
            response: Raw describe_table response ({"Table": {...}})
        """
        table = response["Table"]
        definitions = table.get("AttributeDefinitions", [])
        return cls(
            table_name=table["TableName"],
            key_schema=KeySchema.from_description(table["KeySchema"], definitions),
            attribute_definitions={
                d["AttributeName"]: AttributeType(d["AttributeType"]) for d in definitions
            },
            item_count=table.get("ItemCount"),
        )


class AdminSettings(BaseSettings):
    """
    Connection and paging settings for the admin engine.

    The engine is meant for DynamoDB Local (or other local emulators):
    endpoints on amazonaws.com are refused.

    Environment variables:
        DYNAMO_ENDPOINT, AWS_REGION, AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY,
        DYNADMIN_CHUNK_SIZE, DYNADMIN_PAGE_SIZE
    """

    endpoint_url: str = Field(
        default=DEFAULT_ENDPOINT,
        validation_alias=AliasChoices("endpoint_url", "DYNAMO_ENDPOINT"),
    )
    region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("region", "AWS_REGION"),
    )
    # DynamoDB Local doesn't care what the key/secret are
    access_key_id: str = Field(
        default="key",
        validation_alias=AliasChoices("access_key_id", "AWS_ACCESS_KEY_ID"),
    )
    secret_access_key: str = Field(
        default="secret",
        validation_alias=AliasChoices("secret_access_key", "AWS_SECRET_ACCESS_KEY"),
    )
    chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        ge=1,
        validation_alias=AliasChoices("chunk_size", "DYNADMIN_CHUNK_SIZE"),
    )
    page_size: int = Field(
        default=DEFAULT_PAGE_SIZE,
        ge=1,
        validation_alias=AliasChoices("page_size", "DYNADMIN_PAGE_SIZE"),
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @field_validator("endpoint_url")
    @classmethod
    def _local_endpoint_only(cls, value: str) -> str:
        if ".amazonaws.com" in value:
            raise ValueError("dynadmin is only intended for local development endpoints")
        return value

    @property
    def use_ssl(self) -> bool:
        return self.endpoint_url.startswith("https://")

    @classmethod
    def from_env(cls) -> "AdminSettings":
        """
        Loads settings from the environment.

        Raises:
            ConfigurationError: If a value is invalid
        """
        try:
            settings = cls()
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid admin settings: {e}", original_error=e) from e

        if "endpoint_url" not in settings.model_fields_set:
            logger.warning(
                "DYNAMO_ENDPOINT is not defined, using default endpoint",
                extra={"endpoint": DEFAULT_ENDPOINT},
            )
        return settings

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for boto3.client("dynamodb", ...)."""
        return {
            "endpoint_url": self.endpoint_url,
            "region_name": self.region,
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
            "use_ssl": self.use_ssl,
        }
