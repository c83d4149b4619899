import uuid
from datetime import datetime, date, time
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class CamelCaseBaseModel(BaseModel):
    """
    Base model with camelCase field aliases and automatic serialization.

    - Input: camelCase keys from the client (or snake_case, populate_by_name) are accepted.
    - Internal: snake_case fields are used throughout the Python codebase.
    - Output: call `model_dump(by_alias=True)` to serialize fields back to camelCase.
    - ORM rows can be validated directly (`from_attributes`).
    - Auto-serialization: UUIDs, Enums, dates/times and Decimals become JSON-friendly values.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @field_serializer("*")
    def serialize_any(self, value):
        """Global serializer for all fields"""

        if isinstance(value, uuid.UUID):
            return str(value)

        # IntEnum members are also ints, so the Enum check must come first
        if isinstance(value, Enum):
            return value.value

        # datetime is a subclass of date
        if isinstance(value, datetime):
            return value.isoformat()

        if isinstance(value, (date, time)):
            return value.isoformat()

        if isinstance(value, Decimal):
            return float(value)

        if isinstance(value, BaseModel):
            return value.model_dump(by_alias=True)

        if isinstance(value, (list, tuple, set)):
            return [self.serialize_any(item) for item in value]

        if isinstance(value, dict):
            return {
                (str(key) if isinstance(key, uuid.UUID) else key): self.serialize_any(val)
                for key, val in value.items()
            }

        return value
