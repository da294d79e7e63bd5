from datetime import datetime, date
from enum import Enum
from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class CamelCaseBaseModel(BaseModel):
    """
    Base model with camelCase field aliases.

    - Input: camelCase keys from webhook callers are mapped to snake_case fields.
    - Output: call `model_dump(by_alias=True)` to serialize back to camelCase.
    - Enums and dates are serialized to their string form.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*")
    def serialize_any(self, value):
        if isinstance(value, Enum):
            return value.value

        # datetime must come before date
        if isinstance(value, datetime):
            return value.isoformat()

        if isinstance(value, date):
            return value.isoformat()

        return value
