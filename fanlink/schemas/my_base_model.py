import logging
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CustomBaseModel(BaseModel):
    """Custom base model for all response schemas.
    - pre-process the data before init
    - set the default value if the value is invalid
    - build from ORM records
    """

    def __init__(self, **data: Any) -> None:
        for attr, value in data.items():
            field = self.__class__.model_fields.get(attr)
            if field is None:
                continue
            attr_type = field.annotation

            # process simple type
            if attr_type in (int, float, str, bool) and value is not None:
                try:  #  try to convert the value to the type of the attribute
                    data[attr] = attr_type(value)
                except (TypeError, ValueError):
                    logger.warning("Invalid value for key %s, using default", attr)
                    data[attr] = field.get_default(call_default_factory=True)
        super().__init__(**data)

    @classmethod
    def from_record(cls, record: Any):
        """Build from a dict or an ORM object, reading only the declared fields"""
        if isinstance(record, dict):
            return cls(**record)
        if record is None:
            raise ValueError("record is required")
        return cls(**{
            name: getattr(record, name)
            for name in cls.model_fields
            if hasattr(record, name)
        })
