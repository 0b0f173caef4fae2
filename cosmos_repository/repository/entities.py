"""
Business and storage entity base classes.

A business entity is the domain object application code works with; a storage
entity is the record shape written to the table service. Repositories convert
between the two and keep their keys in step.
"""

import types
import uuid
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional, Tuple, Union, get_args, get_origin
from azure.data.tables import EdmType, EntityProperty
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

# Property types the table service can store
SUPPORTED_PROPERTY_TYPES: Tuple[type, ...] = (bytes, bool, datetime, float, uuid.UUID, int, str)


class PartitionKey:
    """Marks a business entity field as the partition key: Annotated[str, PartitionKey()]."""

    def __repr__(self) -> str:
        return "PartitionKey()"


class RowKey:
    """Marks a business entity field as the row key: Annotated[str, RowKey()]."""

    def __repr__(self) -> str:
        return "RowKey()"


def unwrap_optional(annotation: Any) -> Any:
    """Optional[X] / X | None -> X; anything else is returned unchanged."""
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


class BusinessEntity(BaseModel):
    timestamp: Optional[datetime] = None
    etag: Optional[str] = None

    # Partition key the entity was read with; lets updates detect a partition move
    _original_partition_key: Optional[str] = PrivateAttr(default=None)

    @property
    def original_partition_key(self) -> Optional[str]:
        return self._original_partition_key


class StorageEntity(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    partition_key: str = Field(default="", alias="PartitionKey")
    row_key: str = Field(default="", alias="RowKey")
    timestamp: Optional[datetime] = None
    etag: Optional[str] = None

    # Travel as service metadata, never as table properties
    METADATA_FIELDS: ClassVar[Tuple[str, ...]] = ("timestamp", "etag")

    @classmethod
    def wire_name(cls, field_name: str) -> str:
        field = cls.model_fields[field_name]
        return field.alias or field_name

    def to_table_entity(self) -> Dict[str, Any]:
        entity = self.model_dump(by_alias=True, exclude=set(self.METADATA_FIELDS), exclude_none=True)
        for name, value in entity.items():
            if isinstance(value, int) and not isinstance(value, bool) and not INT32_MIN <= value <= INT32_MAX:
                entity[name] = EntityProperty(value, EdmType.INT64)
        return entity

    @classmethod
    def from_table_entity(cls, entity):
        data = {
            name: value.value if isinstance(value, EntityProperty) else value
            for name, value in entity.items()
        }
        metadata = getattr(entity, "metadata", None) or {}
        data["timestamp"] = metadata.get("timestamp")
        data["etag"] = metadata.get("etag")
        return cls.model_validate(data)
