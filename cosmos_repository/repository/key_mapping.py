"""
Binding of a business entity's key fields to the storage entity's
PartitionKey/RowKey, validated once per model pair.
"""

from functools import lru_cache
from typing import List, Type
from pydantic import BaseModel
from cosmos_repository.exceptions.handler import RepositoryDataConfigurationException
from .entities import (
    SUPPORTED_PROPERTY_TYPES,
    BusinessEntity,
    PartitionKey,
    RowKey,
    StorageEntity,
    unwrap_optional,
)

ROW_KEY_FIELD = "row_key"
PARTITION_KEY_FIELD = "partition_key"
PROPERTY_TYPES_DOC = (
    "https://learn.microsoft.com/en-us/rest/api/storageservices/"
    "Understanding-the-Table-Service-Data-Model#property-types"
)


def _full_name(model: type) -> str:
    return f"{model.__module__}.{model.__qualname__}"


def _marked_fields(model: Type[BaseModel], marker: type, conventional_name: str) -> List[str]:
    """Fields carrying the marker, not counting the one already named after the key."""
    return [
        name for name, field in model.model_fields.items()
        if name != conventional_name and any(isinstance(m, marker) for m in field.metadata)
    ]


def _is_str_field(model: Type[BaseModel], name: str) -> bool:
    return unwrap_optional(model.model_fields[name].annotation) is str


def _assert_key_valid(
    model: Type[BaseModel],
    label: str,
    conventional_name: str,
    marked: List[str],
    other_label: str,
    other_marked: List[str],
) -> None:
    t = _full_name(model)
    has_conventional = conventional_name in model.model_fields

    if len(marked) > 1:
        raise RepositoryDataConfigurationException(
            f"Business entity {t} has multiple properties decorated with the {label} attribute"
        )
    if marked and has_conventional:
        raise RepositoryDataConfigurationException(
            f"Ambiguous configuration: Business entity {t} has a property named {conventional_name} "
            f"and a property marked with the {label} attribute"
        )
    if conventional_name in other_marked:
        raise RepositoryDataConfigurationException(
            f"Business entity {t} has a property named {conventional_name}, decorated with a {other_label} attribute"
        )
    if has_conventional and not _is_str_field(model, conventional_name):
        raise RepositoryDataConfigurationException(
            f"Property {t}.{conventional_name} must be of type str"
        )
    if marked and not _is_str_field(model, marked[0]):
        raise RepositoryDataConfigurationException(
            f"Property {t}.{marked[0]} is marked as the {label}, thus must be of type str"
        )
    if not marked and not has_conventional:
        raise RepositoryDataConfigurationException(
            f"Business entity {t} has no {label}: declare a {conventional_name} field "
            f"or mark one with {label}()"
        )


def assert_business_entity_valid(model: Type[BusinessEntity]) -> None:
    if not (isinstance(model, type) and issubclass(model, BusinessEntity)):
        raise RepositoryDataConfigurationException(f"{model!r} is not a BusinessEntity subclass")

    row_keys = _marked_fields(model, RowKey, ROW_KEY_FIELD)
    partition_keys = _marked_fields(model, PartitionKey, PARTITION_KEY_FIELD)
    _assert_key_valid(model, "RowKey", ROW_KEY_FIELD, row_keys, "PartitionKey", partition_keys)
    _assert_key_valid(model, "PartitionKey", PARTITION_KEY_FIELD, partition_keys, "RowKey", row_keys)


def assert_storage_entity_valid(model: Type[StorageEntity]) -> None:
    if not (isinstance(model, type) and issubclass(model, StorageEntity)):
        raise RepositoryDataConfigurationException(f"{model!r} is not a StorageEntity subclass")

    for name, field in model.model_fields.items():
        if unwrap_optional(field.annotation) not in SUPPORTED_PROPERTY_TYPES:
            raise RepositoryDataConfigurationException(
                f"Storage entity property {_full_name(model)}.{name} is invalid: "
                f"Type not supported by Azure Table Storage / Cosmos DB. "
                f"Valid types can be found here: {PROPERTY_TYPES_DOC}"
            )


def _key_field(model: Type[BaseModel], marker: type, conventional_name: str) -> str:
    marked = _marked_fields(model, marker, conventional_name)
    return marked[0] if marked else conventional_name


class KeyBinding:
    """Copies key and concurrency fields between a business and a storage entity."""

    def __init__(self, business_model, storage_model, partition_field: str, row_field: str):
        self.business_model = business_model
        self.storage_model = storage_model
        self.partition_field = partition_field
        self.row_field = row_field

    def assign_business_keys(self, business: BusinessEntity, storage: StorageEntity) -> None:
        setattr(business, self.row_field, storage.row_key)
        setattr(business, self.partition_field, storage.partition_key)
        business._original_partition_key = storage.partition_key
        business.etag = storage.etag
        business.timestamp = storage.timestamp

    def assign_storage_keys(self, business: BusinessEntity, storage: StorageEntity) -> None:
        storage.row_key = getattr(business, self.row_field)
        storage.partition_key = getattr(business, self.partition_field)
        if storage.etag is None:
            storage.etag = business.etag

    def __repr__(self) -> str:
        return (
            f"KeyBinding({self.business_model.__name__}.{self.partition_field}/"
            f"{self.business_model.__name__}.{self.row_field} -> "
            f"{self.storage_model.__name__})"
        )


@lru_cache(maxsize=None)
def build_key_binding(business_model: Type[BusinessEntity], storage_model: Type[StorageEntity]) -> KeyBinding:
    """Validate the model pair and return its binding; raises RepositoryDataConfigurationException."""
    assert_business_entity_valid(business_model)
    assert_storage_entity_valid(storage_model)
    return KeyBinding(
        business_model,
        storage_model,
        partition_field=_key_field(business_model, PartitionKey, PARTITION_KEY_FIELD),
        row_field=_key_field(business_model, RowKey, ROW_KEY_FIELD),
    )
