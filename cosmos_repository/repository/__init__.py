"""
Repository pattern: typed CRUD over Azure Table Storage / Cosmos DB Tables.
"""

from .base import DataRepository, IRepository
from .entities import BusinessEntity, PartitionKey, RowKey, StorageEntity
from .filters import FilterExpression, equality_filter, format_literal
from .key_mapping import KeyBinding, build_key_binding

__all__ = [
    "BusinessEntity",
    "DataRepository",
    "FilterExpression",
    "IRepository",
    "KeyBinding",
    "PartitionKey",
    "RowKey",
    "StorageEntity",
    "build_key_binding",
    "equality_filter",
    "format_literal",
]
