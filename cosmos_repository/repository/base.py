"""
Repository abstract base class and generic table implementation.
"""

import re
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Type, TypeVar, Union
from azure.core import MatchConditions
from azure.core.exceptions import ResourceNotFoundError
from azure.data.tables import UpdateMode
from cosmos_repository.database.manager import TableClientCache
from cosmos_repository.exceptions.handler import InvalidTableNameException
from cosmos_repository.logging.logger import get_logger
from .entities import BusinessEntity, StorageEntity
from .filters import Predicate, compile_filter, equality_filter, property_name
from .key_mapping import KeyBinding, build_key_binding

B = TypeVar("B", bound=BusinessEntity)
S = TypeVar("S", bound=StorageEntity)

logger = get_logger("data_repository")

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]{2,62}$")


class IRepository(ABC, Generic[B]):
    """Repository interface; defines the key-addressed data access API."""

    @abstractmethod
    async def get_entity(self, id: str, partition_key: str, *table_name_parameters: str) -> Optional[B]:
        """Get entity by row key and partition key."""
        pass

    @abstractmethod
    async def get_all(self, *table_name_parameters: str) -> List[B]:
        """Get every entity in the table."""
        pass

    @abstractmethod
    async def create_entity(self, entity: B, *table_name_parameters: str) -> B:
        """Create entity."""
        pass

    @abstractmethod
    async def update_entity(self, entity: B, *table_name_parameters: str) -> B:
        """Update entity."""
        pass

    @abstractmethod
    async def delete_entity(self, entity: B, *table_name_parameters: str) -> None:
        """Delete entity."""
        pass


class DataRepository(IRepository[B], Generic[B, S]):
    """
    Generic repository over one table (or one family of tables).

    Subclasses declare the model pair and the table name template, and convert
    between the models; key fields are copied by the repository itself:

        class ContactRepository(DataRepository[Contact, ContactRecord]):
            business_model = Contact
            storage_model = ContactRecord
            table_name_template = "contacts{0}"

    Table name parameters fill the template positionally, e.g.
    `await repo.get_all("acme")` reads from table "contactsacme".
    """

    business_model: Type[B]
    storage_model: Type[S]
    table_name_template: str

    def __init__(self, cache: TableClientCache):
        """Validate the model pair; raises RepositoryDataConfigurationException."""
        self.key_binding: KeyBinding = build_key_binding(self.business_model, self.storage_model)
        self.cache = cache

    @abstractmethod
    def to_business_entity(self, storage_entity: S) -> B:
        pass

    @abstractmethod
    def to_storage_entity(self, business_entity: B) -> S:
        pass

    # --- Queries ---

    async def get_many_by_id(self, id: str, *table_name_parameters: str) -> List[B]:
        """All entities whose row key is id, across partitions."""
        return await self.get_many(lambda e: e.row_key == id, *table_name_parameters)

    async def get_many_by_ids(self, ids: Iterable[str], *table_name_parameters: str) -> List[B]:
        result: List[B] = []
        for id in ids:
            result.extend(await self.get_many(lambda e: e.row_key == id, *table_name_parameters))
        return result

    async def get_one_by_id(self, id: str, *table_name_parameters: str) -> Optional[B]:
        return await self.get_one(lambda e: e.row_key == id, *table_name_parameters)

    async def get_by_partition(self, partition_key: str, *table_name_parameters: str) -> List[B]:
        return await self.get_many(lambda e: e.partition_key == partition_key, *table_name_parameters)

    async def get_all(self, *table_name_parameters: str) -> List[B]:
        return await self.get_many(lambda e: True, *table_name_parameters)

    async def get_contains(
        self,
        selector: Callable[[Any], Any],
        include_values: Iterable[Any],
        *table_name_parameters: str,
    ) -> List[B]:
        """
        Returns all entities where the selected property has a value contained in include_values.

        One query is issued per value; results keep the order of include_values.
        """
        name = property_name(selector, self.storage_model)
        result: List[B] = []
        for value in include_values:
            result.extend(await self.get_many(equality_filter(name, value), *table_name_parameters))
        return result

    async def get_entity(self, id: str, partition_key: str, *table_name_parameters: str) -> Optional[B]:
        client = await self._get_table_client(*table_name_parameters)
        try:
            entity = await client.get_entity(partition_key, id)
        except ResourceNotFoundError:
            return None
        return self._convert_to_business_entity(entity)

    async def get_many(
        self,
        query: Union[str, Predicate],
        *table_name_parameters: str,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> List[B]:
        """
        Query by predicate or by raw OData filter.

        Raw filters may reference @name placeholders resolved from parameters.
        """
        return [entity async for entity in self._query(query, table_name_parameters, parameters)]

    async def get_one(
        self,
        query: Union[str, Predicate],
        *table_name_parameters: str,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Optional[B]:
        async with aclosing(self._query(query, table_name_parameters, parameters)) as entities:
            async for entity in entities:
                return entity
        return None

    # --- Commands ---

    async def create_entity(self, entity: B, *table_name_parameters: str) -> B:
        client = await self._get_table_client(*table_name_parameters)
        storage_entity = self._convert_to_storage_entity(entity)
        metadata = await client.create_entity(storage_entity.to_table_entity())
        return self._mark_persisted(entity, storage_entity, metadata)

    async def update_entity(self, entity: B, *table_name_parameters: str) -> B:
        """
        Replace the stored entity, guarded by its etag.

        When the partition key changed since the entity was read, the old record
        is deleted and a new one inserted; the two calls are not atomic. If the
        target partition already holds the row key, the insert raises
        ResourceExistsError after the old record is gone.
        """
        client = await self._get_table_client(*table_name_parameters)
        storage_entity = self._convert_to_storage_entity(entity)
        if self._partition_moved(entity, storage_entity):
            await self._delete_original(client, entity, storage_entity)
            metadata = await client.create_entity(storage_entity.to_table_entity())
        else:
            metadata = await client.update_entity(
                storage_entity.to_table_entity(),
                mode=UpdateMode.REPLACE,
                **self._match_condition(storage_entity),
            )
        return self._mark_persisted(entity, storage_entity, metadata)

    async def upsert_entity(self, entity: B, *table_name_parameters: str) -> B:
        """
        WARNING: does not protect against concurrent overwrites.

        Prefer create_entity and update_entity unless there is a real business
        case for last-writer-wins.
        """
        client = await self._get_table_client(*table_name_parameters)
        storage_entity = self._convert_to_storage_entity(entity)
        if self._partition_moved(entity, storage_entity):
            await self._delete_original(client, entity, storage_entity)
        metadata = await client.upsert_entity(storage_entity.to_table_entity(), mode=UpdateMode.REPLACE)
        return self._mark_persisted(entity, storage_entity, metadata)

    async def delete_entity_by_key(self, id: str, partition_key: str, *table_name_parameters: str) -> None:
        client = await self._get_table_client(*table_name_parameters)
        await client.delete_entity(partition_key, id)

    async def delete_entity(self, entity: B, *table_name_parameters: str) -> None:
        client = await self._get_table_client(*table_name_parameters)
        storage_entity = self._convert_to_storage_entity(entity)
        await client.delete_entity(storage_entity.partition_key, storage_entity.row_key)

    # --- Internals ---

    def get_table_name(self, *table_name_parameters: str) -> str:
        if table_name_parameters:
            table_name = self.table_name_template.format(*table_name_parameters)
        else:
            table_name = self.table_name_template
        if not TABLE_NAME_PATTERN.match(table_name):
            raise InvalidTableNameException(
                f"Table name {table_name!r} must be 3-63 alphanumeric characters and start with a letter"
            )
        return table_name

    async def _get_table_client(self, *table_name_parameters: str):
        return await self.cache.get_table_client(self.get_table_name(*table_name_parameters))

    async def _query(self, query, table_name_parameters, parameters):
        client = await self._get_table_client(*table_name_parameters)
        query_filter = compile_filter(query, self.storage_model)
        if query_filter is None:
            entities = client.list_entities()
        else:
            logger.debug(f"Querying {client.table_name}: {query_filter}")
            entities = client.query_entities(query_filter, parameters=parameters)
        async for entity in entities:
            yield self._convert_to_business_entity(entity)

    def _convert_to_business_entity(self, table_entity) -> B:
        storage_entity = self.storage_model.from_table_entity(table_entity)
        business_entity = self.to_business_entity(storage_entity)
        self.key_binding.assign_business_keys(business_entity, storage_entity)
        return business_entity

    def _convert_to_storage_entity(self, business_entity: B) -> S:
        storage_entity = self.to_storage_entity(business_entity)
        self.key_binding.assign_storage_keys(business_entity, storage_entity)
        return storage_entity

    @staticmethod
    def _partition_moved(entity: B, storage_entity: S) -> bool:
        original = entity.original_partition_key
        return original is not None and original != storage_entity.partition_key

    async def _delete_original(self, client, entity: B, storage_entity: S) -> None:
        logger.info(
            f"Moving {storage_entity.row_key} in {client.table_name} from partition "
            f"{entity.original_partition_key} to {storage_entity.partition_key}"
        )
        await client.delete_entity(entity.original_partition_key, storage_entity.row_key)

    @staticmethod
    def _match_condition(storage_entity: S) -> Dict[str, Any]:
        if storage_entity.etag:
            return {"etag": storage_entity.etag, "match_condition": MatchConditions.IfNotModified}
        return {"match_condition": MatchConditions.Unconditionally}

    @staticmethod
    def _mark_persisted(entity: B, storage_entity: S, metadata: Optional[Dict[str, Any]]) -> B:
        entity._original_partition_key = storage_entity.partition_key
        if metadata and metadata.get("etag"):
            entity.etag = metadata["etag"]
        return entity
