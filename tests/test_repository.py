"""DataRepository operations against the in-memory table service."""
import pytest
from typing import Annotated

from azure.core.exceptions import ResourceExistsError, ResourceModifiedError

from cosmos_repository.exceptions.handler import (
    InvalidTableNameException,
    RepositoryDataConfigurationException,
)
from cosmos_repository.repository import BusinessEntity, DataRepository, RowKey
from apps.contacts.models import Contact, ContactRecord
from apps.contacts.repository import ContactRepository
from fake_tables import TEST_TENANT


def _contact(contact_id: str, region: str = "emea", **kwargs) -> Contact:
    data = {"name": f"Person {contact_id}", "email": f"{contact_id}@example.com"}
    data.update(kwargs)
    return Contact(contact_id=contact_id, region=region, **data)


async def _seed(repository, *contacts):
    for contact in contacts:
        await repository.create_entity(contact, TEST_TENANT)


def _table(table_driver):
    return table_driver.tables[f"contacts{TEST_TENANT}"]


class TestConstruction:

    def test_invalid_business_entity_fails_at_construction(self, table_cache):
        class Keyless(BusinessEntity):
            code: Annotated[str, RowKey()] = ""

        class KeylessRepository(DataRepository[Keyless, ContactRecord]):
            business_model = Keyless
            storage_model = ContactRecord
            table_name_template = "keyless"

            def to_business_entity(self, storage_entity):
                return Keyless()

            def to_storage_entity(self, business_entity):
                return ContactRecord(name="", email="")

        with pytest.raises(RepositoryDataConfigurationException, match="has no PartitionKey"):
            KeylessRepository(table_cache)

    def test_table_name_from_template(self, contact_repository):
        assert contact_repository.get_table_name("acme") == "contactsacme"

    def test_table_name_without_parameters_is_the_template(self, table_cache):
        class StaticRepository(ContactRepository):
            table_name_template = "contacts"

        assert StaticRepository(table_cache).get_table_name() == "contacts"

    @pytest.mark.parametrize("tenant", ["acme-corp", "x" * 60, "a b"])
    def test_invalid_table_name(self, contact_repository, tenant):
        with pytest.raises(InvalidTableNameException):
            contact_repository.get_table_name(tenant)


class TestQueries:

    @pytest.mark.asyncio
    async def test_get_entity(self, contact_repository, sample_contact):
        contact = await contact_repository.get_entity("c1", "emea", TEST_TENANT)

        assert contact.contact_id == "c1"
        assert contact.region == "emea"
        assert contact.name == "Ada Lovelace"
        assert contact.original_partition_key == "emea"
        assert contact.etag is not None

    @pytest.mark.asyncio
    async def test_get_entity_missing(self, contact_repository, sample_contact):
        assert await contact_repository.get_entity("c1", "apac", TEST_TENANT) is None

    @pytest.mark.asyncio
    async def test_get_many_by_id_spans_partitions(self, contact_repository, table_cache):
        await _seed(contact_repository, _contact("c1", "emea"), _contact("c1", "apac"), _contact("c2"))

        contacts = await contact_repository.get_many_by_id("c1", TEST_TENANT)

        assert sorted(c.region for c in contacts) == ["apac", "emea"]
        client = await table_cache.get_table_client(f"contacts{TEST_TENANT}")
        assert client.queries[-1] == ("RowKey eq 'c1'", None)

    @pytest.mark.asyncio
    async def test_get_many_by_ids_keeps_id_order(self, contact_repository):
        await _seed(contact_repository, _contact("c1"), _contact("c2"), _contact("c3"))

        contacts = await contact_repository.get_many_by_ids(["c3", "missing", "c1"], TEST_TENANT)

        assert [c.contact_id for c in contacts] == ["c3", "c1"]

    @pytest.mark.asyncio
    async def test_get_one_by_id(self, contact_repository, sample_contact):
        assert (await contact_repository.get_one_by_id("c1", TEST_TENANT)).email == "ada@example.com"
        assert await contact_repository.get_one_by_id("nobody", TEST_TENANT) is None

    @pytest.mark.asyncio
    async def test_get_by_partition(self, contact_repository):
        await _seed(contact_repository, _contact("c1", "emea"), _contact("c2", "apac"), _contact("c3", "emea"))

        contacts = await contact_repository.get_by_partition("emea", TEST_TENANT)

        assert sorted(c.contact_id for c in contacts) == ["c1", "c3"]

    @pytest.mark.asyncio
    async def test_get_all(self, contact_repository):
        await _seed(contact_repository, _contact("c1", "emea"), _contact("c2", "apac"))

        contacts = await contact_repository.get_all(TEST_TENANT)

        assert sorted(c.contact_id for c in contacts) == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_tables_are_separate_per_parameter(self, contact_repository):
        await contact_repository.create_entity(_contact("c1"), "acme")
        await contact_repository.create_entity(_contact("c2"), "globex")

        assert [c.contact_id for c in await contact_repository.get_all("acme")] == ["c1"]
        assert [c.contact_id for c in await contact_repository.get_all("globex")] == ["c2"]

    @pytest.mark.asyncio
    async def test_get_contains(self, contact_repository, table_cache):
        await _seed(contact_repository, _contact("c1"), _contact("c2"), _contact("c3"))

        contacts = await contact_repository.get_contains(
            lambda e: e.email, ["c3@example.com", "c1@example.com"], TEST_TENANT
        )

        assert [c.contact_id for c in contacts] == ["c3", "c1"]
        client = await table_cache.get_table_client(f"contacts{TEST_TENANT}")
        assert [q for q, _ in client.queries[-2:]] == ["Email eq 'c3@example.com'", "Email eq 'c1@example.com'"]

    @pytest.mark.asyncio
    async def test_get_many_with_predicate(self, contact_repository):
        await _seed(
            contact_repository,
            _contact("c1", age=17),
            _contact("c2", age=40),
            _contact("c3", age=70, is_active=False),
        )

        contacts = await contact_repository.get_many(lambda e: (e.age >= 18) & e.is_active, TEST_TENANT)

        assert [c.contact_id for c in contacts] == ["c2"]

    @pytest.mark.asyncio
    async def test_get_many_with_raw_filter_and_parameters(self, contact_repository):
        await _seed(contact_repository, _contact("c1", age=17), _contact("c2", age=40))

        contacts = await contact_repository.get_many("Age gt @age", TEST_TENANT, parameters={"age": 20})

        assert [c.contact_id for c in contacts] == ["c2"]

    @pytest.mark.asyncio
    async def test_get_one(self, contact_repository, sample_contact):
        found = await contact_repository.get_one(lambda e: e.name == "Ada Lovelace", TEST_TENANT)
        missing = await contact_repository.get_one("Name eq 'Nobody'", TEST_TENANT)

        assert found.contact_id == "c1"
        assert missing is None

    @pytest.mark.asyncio
    async def test_get_one_closes_the_query(self, table_cache):
        class TrackingRepository(ContactRepository):
            query_closed = False

            async def _query(self, *args):
                try:
                    async for entity in super()._query(*args):
                        yield entity
                finally:
                    self.query_closed = True

        repository = TrackingRepository(table_cache)
        await _seed(repository, _contact("c1"), _contact("c2"))

        found = await repository.get_one(lambda e: e.partition_key == "emea", TEST_TENANT)

        assert found.contact_id in ("c1", "c2")
        assert repository.query_closed

    @pytest.mark.asyncio
    async def test_contact_repository_helpers(self, contact_repository):
        await _seed(
            contact_repository,
            _contact("c1", age=17),
            _contact("c2", "apac", age=40),
            _contact("c3", age=None),
            _contact("c4", age=50, is_active=False),
        )

        assert (await contact_repository.find_by_email(TEST_TENANT, "c2@example.com")).region == "apac"
        assert (await contact_repository.find_by_contact_id(TEST_TENANT, "c2")).region == "apac"

        async def listed(**conditions):
            return sorted(c.contact_id for c in await contact_repository.list_contacts(TEST_TENANT, **conditions))

        assert await listed() == ["c1", "c2", "c3", "c4"]
        assert await listed(active_only=True) == ["c1", "c2", "c3"]
        assert await listed(min_age=18) == ["c2", "c4"]
        assert await listed(active_only=True, min_age=18) == ["c2"]
        assert await listed(region="emea", min_age=18) == ["c4"]

    @pytest.mark.asyncio
    async def test_list_contacts_filters_region_in_the_query(self, contact_repository, table_cache):
        await _seed(contact_repository, _contact("c1", age=40), _contact("c2", "apac", age=40))

        contacts = await contact_repository.list_contacts(TEST_TENANT, region="apac", min_age=18)

        assert [c.contact_id for c in contacts] == ["c2"]
        client = await table_cache.get_table_client(f"contacts{TEST_TENANT}")
        assert client.queries[-1][0] == "(PartitionKey eq 'apac') and (Age ge 18)"


class TestCommands:

    @pytest.mark.asyncio
    async def test_create_writes_keys_and_refreshes_entity(self, contact_repository, table_driver):
        contact = _contact("c1", "emea", age=30)

        returned = await contact_repository.create_entity(contact, TEST_TENANT)

        assert returned is contact
        assert contact.etag is not None
        assert contact.original_partition_key == "emea"
        row = _table(table_driver)[("emea", "c1")]
        assert row["properties"]["Name"] == "Person c1"
        assert row["properties"]["Age"] == 30

    @pytest.mark.asyncio
    async def test_create_existing_fails(self, contact_repository, sample_contact):
        with pytest.raises(ResourceExistsError):
            await contact_repository.create_entity(_contact("c1", "emea"), TEST_TENANT)

    @pytest.mark.asyncio
    async def test_update_in_place(self, contact_repository, sample_contact, table_cache):
        contact = await contact_repository.get_entity("c1", "emea", TEST_TENANT)
        contact.name = "Augusta Ada King"

        await contact_repository.update_entity(contact, TEST_TENANT)

        stored = await contact_repository.get_entity("c1", "emea", TEST_TENANT)
        assert stored.name == "Augusta Ada King"
        client = await table_cache.get_table_client(f"contacts{TEST_TENANT}")
        assert [name for name, _ in client.calls if name != "get_entity"][-1] == "update_entity"

    @pytest.mark.asyncio
    async def test_update_can_repeat_on_same_object(self, contact_repository, sample_contact):
        contact = await contact_repository.get_entity("c1", "emea", TEST_TENANT)
        contact.age = 37
        await contact_repository.update_entity(contact, TEST_TENANT)
        contact.age = 38
        await contact_repository.update_entity(contact, TEST_TENANT)

        assert (await contact_repository.get_entity("c1", "emea", TEST_TENANT)).age == 38

    @pytest.mark.asyncio
    async def test_update_with_stale_etag_fails(self, contact_repository, sample_contact):
        first = await contact_repository.get_entity("c1", "emea", TEST_TENANT)
        second = await contact_repository.get_entity("c1", "emea", TEST_TENANT)
        first.name = "First"
        await contact_repository.update_entity(first, TEST_TENANT)

        second.name = "Second"
        with pytest.raises(ResourceModifiedError):
            await contact_repository.update_entity(second, TEST_TENANT)

    @pytest.mark.asyncio
    async def test_update_partition_move_deletes_and_recreates(self, contact_repository, sample_contact, table_driver, table_cache):
        contact = await contact_repository.get_entity("c1", "emea", TEST_TENANT)
        contact.region = "apac"

        await contact_repository.update_entity(contact, TEST_TENANT)

        assert ("emea", "c1") not in _table(table_driver)
        assert ("apac", "c1") in _table(table_driver)
        assert contact.original_partition_key == "apac"
        client = await table_cache.get_table_client(f"contacts{TEST_TENANT}")
        writes = [(name, args) for name, args in client.calls if name != "get_entity"]
        assert writes[-2] == ("delete_entity", ("emea", "c1"))
        assert writes[-1][0] == "create_entity"

    @pytest.mark.asyncio
    async def test_update_partition_move_onto_existing_row_key(self, contact_repository, sample_contact, table_driver):
        await contact_repository.create_entity(_contact("c1", "apac", name="Other"), TEST_TENANT)
        contact = await contact_repository.get_entity("c1", "emea", TEST_TENANT)
        contact.region = "apac"

        with pytest.raises(ResourceExistsError):
            await contact_repository.update_entity(contact, TEST_TENANT)

        # the original is deleted before the insert is attempted
        assert list(_table(table_driver)) == [("apac", "c1")]
        assert _table(table_driver)[("apac", "c1")]["properties"]["Name"] == "Other"

    @pytest.mark.asyncio
    async def test_update_new_entity_is_unconditional_replace(self, contact_repository, sample_contact):
        contact = _contact("c1", "emea", name="Replaced")

        await contact_repository.update_entity(contact, TEST_TENANT)

        assert (await contact_repository.get_entity("c1", "emea", TEST_TENANT)).name == "Replaced"

    @pytest.mark.asyncio
    async def test_upsert_creates_and_replaces(self, contact_repository):
        await contact_repository.upsert_entity(_contact("c1", name="One"), TEST_TENANT)
        await contact_repository.upsert_entity(_contact("c1", name="Two"), TEST_TENANT)

        contacts = await contact_repository.get_all(TEST_TENANT)
        assert [c.name for c in contacts] == ["Two"]

    @pytest.mark.asyncio
    async def test_upsert_partition_move(self, contact_repository, sample_contact, table_driver):
        contact = await contact_repository.get_entity("c1", "emea", TEST_TENANT)
        contact.region = "amer"

        await contact_repository.upsert_entity(contact, TEST_TENANT)

        assert list(_table(table_driver)) == [("amer", "c1")]

    @pytest.mark.asyncio
    async def test_upsert_ignores_etag(self, contact_repository, sample_contact):
        stale = await contact_repository.get_entity("c1", "emea", TEST_TENANT)
        fresh = await contact_repository.get_entity("c1", "emea", TEST_TENANT)
        fresh.name = "Fresh"
        await contact_repository.update_entity(fresh, TEST_TENANT)

        stale.name = "Stale"
        await contact_repository.upsert_entity(stale, TEST_TENANT)

        assert (await contact_repository.get_entity("c1", "emea", TEST_TENANT)).name == "Stale"

    @pytest.mark.asyncio
    async def test_delete_entity(self, contact_repository, sample_contact, table_driver):
        await contact_repository.delete_entity(sample_contact, TEST_TENANT)

        assert _table(table_driver) == {}

    @pytest.mark.asyncio
    async def test_delete_entity_by_key(self, contact_repository, sample_contact, table_driver):
        await contact_repository.delete_entity_by_key("c1", "emea", TEST_TENANT)

        assert _table(table_driver) == {}
