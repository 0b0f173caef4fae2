"""Contacts repository: one table per tenant."""

import operator
from functools import reduce
from typing import Iterable, List, Optional
from cosmos_repository.repository import DataRepository
from .models import Contact, ContactRecord


class ContactRepository(DataRepository[Contact, ContactRecord]):
    """Contact repository; partitioned by region, keyed by contact_id."""

    business_model = Contact
    storage_model = ContactRecord
    table_name_template = "contacts{0}"

    def to_business_entity(self, record: ContactRecord) -> Contact:
        return Contact(
            contact_id=record.row_key,
            region=record.partition_key,
            name=record.name,
            email=record.email,
            age=record.age,
            is_active=record.is_active,
            created_at=record.created_at or record.timestamp,
        )

    def to_storage_entity(self, contact: Contact) -> ContactRecord:
        return ContactRecord(
            name=contact.name,
            email=contact.email,
            age=contact.age,
            is_active=contact.is_active,
            created_at=contact.created_at,
        )

    async def get_contact(self, tenant: str, region: str, contact_id: str) -> Optional[Contact]:
        return await self.get_entity(contact_id, region, tenant)

    async def find_by_contact_id(self, tenant: str, contact_id: str) -> Optional[Contact]:
        """Find a contact without knowing its region."""
        return await self.get_one_by_id(contact_id, tenant)

    async def find_by_email(self, tenant: str, email: str) -> Optional[Contact]:
        return await self.get_one(lambda e: e.email == email, tenant)

    async def find_by_emails(self, tenant: str, emails: Iterable[str]) -> List[Contact]:
        return await self.get_contains(lambda e: e.email, emails, tenant)

    async def list_contacts(
        self,
        tenant: str,
        region: Optional[str] = None,
        active_only: bool = False,
        min_age: Optional[int] = None,
    ) -> List[Contact]:
        """
        List contacts matching every given condition; no conditions lists all.

        Contacts without an age never match a min_age filter.
        """
        def predicate(e):
            clauses = []
            if region is not None:
                clauses.append(e.partition_key == region)
            if active_only:
                clauses.append(e.is_active)
            if min_age is not None:
                clauses.append(e.age >= min_age)
            if not clauses:
                return True
            return reduce(operator.and_, clauses)

        return await self.get_many(predicate, tenant)
