from typing import Any, Dict, List, Optional
from loguru import logger
from cosmos_repository.exceptions.handler import BusinessException
from .models import Contact
from .repository import ContactRepository


class ContactService:
    def __init__(self, repository: ContactRepository):
        """Initialize Contact Service with its repository."""
        self.repository = repository

    async def create_contact(self, tenant: str, data: Dict[str, Any]) -> Contact:
        """Create a contact; emails are unique per tenant."""
        existing = await self.repository.find_by_email(tenant, data["email"])
        if existing:
            raise BusinessException("Email already registered", code=4001, detail={"contact_id": existing.contact_id})

        contact = Contact(**data)
        await self.repository.create_entity(contact, tenant)
        logger.info(f"Contact {contact.contact_id} created in {tenant}/{contact.region}")
        return contact

    async def get_contact(self, tenant: str, region: str, contact_id: str) -> Contact:
        contact = await self.repository.get_contact(tenant, region, contact_id)
        if not contact:
            raise BusinessException("Contact not found", status_code=404, code=404)
        return contact

    async def list_contacts(
        self,
        tenant: str,
        region: Optional[str] = None,
        active_only: bool = False,
        min_age: Optional[int] = None,
    ) -> List[Contact]:
        return await self.repository.list_contacts(tenant, region, active_only, min_age)

    async def search_by_emails(self, tenant: str, emails: List[str]) -> List[Contact]:
        return await self.repository.find_by_emails(tenant, emails)

    async def update_contact(self, tenant: str, region: str, contact_id: str, changes: Dict[str, Any]) -> Contact:
        """
        Apply changes to a stored contact.

        Changing region moves the contact to another partition.
        """
        contact = await self.get_contact(tenant, region, contact_id)

        new_email = changes.get("email")
        if new_email and new_email != contact.email:
            clash = await self.repository.find_by_email(tenant, new_email)
            if clash and clash.contact_id != contact_id:
                raise BusinessException("Email already registered", code=4001)

        for field, value in changes.items():
            setattr(contact, field, value)

        await self.repository.update_entity(contact, tenant)
        if contact.region != region:
            logger.info(f"Contact {contact_id} moved from {region} to {contact.region} in {tenant}")
        return contact

    async def replace_contact(self, tenant: str, region: str, contact_id: str, data: Dict[str, Any]) -> Contact:
        """Write the contact as given, whether or not it exists (last writer wins)."""
        contact = Contact(contact_id=contact_id, region=region, **data)
        await self.repository.upsert_entity(contact, tenant)
        return contact

    async def delete_contact(self, tenant: str, region: str, contact_id: str) -> None:
        contact = await self.get_contact(tenant, region, contact_id)
        await self.repository.delete_entity(contact, tenant)
        logger.info(f"Contact {contact_id} deleted from {tenant}/{region}")
