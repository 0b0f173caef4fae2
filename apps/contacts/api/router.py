from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field
from cosmos_repository.database.manager import TableClientCache
from cosmos_repository.response import ResponseModel
from ..repository import ContactRepository
from ..service import ContactService

router = APIRouter()


class ContactCreateSchema(BaseModel):
    region: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1)
    email: EmailStr
    age: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True


class ContactReplaceSchema(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    age: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True


class ContactUpdateSchema(BaseModel):
    region: Optional[str] = Field(default=None, min_length=1, max_length=64)
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    age: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class EmailSearchSchema(BaseModel):
    emails: List[EmailStr] = Field(min_length=1)


def get_table_cache() -> TableClientCache:
    return TableClientCache.get_instance()


def get_contact_repository(cache: TableClientCache = Depends(get_table_cache)) -> ContactRepository:
    """Dependency: create ContactRepository over the shared client cache."""
    return ContactRepository(cache)


def get_contact_service(repository: ContactRepository = Depends(get_contact_repository)) -> ContactService:
    """Dependency: create ContactService."""
    return ContactService(repository)


def _dump(contact):
    return contact.model_dump(mode="json")


@router.post("/{tenant}")
async def create_contact(
    tenant: str,
    data: ContactCreateSchema,
    service: ContactService = Depends(get_contact_service)
):
    """Create a contact in the tenant's table."""
    contact = await service.create_contact(tenant, data.model_dump())
    return ResponseModel.success(data=_dump(contact))


@router.get("/{tenant}")
async def list_contacts(
    tenant: str,
    region: Optional[str] = None,
    active_only: bool = False,
    min_age: Optional[int] = Query(default=None, ge=0),
    service: ContactService = Depends(get_contact_service)
):
    """List contacts, optionally by region and activity."""
    contacts = await service.list_contacts(tenant, region, active_only, min_age)
    return ResponseModel.success(data=[_dump(c) for c in contacts])


@router.post("/{tenant}/search")
async def search_contacts(
    tenant: str,
    data: EmailSearchSchema,
    service: ContactService = Depends(get_contact_service)
):
    """Find contacts by any of the given emails."""
    contacts = await service.search_by_emails(tenant, [str(e) for e in data.emails])
    return ResponseModel.success(data=[_dump(c) for c in contacts])


@router.get("/{tenant}/{region}/{contact_id}")
async def get_contact(
    tenant: str,
    region: str,
    contact_id: str,
    service: ContactService = Depends(get_contact_service)
):
    contact = await service.get_contact(tenant, region, contact_id)
    return ResponseModel.success(data=_dump(contact))


@router.patch("/{tenant}/{region}/{contact_id}")
async def update_contact(
    tenant: str,
    region: str,
    contact_id: str,
    data: ContactUpdateSchema,
    service: ContactService = Depends(get_contact_service)
):
    """Update a contact; a new region moves it to that partition."""
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    contact = await service.update_contact(tenant, region, contact_id, changes)
    return ResponseModel.success(data=_dump(contact))


@router.put("/{tenant}/{region}/{contact_id}")
async def replace_contact(
    tenant: str,
    region: str,
    contact_id: str,
    data: ContactReplaceSchema,
    service: ContactService = Depends(get_contact_service)
):
    """Create or overwrite a contact without concurrency checks."""
    contact = await service.replace_contact(tenant, region, contact_id, data.model_dump())
    return ResponseModel.success(data=_dump(contact))


@router.delete("/{tenant}/{region}/{contact_id}")
async def delete_contact(
    tenant: str,
    region: str,
    contact_id: str,
    service: ContactService = Depends(get_contact_service)
):
    await service.delete_contact(tenant, region, contact_id)
    return ResponseModel.success(data={"contact_id": contact_id}, message="deleted")
