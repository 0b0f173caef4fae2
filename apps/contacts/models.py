import uuid
from datetime import datetime, timezone
from typing import Annotated, Optional
from pydantic import Field
from cosmos_repository.repository import BusinessEntity, PartitionKey, RowKey, StorageEntity


class Contact(BusinessEntity):
    """Contact as the API and services see it."""
    contact_id: Annotated[str, RowKey()] = Field(default_factory=lambda: uuid.uuid4().hex)
    region: Annotated[str, PartitionKey()]
    name: str
    email: str
    age: Optional[int] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ContactRecord(StorageEntity):
    """Contact row in the contacts{tenant} table."""
    name: str = Field(alias="Name")
    email: str = Field(alias="Email")
    age: Optional[int] = Field(default=None, alias="Age")
    is_active: bool = Field(default=True, alias="IsActive")
    created_at: Optional[datetime] = Field(default=None, alias="CreatedAt")
