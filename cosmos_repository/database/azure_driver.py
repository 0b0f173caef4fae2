from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import ResourceExistsError
from azure.data.tables.aio import TableClient
from cosmos_repository.logging.logger import get_logger
from .base import BaseTableDriver

logger = get_logger("azure_table_driver")


class AzureTableDriver(BaseTableDriver):
    def __init__(self, settings):
        self.endpoint = settings.STORAGE_URI
        self.credential = AzureNamedKeyCredential(settings.ACCOUNT_NAME, settings.ACCOUNT_KEY)

    def create_client(self, table_name: str) -> TableClient:
        return TableClient(
            endpoint=self.endpoint,
            table_name=table_name,
            credential=self.credential,
        )

    async def ensure_table(self, client: TableClient):
        try:
            await client.create_table()
            logger.info(f"Created table {client.table_name}")
        except ResourceExistsError:
            pass
