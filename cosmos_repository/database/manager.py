import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from cosmos_repository.clock import DateTimeService, SystemDateTimeService
from cosmos_repository.logging.logger import get_logger
from .azure_driver import AzureTableDriver
from .base import BaseTableDriver

logger = get_logger("table_client_cache")


class CachedTableClient:
    def __init__(self, table_client, last_accessed: datetime):
        self.table_client = table_client
        self.last_accessed = last_accessed


class TableClientCache:
    """
    Table clients keyed by table name.

    Clients idle for longer than TABLE_CLIENT_CACHE_DURATION minutes are dropped,
    checked at most once every PURGE_CACHED_CLIENTS_EVERY_MINUTES minutes.
    """
    _instance = None

    def __init__(
        self,
        settings,
        date_time: Optional[DateTimeService] = None,
        driver: Optional[BaseTableDriver] = None,
    ):
        self.settings = settings
        self.date_time = date_time or SystemDateTimeService()
        self.driver = driver or AzureTableDriver(settings)
        self._lock = asyncio.Lock()
        self._clients: Dict[str, CachedTableClient] = {}
        self._last_cache_purge = self.date_time.get_current_time_utc()

    @classmethod
    def get_instance(cls, settings=None):
        if cls._instance is None:
            if settings is None:
                from cosmos_repository.config import settings as app_settings
                settings = app_settings
            cls._instance = cls(settings)
        return cls._instance

    @classmethod
    async def reset_instance(cls):
        """Close and forget the process-wide cache."""
        if cls._instance is not None:
            await cls._instance.close()
            cls._instance = None

    @property
    def cached_table_names(self) -> List[str]:
        return list(self._clients)

    async def get_table_client(self, table_name: str):
        async with self._lock:
            table_client = await self._fetch_table_client(table_name)
            await self._clean_up_table_cache()
        return table_client

    async def close(self):
        async with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for cached in clients:
            await cached.table_client.close()

    async def _fetch_table_client(self, table_name: str):
        last_access = self.date_time.get_current_time_utc()
        cached = self._clients.get(table_name)
        if cached is not None:
            cached.last_accessed = last_access
            return cached.table_client

        table_client = self.driver.create_client(table_name)
        try:
            await self.driver.ensure_table(table_client)
        except Exception:
            await table_client.close()
            raise
        self._clients[table_name] = CachedTableClient(table_client, last_access)
        logger.debug(f"Cached client for table {table_name}")
        return table_client

    async def _clean_up_table_cache(self):
        now = self.date_time.get_current_time_utc()
        purge_time = self._last_cache_purge + timedelta(minutes=self.settings.PURGE_CACHED_CLIENTS_EVERY_MINUTES)
        if purge_time > now:
            return

        min_last_accessed = now - timedelta(minutes=self.settings.TABLE_CLIENT_CACHE_DURATION)
        purgeable = [
            name for name, cached in self._clients.items()
            if cached.last_accessed < min_last_accessed
        ]
        for name in purgeable:
            cached = self._clients.pop(name)
            await cached.table_client.close()
        if purgeable:
            logger.info(f"Evicted {len(purgeable)} idle table client(s): {', '.join(purgeable)}")
        self._last_cache_purge = now
