from abc import ABC, abstractmethod


class BaseTableDriver(ABC):
    """Creates table clients; the cache owns their lifetime."""

    @abstractmethod
    def create_client(self, table_name: str):
        pass

    @abstractmethod
    async def ensure_table(self, client):
        """Create the client's table unless it already exists."""
        pass
