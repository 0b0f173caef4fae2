from enum import Enum
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class DocumentDatabaseService(str, Enum):
    """Which managed table service the account lives on."""
    STORAGE_TABLES = "StorageTables"
    COSMOS_DB = "CosmosDb"


class Settings(BaseSettings):
    # --- Basic configuration ---
    APP_NAME: str = "Cosmos Repository"
    APP_DESCRIPTION: str = "Typed repository layer over Azure Table Storage / Cosmos DB Tables"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # --- Table service account ---
    DATA_SERVICE: DocumentDatabaseService = DocumentDatabaseService.STORAGE_TABLES
    ACCOUNT_NAME: str = ""
    ACCOUNT_KEY: str = ""
    STORAGE_ENDPOINT: Optional[str] = None  # e.g. Azurite: http://127.0.0.1:10002/devstoreaccount1

    @property
    def STORAGE_URI(self) -> str:
        if self.STORAGE_ENDPOINT:
            return self.STORAGE_ENDPOINT.rstrip("/")
        if self.DATA_SERVICE == DocumentDatabaseService.STORAGE_TABLES:
            host = "core.windows.net"
        else:
            host = "cosmosdb.azure.com"
        return f"https://{self.ACCOUNT_NAME}.table.{host}"

    # --- Table client cache (minutes) ---
    PURGE_CACHED_CLIENTS_EVERY_MINUTES: int = 60
    TABLE_CLIENT_CACHE_DURATION: int = 120

    # --- Logging ---
    LOG_DIR: str = "logs"

    # --- API route prefixes ---
    API_V1_CONTACTS_PREFIX: str = "/api/v1/contacts"

    # --- Pydantic ---
    # Load env from project root .env; priority: env vars > .env > defaults
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )


# Singleton settings instance
settings = Settings()
