from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from cosmos_repository.config import settings
from cosmos_repository.database.manager import TableClientCache
from cosmos_repository.middleware.logging_md import LoggingMiddleware
from cosmos_repository.logging.logger import LogConfig
from azure.core.exceptions import AzureError
from cosmos_repository.exceptions.handler import BusinessException, RepositoryException, global_exception_handler
from apps.contacts.api.router import router as contacts_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Table clients hold HTTP sessions
    await TableClientCache.reset_instance()


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Initialize logging configuration
LogConfig.setup_logging()

# Register global exception handlers
app.add_exception_handler(BusinessException, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)
app.add_exception_handler(RepositoryException, global_exception_handler)
app.add_exception_handler(AzureError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.add_middleware(LoggingMiddleware)

app.include_router(
    contacts_router,
    prefix=settings.API_V1_CONTACTS_PREFIX,
    tags=["Contacts"]
)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
