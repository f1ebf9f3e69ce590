from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from budget_book.api.routes import categories, data, statistics, transactions
from budget_book.core import settings
from budget_book.logger import get_logger, setup_logging
from budget_book.services.ledger import (
    LedgerService,
    RecordNotFoundError,
    TransactionValidationError,
)
from budget_book.storage.base import StorageError
from budget_book.storage.factory import create_store

logger = get_logger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(TransactionValidationError)
    async def validation_error(request: Request, exc: TransactionValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RecordNotFoundError)
    async def not_found(request: Request, exc: RecordNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("[STORAGE] %s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=502, content={"detail": str(exc)})


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        store = create_store()
        ledger = LedgerService(store=store)
        await ledger.ensure_default_data()

        app.state.store = store
        app.state.ledger = ledger

        logger.info("Services initialized.")
        yield
        await store.aclose()
        logger.info("Service shutting down.")

    app = FastAPI(title="Budget Book", lifespan=lifespan)
    _register_error_handlers(app)

    app.include_router(statistics.router)
    app.include_router(transactions.router)
    app.include_router(categories.router)
    app.include_router(data.router)

    return app


app = create_app()
