"""FastAPI application entry point."""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.dependencies import build_services, get_api_key
from app.routes import batches, calculate, payments
from app.routes.health import get_db_info
from app.schemas.common import ErrorResponse
from db.connection import init_db
from hivepay.services._types import DbInfoDict
from hivepay.services.errors import (
    BatchConsistencyError,
    CalculationError,
    DataSourceError,
    InvalidStatusTransition,
    PaymentGatewayError,
    PaymentValidationError,
    RepositoryError,
)
from hivepay.services.hive_client import HiveClient

logger: logging.Logger = logging.getLogger(__name__)

# Domain error -> HTTP status. Handlers resolve along the MRO, so bases cover subclasses.
ERROR_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (PaymentValidationError, 400),
    (BatchConsistencyError, 400),
    (RepositoryError, 404),
    (InvalidStatusTransition, 409),
    (CalculationError, 422),
    (PaymentGatewayError, 502),
    (DataSourceError, 502),
)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_db()

    hive: HiveClient = HiveClient()
    app.state.services = build_services(hive)
    logger.info("Hive node: %s (HAfAH %s)", hive.rpc_url, hive.hafah_url)
    try:
        yield
    finally:
        await hive.close()


def _error_reply(status_code: int, exc: Exception) -> JSONResponse:
    body: ErrorResponse = ErrorResponse.from_exception(exc)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def register_error_handlers(app: FastAPI) -> None:
    for exc_type, status_code in ERROR_STATUS:

        async def _on_domain_error(
            request: Request, exc: Exception, status_code: int = status_code
        ) -> JSONResponse:
            if status_code >= 500:
                logger.error("%s: %s", type(exc).__name__, exc)
            return _error_reply(status_code, exc)

        app.add_exception_handler(exc_type, _on_domain_error)

    @app.exception_handler(Exception)
    async def _on_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled: %s", exc)
        return _error_reply(500, exc)


def create_app() -> FastAPI:
    app: FastAPI = FastAPI(
        title="HivePay Distribution Engine",
        version="0.1.0",
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:4321", "http://127.0.0.1:4321"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health/db", dependencies=[Depends(get_api_key)])
    def health_db() -> DbInfoDict:
        return get_db_info()

    app.include_router(calculate.router)
    app.include_router(batches.router)
    app.include_router(payments.router)

    return app


app: FastAPI = create_app()


def start() -> None:
    """Entry point for hivepay-api."""
    project_root: Path = Path(__file__).resolve().parent.parent
    os.chdir(project_root)

    for candidate in (project_root / ".env", project_root.parent / ".env"):
        if candidate.exists():
            load_dotenv(candidate, override=False)

    reload: bool = os.environ.get("HIVEPAY_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("HIVEPAY_PORT", "8000")),
        reload=reload,
    )
