"""FastAPI application for EarlBox."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from earlbox import __version__
from earlbox.api import router
from earlbox.config import settings
from earlbox.db import async_session_factory, engine, init_db
from earlbox.exceptions import (
    PayloadTooLarge,
    StorageFault,
    UnsupportedMediaType,
    UploadValidationError,
)
from earlbox.log import configure_logging
from earlbox.services import build_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    configure_logging(settings.log_level)
    await init_db()
    app.state.services = build_services(async_session_factory)
    yield
    await engine.dispose()


app = FastAPI(
    title="EarlBox",
    description="Upload images and videos and share them by an unguessable link",
    version=__version__,
    lifespan=lifespan,
)
app.include_router(router)


@app.exception_handler(UploadValidationError)
async def upload_validation_handler(request: Request, exc: UploadValidationError) -> JSONResponse:
    if isinstance(exc, UnsupportedMediaType):
        status_code = 415
    elif isinstance(exc, PayloadTooLarge):
        status_code = 413
    else:
        status_code = 422
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": exc.code})


@app.exception_handler(StorageFault)
async def storage_fault_handler(request: Request, exc: StorageFault) -> JSONResponse:
    # Details stay in the log; clients only learn which kind of fault it was
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Storage error", "code": exc.code})


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}
