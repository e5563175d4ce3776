"""rotinas - routine scheduling and execution tracking engine."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.config import constants
from src.core.db_client import close_connection, init_db
from src.core.errors import EngineError, ErrorKind, to_error_response
from src.core.logging import configure_logfire, instrument_fastapi
from src.interface.routines_router import router as routines_router


logger = logging.getLogger(__name__)


ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: constants.HTTP_UNPROCESSABLE,
    ErrorKind.CONFLICT: constants.HTTP_CONFLICT,
    ErrorKind.INVALID_TRANSITION: constants.HTTP_CONFLICT,
    ErrorKind.NOT_FOUND: constants.HTTP_NOT_FOUND,
    ErrorKind.UNKNOWN_ITEM: constants.HTTP_NOT_FOUND,
    ErrorKind.REPOSITORY: constants.HTTP_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    yield
    # Shutdown
    await close_connection()


app = FastAPI(
    title="rotinas",
    description="Routine scheduling, conflict detection and execution tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(routines_router)


@app.exception_handler(EngineError)
async def engine_error_handler(_request: Request, exc: EngineError) -> JSONResponse:
    """Render engine errors as {"kind", "code", "message"} with a matching status."""
    status_code = ERROR_STATUS.get(exc.kind, 500)
    if status_code >= 500:  # noqa: PLR2004
        logger.error("request_failed", extra={"kind": exc.kind.value, "error": exc.message})
    return JSONResponse(content=to_error_response(exc).model_dump(), status_code=status_code)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=constants.HTTP_OK)
