# medrecords/main.py
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from medrecords.api.v1.router import api_router
from medrecords.core.config import get_settings
from medrecords.core.errors import (
    BackendError,
    BackendUnavailable,
    NotFound,
    RecordsError,
    SchemaMismatch,
    Unauthorized,
    ValidationError,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Patient Records Reconciliation Backend",
)

# Most specific first; the first matching class wins.
_STATUS_BY_ERROR: list[tuple[type[RecordsError], int]] = [
    (ValidationError, 422),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Unauthorized, status.HTTP_403_FORBIDDEN),
    (SchemaMismatch, status.HTTP_503_SERVICE_UNAVAILABLE),
    (BackendUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (BackendError, status.HTTP_502_BAD_GATEWAY),
]


@app.exception_handler(RecordsError)
async def records_error_handler(request: Request, exc: RecordsError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    body: dict = {"detail": exc.message or exc.__class__.__name__}
    if isinstance(exc, ValidationError) and exc.errors:
        body["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(NotImplementedError)
async def not_implemented_handler(request: Request, exc: NotImplementedError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        content={"detail": str(exc) or "Not implemented"},
    )


@app.get("/health", tags=["health"])
async def root_health() -> dict:
    """
    Global health check endpoint.
    """
    return {"status": "ok"}


# Mount versioned API router
app.include_router(api_router, prefix=settings.api_v1_prefix)
