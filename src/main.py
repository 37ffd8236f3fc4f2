import logging
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core.exceptions import BaseApplicationException
from src.core.settings import get_import_settings
from src.database import Base, engine
from src.routers import csv_import

# Registrazione modelli sul metadata
from src.models import entity, media_file  # noqa: F401

settings = get_import_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    Base.metadata.create_all(bind=engine)
    logger.info(f"CSV import service started (schemas: {settings.schema_registry_path})")
    yield


app = FastAPI(
    title="CSV Import API",
    description="Import/export CSV dei content type con relazioni, component e archivi media",
    lifespan=lifespan
)


def error_body(error_code: str, message: str, status_code: int, details=None) -> dict:
    return {
        "error_code": error_code,
        "message": message,
        "details": details if details is not None else {},
        "status_code": status_code
    }


# ============================================================================
# GLOBAL EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(BaseApplicationException)
async def application_exception_handler(request: Request, exc: BaseApplicationException):
    """
    Handler unico per le eccezioni applicative.

    Validazione (4xx) loggata come warning, infrastruttura (5xx) come error.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{exc.error_code}: {exc.message}", extra={
        "error_code": exc.error_code,
        "path": str(request.url),
        "method": request.method
    })

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Handler per errori di validazione di form e parametri"""
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.warning(f"Request validation error on {request.url.path}: {errors}")

    return JSONResponse(
        status_code=422,
        content=error_body("VALIDATION_ERROR", "Request validation failed", 422, errors)
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.info(f"HTTP exception: {exc.status_code} - {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body("HTTP_ERROR", str(exc.detail), exc.status_code)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handler generico per errori non gestiti"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", extra={
        "traceback": traceback.format_exc()
    })

    return JSONResponse(
        status_code=500,
        content=error_body("INTERNAL_SERVER_ERROR", "Internal server error", 500)
    )


app.include_router(csv_import.router)


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
