"""
API - Error Translation.

============================================================
MAPPING
============================================================
BackOfficeError          -> its status_code, envelope status
RequestValidationError   -> 400 fail
Repository exceptions    -> 400 / 404 / 409 / 500
Anything else            -> 500 error, detail only in development

============================================================
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.schemas import failure
from core.exceptions import ApprovalNotDeliveredError, BackOfficeError
from storage.repositories.exceptions import (
    DuplicateRecordError,
    ImmutableRecordError,
    InvalidEnumValueError,
    RecordNotFoundError,
    RepositoryException,
    StaleRecordError,
)


logger = logging.getLogger(__name__)

_REPOSITORY_STATUS = (
    (RecordNotFoundError, 404, "Record not found"),
    (DuplicateRecordError, 400, "Record already exists"),
    (InvalidEnumValueError, 400, None),
    (StaleRecordError, 409, "Record was modified concurrently, please retry"),
    (ImmutableRecordError, 409, "Record can no longer be changed"),
)


def _describe_validation(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def install_error_handlers(app: FastAPI, expose_details: bool = False) -> None:
    """Register handlers that render every error in the envelope."""

    @app.exception_handler(ApprovalNotDeliveredError)
    async def approval_not_delivered(request: Request, exc: ApprovalNotDeliveredError):
        logger.error(exc.to_log_format())
        data = {"userId": str(exc.user_id), "isVerified": exc.is_verified, "emailSent": False}
        if expose_details and exc.cause is not None:
            data["error"] = str(exc.cause)
        return JSONResponse(status_code=exc.status_code, content=failure(exc.message, exc.status_code, data))

    @app.exception_handler(BackOfficeError)
    async def back_office_error(request: Request, exc: BackOfficeError):
        if exc.status_code >= 500:
            logger.error(exc.to_log_format())
        else:
            logger.info(exc.to_log_format())
        return JSONResponse(status_code=exc.status_code, content=failure(exc.message, exc.status_code))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=failure(_describe_validation(exc), 400))

    @app.exception_handler(RepositoryException)
    async def repository_error(request: Request, exc: RepositoryException):
        for exc_type, status_code, message in _REPOSITORY_STATUS:
            if isinstance(exc, exc_type):
                if isinstance(exc, InvalidEnumValueError):
                    message = exc.reason
                return JSONResponse(status_code=status_code, content=failure(message, status_code))
        logger.error(f"Repository failure: {exc}")
        message = str(exc) if expose_details else "Internal server error"
        return JSONResponse(status_code=500, content=failure(message, 500))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        message = f"Internal server error: {exc}" if expose_details else "Internal server error"
        return JSONResponse(status_code=500, content=failure(message, 500))
