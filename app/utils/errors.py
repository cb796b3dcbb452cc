# app/utils/errors.py
"""
Translate framework, database and library errors into the API error envelope:

    {"success": false, "error": {"message": ..., "details": ..., "retry_after": ...}}
"""
import logging
import re
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings

logger = logging.getLogger(__name__)

def error_response(
    status_code: int,
    message: str,
    details: Optional[Any] = None,
    retry_after: Optional[int] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    error: Dict[str, Any] = {"message": message}
    if details is not None:
        error["details"] = details
    if retry_after is not None:
        error["retry_after"] = retry_after
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )

def _field_from_loc(loc) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path", "header")]
    return ".".join(parts) or "request"

def describe_integrity_error(exc: IntegrityError) -> str:
    raw = str(getattr(exc, "orig", exc))
    lowered = raw.lower()

    if "foreign key" in lowered:
        return "Referenced resource not found"

    if "unique" in lowered or "duplicate key" in lowered:
        field, value = "field", "value"
        # PostgreSQL: Key (email)=(jane@example.com) already exists.
        match = re.search(r"Key \(([^)]+)\)=\(([^)]*)\)", raw)
        if match:
            field, value = match.group(1), match.group(2)
        else:
            # SQLite: UNIQUE constraint failed: users.email
            match = re.search(r"UNIQUE constraint failed: \w+\.(\w+)", raw)
            if match:
                field = match.group(1)
        return f"{field.capitalize()} '{value}' already exists"

    return "Database operation failed"

# ================================
# HANDLERS
# ================================

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = f"Not Found - {request.url.path}"

    retry_after = None
    headers = getattr(exc, "headers", None)
    if exc.status_code == status.HTTP_429_TOO_MANY_REQUESTS and headers and "Retry-After" in headers:
        retry_after = int(headers["Retry-After"])
    return error_response(exc.status_code, str(message), retry_after=retry_after, headers=headers)

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = {}
    for err in exc.errors():
        details.setdefault(_field_from_loc(err.get("loc", ())), err.get("msg"))
    return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", details=details)

async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    retry_after = None
    limit = getattr(exc, "limit", None)
    if limit is not None and getattr(limit, "limit", None) is not None:
        retry_after = limit.limit.get_expiry()
    logger.warning("Rate limit exceeded for %s on %s", request.client.host if request.client else "?", request.url.path)
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Too many requests, please try again later.",
        retry_after=retry_after,
        headers={"Retry-After": str(retry_after)} if retry_after else None,
    )

async def integrity_error_handler(request: Request, exc: IntegrityError):
    message = describe_integrity_error(exc)
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR if message == "Database operation failed" else status.HTTP_400_BAD_REQUEST
    logger.info("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return error_response(status_code, message)

async def operational_error_handler(request: Request, exc: OperationalError):
    logger.error("Database connection error on %s %s: %s", request.method, request.url.path, exc)
    return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Database connection error")

async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database operation failed")

async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content: Dict[str, Any] = {"success": False, "error": {"message": "Internal Server Error"}}
    if not settings.is_production:
        content["error"]["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)

def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(OperationalError, operational_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
