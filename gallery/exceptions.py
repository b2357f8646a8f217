"""
    Centralized exception handling for the FastAPI application.

    Every failure the service reports is an APIException tagged with one of
    three kinds. The kind decides the HTTP status; the message is what the
    caller sees. Internal errors always carry a generic message, the cause is
    only logged.
"""
from enum import Enum
from typing import List, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

log = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"

class ErrorKind(str, Enum):
    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFound"
    INTERNAL = "InternalError"

STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
}

class APIException(Exception):
    """Tagged API error: kind, message, optional error code and field list."""
    def __init__(
        self,
        kind: ErrorKind,
        detail: str,
        code: Optional[str] = None,
        fields: Optional[List[str]] = None,
    ):
        self.kind = kind
        self.detail = detail
        self.code = code
        self.fields = fields or []
        super().__init__(self.detail)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    @classmethod
    def validation(cls, detail: str, code: Optional[str] = None, fields: Optional[List[str]] = None):
        return cls(ErrorKind.VALIDATION, detail, code=code, fields=fields)

    @classmethod
    def not_found(cls, detail: str):
        return cls(ErrorKind.NOT_FOUND, detail)

    @classmethod
    def internal(cls, detail: str = INTERNAL_ERROR_MESSAGE):
        return cls(ErrorKind.INTERNAL, detail)

    def to_content(self) -> dict:
        content = {"error": self.detail}
        if self.code:
            content["code"] = self.code
        if self.fields:
            content["fields"] = self.fields
        return content

def image_not_found(image_id: str) -> APIException:
    return APIException.not_found(f"Image with ID '{image_id}' not found")

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    if exc.kind is ErrorKind.INTERNAL:
        log.error("API Exception: %s", exc.detail, exc_info=exc)
    else:
        log.info("API Exception (%s): %s", exc.kind.value, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_content(),
    )

async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Maps FastAPI request validation failures onto a 400 ValidationError."""
    fields = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        if loc:
            fields.append(".".join(loc))
    log.info("Request validation failed: %s", fields)
    api_exc = APIException.validation("Invalid parameters", fields=fields)
    return JSONResponse(
        status_code=api_exc.status_code,
        content=api_exc.to_content(),
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handles framework HTTP exceptions (unknown routes, bad methods)."""
    log.info("HTTP Exception: %s", exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error("Unhandled Exception: %s", str(exc), exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": INTERNAL_ERROR_MESSAGE},
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
