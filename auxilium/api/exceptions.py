# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/api/exceptions.py — HTTP Error Mapping and FastAPI Handlers
# =================================================================================================
# Turns domain errors into consistent JSON responses:
#
#   1. HTTP MAPPING: Each AuxiliumError subclass maps to one status code.
#   2. ERROR CODES: Machine-readable codes come from the domain error itself.
#   3. STACK TRACES: Debug mode includes traces; production hides internals.
#   4. REQUEST CONTEXT: Errors include the request ID for correlation.
#
# Status Mapping:
# ---------------
#   InvalidInput ............... 400
#   NotFound ................... 404
#   DuplicateId ................ 409
#   EngineFailure .............. 500
#   CapacityExceeded ........... 503
#   QueueFull .................. 503
#   SchedulerStopped ........... 503
#   Request body validation .... 422
#
# Response Format:
# ----------------
#   {"success": false, "error": "CODE", "message": "...", "details": ...,
#    "request_id": "...", "timestamp": 1234567890.123}
#
# =================================================================================================

from __future__ import annotations

import logging
import time
import traceback
from typing import Any, Dict, Optional, Type

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from auxilium.errors import (
    AuxiliumError,
    CapacityExceeded,
    DuplicateId,
    EngineFailure,
    EngineInitializationError,
    InvalidInput,
    NotFound,
    QueueFull,
    SchedulerStopped,
)

_LOG = logging.getLogger("auxilium.api.exceptions")


STATUS_BY_ERROR: Dict[Type[AuxiliumError], int] = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    DuplicateId: status.HTTP_409_CONFLICT,
    EngineFailure: status.HTTP_500_INTERNAL_SERVER_ERROR,
    CapacityExceeded: status.HTTP_503_SERVICE_UNAVAILABLE,
    QueueFull: status.HTTP_503_SERVICE_UNAVAILABLE,
    SchedulerStopped: status.HTTP_503_SERVICE_UNAVAILABLE,
    EngineInitializationError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: AuxiliumError) -> int:
    """Resolve the status code through the exception's MRO."""
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# =============================================================================
# API Exceptions (transport-level, not domain errors)
# =============================================================================

class APIException(Exception):
    """
    Base exception for errors that only exist at the HTTP layer.

    Attributes:
    -----------
    status_code : HTTP status code.
    error_code : Machine-readable error code.
    message : Human-readable error message.
    """

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        message: str = "An unexpected error occurred",
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details


class RouteNotFoundError(APIException):
    """Unmatched route (404 Not Found)."""

    def __init__(self, method: str, path: str) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="ROUTE_NOT_FOUND",
            message=f"Route {method} {path} not found",
        )


# =============================================================================
# Exception Handlers for FastAPI
# =============================================================================

def get_request_id(request: Request) -> Optional[str]:
    """Extract request ID from state (set by middleware) or headers."""
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    return request.headers.get("X-Request-ID")


def error_body(
    error: str,
    message: str,
    details: Any,
    request_id: Optional[str],
) -> Dict[str, Any]:
    return {
        "success": False,
        "error": error,
        "message": message,
        "details": details,
        "request_id": request_id,
        "timestamp": time.time(),
    }


async def domain_exception_handler(request: Request, exc: AuxiliumError) -> JSONResponse:
    """Handle AuxiliumError and its subclasses."""
    request_id = get_request_id(request)
    status_code = status_for(exc)

    log = _LOG.error if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR else _LOG.warning
    log(
        "Chat error: %s %s -> %d %s: %s",
        request.method,
        request.url.path,
        status_code,
        exc.code,
        exc.message,
        extra={"request_id": request_id},
    )

    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.code, exc.message, exc.details, request_id),
    )


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    request_id = get_request_id(request)
    _LOG.warning(
        "API error: %s %s -> %d %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.error_code,
        extra={"request_id": request_id},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.error_code, exc.message, exc.details, request_id),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle Pydantic validation errors from FastAPI.

    Transforms Pydantic errors into the standard error format.
    """
    request_id = get_request_id(request)

    details = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error.get("loc", []))
        details.append({
            "field": field,
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    _LOG.warning(
        "Validation error: %s %s -> %d errors",
        request.method,
        request.url.path,
        len(details),
        extra={"request_id": request_id},
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body("VALIDATION_ERROR", "Request validation failed", details, request_id),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unexpected exceptions.

    The traceback is only returned when the app runs in debug mode.
    """
    request_id = get_request_id(request)

    _LOG.exception(
        "Unhandled exception: %s %s",
        request.method,
        request.url.path,
        extra={"request_id": request_id},
    )

    settings = getattr(request.app.state, "settings", None)
    details = []
    if settings is not None and settings.debug:
        details.append({
            "exception": type(exc).__name__,
            "message": str(exc),
            "traceback": traceback.format_exc(),
        })

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_ERROR", "An unexpected error occurred", details, request_id),
    )


# =============================================================================
# Registration Function
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AuxiliumError, domain_exception_handler)
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    _LOG.debug("Exception handlers registered")
