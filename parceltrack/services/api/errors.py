# parceltrack/services/api/errors.py
"""
Exception handlers: every error leaves as {"error", "error_code", "details"?}.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from parceltrack.common.exceptions import ParcelTrackError, ValidationError
from parceltrack.common.logger import log_debug, log_error
from parceltrack.shared.models import ErrorResponse


async def handle_parceltrack_error(request: Request, exc: ParcelTrackError) -> JSONResponse:
    if exc.status_code >= 500:
        await log_error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        await log_debug(
            f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}",
            extra={"error": exc.message},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and parameters are reported as ValidationError (400)."""
    problems = [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    first = problems[0] if problems else {"field": "", "message": "Invalid request"}
    message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
    error = ValidationError(message, details={"errors": problems})
    return await handle_parceltrack_error(request, error)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    await log_error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "error_code": "internal_error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ParcelTrackError, handle_parceltrack_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)


# OpenAPI documentation of the error envelope shared by all routers
ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
    403: {"model": ErrorResponse, "description": "Not allowed for this caller"},
    404: {"model": ErrorResponse, "description": "Not found"},
    409: {"model": ErrorResponse, "description": "Conflict or invalid transition"},
}
