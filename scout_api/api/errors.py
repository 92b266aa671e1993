"""
Error bodies returned by the API.

Clients branch on the body shape, so each error family has exactly one:

- 422: ``{"errors": {"<dotted.field>": ["message", ...]}}`` for both
  request parsing and domain validation
- 403: ``{"message": "Unauthorized"}`` when a scout touches another
  scout's report
- 404: ``{"detail": "..."}``
- 500: ``{"error": "Internal server error", "detail": "..."}``
"""
from typing import Dict, List, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from scout_api.core.exceptions import AuthorizationError, NotFoundError, ValidationFailed
from scout_api.core.logging import get_logger

logger = get_logger(__name__)

_LOCATION_PREFIXES = ("body", "query", "path", "header")


def field_key(loc: Sequence) -> str:
    """``("body", "reports", 1, "id")`` -> ``"reports.1.id"``."""
    parts = [str(part) for part in loc]
    if parts and parts[0] in _LOCATION_PREFIXES:
        parts = parts[1:]
    return ".".join(parts) or "request"


def collect_errors(exc: RequestValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        errors.setdefault(field_key(error.get("loc", ())), []).append(error.get("msg", "Invalid value"))
    return errors


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"errors": collect_errors(exc)})


async def validation_failed_handler(request: Request, exc: ValidationFailed):
    return JSONResponse(status_code=422, content={"errors": exc.errors})


async def authorization_handler(request: Request, exc: AuthorizationError):
    logger.warning(f"Forbidden {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=403, content={"message": "Unauthorized"})


async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def unhandled_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationFailed, validation_failed_handler)
    app.add_exception_handler(AuthorizationError, authorization_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(Exception, unhandled_handler)
