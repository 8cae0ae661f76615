"""
Error categories surfaced to clients.

Every failure ends up in one of four buckets: permission denied, network
failure, validation failure or unknown. The response body carries a
``notification`` the client shows as a transient toast. Failures are
terminal for the request; the user retries by hand.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import AutoReconnect, ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

logger = logging.getLogger(__name__)

PERMISSION_DENIED = "permission-denied"
NETWORK = "network"
VALIDATION = "validation"
UNKNOWN = "unknown"


class MarketError(Exception):
    category = UNKNOWN
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(MarketError):
    category = VALIDATION
    status_code = 400


class PermissionDenied(MarketError):
    category = PERMISSION_DENIED
    status_code = 403


class NetworkFailure(MarketError):
    category = NETWORK
    status_code = 503


class StorageError(MarketError):
    """An object upload or download that failed for a reason other than permissions."""


def error_body(message: str, category: str) -> dict:
    return {
        "detail": message,
        "category": category,
        "notification": {"type": "error", "message": message},
    }


def categorize(exc: Exception) -> MarketError:
    """Map an arbitrary exception onto one of the user-facing categories."""
    if isinstance(exc, MarketError):
        return exc
    if isinstance(exc, (ConnectionFailure, ServerSelectionTimeoutError, AutoReconnect)):
        return NetworkFailure("Network error. Check your connection.")
    if isinstance(exc, PyMongoError):
        return MarketError(str(exc) or "Unknown error occurred")
    return MarketError("Unknown error occurred")


def failure(action: str, exc: Exception) -> MarketError:
    """Wrap ``exc`` with a message such as "Failed to add product: ..."."""
    err = categorize(exc)
    if err.category == PERMISSION_DENIED:
        reason = err.message if "Storage" in err.message else "Permission denied."
    elif err.category == NETWORK:
        reason = "Network error. Check your connection."
    else:
        reason = err.message
    return type(err)(f"Failed to {action}: {reason}")


async def market_error_handler(request: Request, exc: MarketError):
    logger.warning("%s %s failed (%s): %s", request.method, request.url.path, exc.category, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.category))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=ValidationFailed.status_code, content=error_body(message, VALIDATION))


async def database_error_handler(request: Request, exc: PyMongoError):
    err = categorize(exc)
    logger.error("%s %s database error: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=err.status_code, content=error_body(err.message, err.category))


async def unknown_error_handler(request: Request, exc: Exception):
    logger.error("%s %s crashed", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=error_body("Unknown error occurred", UNKNOWN))


def install_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketError, market_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PyMongoError, database_error_handler)
    app.add_exception_handler(Exception, unknown_error_handler)
