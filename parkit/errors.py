"""Error taxonomy for the parking service.

Domain code raises these; the handlers registered by ``register_error_handlers``
turn them into ``{"success": false, "message": ...}`` responses so nothing
escapes the request boundary as a crash.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

logger = logging.getLogger(__name__)


class ParkingError(Exception):
    status_code = HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server error"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class NotFoundError(ParkingError):
    status_code = HTTP_404_NOT_FOUND
    message = "Not found"


class LotNotFoundError(NotFoundError):
    message = "Parking lot not found"


class SessionNotFoundError(NotFoundError):
    message = "Parking record not found"


class UserNotFoundError(NotFoundError):
    message = "User not found"


class ConflictError(ParkingError):
    status_code = HTTP_409_CONFLICT
    message = "Conflict"


class LotFullError(ConflictError):
    message = "No available parking spaces in this lot"


class AlreadyActiveError(ConflictError):
    message = "This vehicle already has an active parking session"


class AlreadyClosedError(ConflictError):
    message = "This car has already exited"


class HasActiveSessionsError(ConflictError):
    message = "Cannot delete parking lot with active parking records"


class DuplicateError(ConflictError):
    message = "Already exists"


class ValidationError(ParkingError):
    status_code = HTTP_400_BAD_REQUEST
    message = "Invalid input"


class UnauthorizedError(ParkingError):
    status_code = HTTP_401_UNAUTHORIZED
    message = "Not authorized"


class ForbiddenError(ParkingError):
    status_code = HTTP_403_FORBIDDEN
    message = "Access denied"


async def parking_error_handler(request: Request, exc: ParkingError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    logger.warning(f"Validation failed on {request.method} {request.url.path}: {errors}")
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content={"success": False, "message": "Invalid input", "errors": errors},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Server error"},
    )


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(ParkingError, parking_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
