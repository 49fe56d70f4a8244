import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BookingServiceError(Exception):
    """Base class for every failure the API reports with a stable code."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedError(BookingServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_message = "Missing or invalid credentials"


class ForbiddenError(BookingServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "Caller is not allowed to perform this operation"


class InvalidTargetError(BookingServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "invalid_target"
    default_message = "Speaker not found"


class InvalidSlotError(BookingServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_slot"
    default_message = (
        "Invalid session time. Sessions can only be booked between "
        "9 a.m. and 4 p.m. at hourly intervals."
    )


class InvalidRangeError(BookingServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_range"
    default_message = "Invalid date range"


class SlotTakenError(BookingServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "slot_taken"
    default_message = "Speaker already has a booking for this slot"


class StoreUnavailableError(BookingServiceError):
    """Persistence failed for infrastructure reasons. Safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "store_unavailable"
    default_message = "Booking store is temporarily unavailable"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingServiceError)
    async def booking_service_error_handler(request: Request, exc: BookingServiceError):
        if exc.status_code >= 500:
            logger.error("[%s] %s | Path=%s", exc.code, exc.message, request.url.path)
        else:
            logger.info("[%s] %s | Path=%s", exc.code, exc.message, request.url.path)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "code": exc.code},
        )
