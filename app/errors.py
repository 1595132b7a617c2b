from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class ReservationError(Exception):
    """Base class for every error raised by the reservation engine."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "RESERVATION_ERROR"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidBookingError(ReservationError):
    """The request breaks a business rule; the caller must change its input."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    code = "INVALID_BOOKING"


class InvalidWindowError(InvalidBookingError):
    code = "INVALID_WINDOW"


class BookingConflictError(ReservationError):
    """Overlapping active booking, or a concurrent writer got there first."""

    status_code = status.HTTP_409_CONFLICT
    code = "BOOKING_CONFLICT"


class InvalidTransitionError(ReservationError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str, allowed: list[str]) -> None:
        super().__init__(
            f"Cannot transition from '{current}' to '{target}'. Allowed: {allowed}"
        )
        self.current = current
        self.target = target


class NotFoundError(ReservationError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ResourceLookupUnavailableError(ReservationError):
    """
    resources-ms timed out, was unreachable or answered 5xx.
    Retryable; never to be read as "resource invalid".
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "RESOURCE_LOOKUP_UNAVAILABLE"


async def _reservation_error_handler(
    request: Request, exc: ReservationError
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "{} {} failed: {} ({})", request.method, request.url.path, exc.code, exc
        )
    else:
        logger.info(
            "{} {} rejected: {} ({})", request.method, request.url.path, exc.code, exc
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationError, _reservation_error_handler)  # type: ignore[arg-type]
