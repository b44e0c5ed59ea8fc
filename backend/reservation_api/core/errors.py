"""
Error taxonomy for the reservation lifecycle.

Every error a caller can observe is a ReservationAPIError subclass with a
fixed HTTP status and a stable machine-readable code. Services raise these;
a single exception handler renders them as {"detail": ..., "code": ...}.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from reservation_api.core.logging import get_logger

logger = get_logger(__name__)


class ReservationAPIError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_detail: str = "Internal error"
    headers: dict[str, str] | None = None

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthorized(ReservationAPIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_detail = "Not authenticated"
    headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(ReservationAPIError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "You do not have permission to perform this action"


class NotFound(ReservationAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Resource not found"


class NotPublished(ReservationAPIError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "not_published"
    default_detail = "This event is not open for reservations"


class PricingMismatch(ReservationAPIError):
    """Free reservation requested for a paid event, or checkout for a free one."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "pricing_mismatch"
    default_detail = "Reservation path does not match the event price"


class CapacityExceeded(ReservationAPIError):
    status_code = status.HTTP_409_CONFLICT
    code = "capacity_exceeded"
    default_detail = "This event is fully booked"


class DuplicateReservation(ReservationAPIError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_reservation"
    default_detail = "You already have a reservation for this event"


class AlreadyCancelled(ReservationAPIError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "already_cancelled"
    default_detail = "Reservation is already cancelled"


class AlreadyCheckedIn(ReservationAPIError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "already_checked_in"
    default_detail = "Reservation is already checked in"


class EventHasReservations(ReservationAPIError):
    status_code = status.HTTP_409_CONFLICT
    code = "event_has_reservations"
    default_detail = "Event has reservations and cannot be deleted; unpublish it instead"


class RefundFailed(ReservationAPIError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "refund_failed"
    default_detail = "Refund could not be processed; the reservation was not cancelled"


class PaymentVerificationFailed(ReservationAPIError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "payment_verification_failed"
    default_detail = "Invalid payment signature"


class UpstreamUnavailable(ReservationAPIError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "upstream_unavailable"
    default_detail = "A required upstream service is unavailable, please retry"


async def reservation_error_handler(request: Request, exc: ReservationAPIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_error", code=exc.code, detail=exc.detail)
    else:
        logger.info("request_rejected", code=exc.code, detail=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=exc.headers,
    )
