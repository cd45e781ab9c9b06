from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from booking_api.core.rate_limit import ANONYMOUS_CLIENT, get_client_identifier
from booking_api.schemas.appointment import (
    BookingRequest,
    BookingResponse,
    method_not_allowed_body,
)
from booking_api.services.appointment_service import AppointmentService

router = APIRouter(tags=["Appointments"])


def get_appointment_service(request: Request) -> AppointmentService:
    """Return the booking service built by the app factory."""
    return request.app.state.appointment_service


@router.post(
    "/appointments",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_appointment(
    booking: BookingRequest,
    request: Request,
    service: AppointmentService = Depends(get_appointment_service),
) -> BookingResponse:
    """Book a discovery call.

    Rate limited by the form-submission policy before this handler runs.

    Raises:
        DuplicateBookingError: 409 when the same email already booked this date.
    """
    client_ip = get_client_identifier(request)
    appointment = await service.book(
        booking,
        ip_address=None if client_ip == ANONYMOUS_CLIENT else client_ip,
        user_agent=request.headers.get("user-agent"),
    )
    return BookingResponse.from_appointment(appointment)


@router.api_route(
    "/appointments",
    methods=["GET", "PUT", "DELETE"],
    include_in_schema=False,
)
async def appointments_method_not_allowed() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content=method_not_allowed_body(),
        headers={"Allow": "POST"},
    )
