"""Booking lifecycle endpoints.

Caller identity comes from the ``x-user-id`` header set by the identity
provider's gateway. Clients create and cancel bookings; owners accept,
decline, send to checkout, complete and cancel.
"""

from typing import cast

from fastapi import APIRouter, Depends
from starlette.status import HTTP_201_CREATED

from marketplace_api.dependencies import (
    get_checkout_service,
    get_current_user_id,
    get_state_machine,
)
from marketplace_api.models.bookings import (
    BookingCreateRequest,
    BookingResponse,
    CancellationResponse,
    CancelRequest,
    CheckoutRequest,
    CheckoutResponse,
)
from marketplace_core.services.booking_state_machine import BookingStateMachine
from marketplace_core.services.checkout_service import CheckoutService
from marketplace_core.services.penalty import PenaltyCalculation, describe_penalty

router = APIRouter(tags=["bookings"])

ERROR_RESPONSES = {
    400: {"description": "Invalid input or illegal status transition"},
    401: {"description": "x-user-id header required"},
    403: {"description": "Caller is not a party to this booking"},
    404: {"description": "Booking not found"},
    409: {"description": "Booking changed concurrently, retry"},
}


@router.post(
    "/bookings",
    summary="Create booking",
    response_model=BookingResponse,
    status_code=HTTP_201_CREATED,
    responses={
        400: ERROR_RESPONSES[400],
        401: ERROR_RESPONSES[401],
        404: {"description": "Listing not found"},
    },
)
async def create_booking(
    body: BookingCreateRequest,
    user_id: str = Depends(get_current_user_id),
    state_machine: BookingStateMachine = Depends(get_state_machine),
) -> BookingResponse:
    """Submit a booking intent; the listing owner is notified."""
    outcome = state_machine.create_booking(
        post_id=body.post_id,
        client_id=user_id,
        start_date=body.start_date,
        end_date=body.end_date,
        total_amount=body.total_amount,
        currency=body.currency,
        guest_count=body.guest_count,
    )
    return BookingResponse.from_booking(outcome.booking)


@router.post(
    "/bookings/{booking_id}/accept",
    summary="Accept booking",
    response_model=BookingResponse,
    responses=ERROR_RESPONSES,
)
async def accept_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    state_machine: BookingStateMachine = Depends(get_state_machine),
) -> BookingResponse:
    outcome = state_machine.accept(booking_id, actor_id=user_id)
    return BookingResponse.from_booking(outcome.booking)


@router.post(
    "/bookings/{booking_id}/decline",
    summary="Decline booking",
    response_model=BookingResponse,
    responses=ERROR_RESPONSES,
)
async def decline_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    state_machine: BookingStateMachine = Depends(get_state_machine),
) -> BookingResponse:
    outcome = state_machine.decline(booking_id, actor_id=user_id)
    return BookingResponse.from_booking(outcome.booking)


@router.post(
    "/bookings/{booking_id}/checkout",
    summary="Create payment checkout",
    description="""
Create a MercadoPago preference or a Mobbex checkout for an accepted
booking and move it to `pending_payment`.

**Owner only.** The client is notified with the checkout URL.
""",
    response_model=CheckoutResponse,
    responses={
        **ERROR_RESPONSES,
        502: {"description": "Gateway returned an error"},
        503: {"description": "Gateway not configured"},
        504: {"description": "Gateway timed out"},
    },
)
async def create_checkout(
    booking_id: str,
    body: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    checkout: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    result = checkout.create_checkout(
        booking_id, body.gateway, actor_id=user_id, return_url=body.return_url
    )
    return CheckoutResponse(
        booking_id=result.booking.booking_id,
        status=result.booking.status,
        gateway=result.gateway,
        checkout_id=result.checkout_id,
        checkout_url=result.checkout_url,
    )


@router.post(
    "/bookings/{booking_id}/complete",
    summary="Complete booking",
    response_model=BookingResponse,
    responses=ERROR_RESPONSES,
)
async def complete_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    state_machine: BookingStateMachine = Depends(get_state_machine),
) -> BookingResponse:
    outcome = state_machine.complete(booking_id, actor_id=user_id)
    return BookingResponse.from_booking(outcome.booking)


@router.post(
    "/bookings/{booking_id}/cancel",
    summary="Cancel booking",
    description="""
Cancel a booking as its client or its owner.

Allowed from `requested`, `pending_payment` and `paid`. Clients pay the
penalty of the listing's cancellation policy window; owners cancel free.
""",
    response_model=CancellationResponse,
    responses=ERROR_RESPONSES,
)
async def cancel_booking(
    booking_id: str,
    body: CancelRequest,
    user_id: str = Depends(get_current_user_id),
    state_machine: BookingStateMachine = Depends(get_state_machine),
) -> CancellationResponse:
    outcome = state_machine.request_cancel(booking_id, body.cancelled_by, actor_id=user_id)
    penalty = cast(PenaltyCalculation, outcome.penalty)
    return CancellationResponse(
        booking_id=outcome.booking.booking_id,
        status=outcome.booking.status,
        penalty_amount=penalty["penalty_amount"],
        days_before_booking=penalty["days_before_booking"],
        message=describe_penalty(penalty, outcome.booking.currency),
    )
