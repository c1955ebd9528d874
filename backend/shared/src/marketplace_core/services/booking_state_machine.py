"""Booking lifecycle state machine.

The only code allowed to change a booking's status. Every operation follows
read → validate → compare-and-swap write → notify. If the write loses a race
against another operation, the booking is re-read and validated again, up
to MAX_WRITE_ATTEMPTS times.

Status transitions:

    requested ──accept──▶ accepted ──checkout──▶ pending_payment ──approved──▶ paid
        │                                        │     ▲                       │
        ├─decline─▶ declined                     │     └──rejected──▶ requested │
        │                                        │                             ├─▶ completed
        └──────────────cancel──────────▶ cancelled ◀──────────cancel───────────┘
"""

import datetime as dt
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, cast

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from marketplace_core.models.booking import Booking, Listing, PaymentData
from marketplace_core.models.enums import (
    CANCELLABLE_STATUSES,
    TERMINAL_STATUSES,
    BookingStatus,
    CancelledBy,
    CanonicalPaymentStatus,
    PaymentGateway,
    TransitionType,
    WebhookProcessingResult,
)
from marketplace_core.models.errors import BookingError, ErrorCode
from marketplace_core.models.notification import Notification
from marketplace_core.models.payment_event import PaymentEvent
from marketplace_core.services.booking_store import BookingStore
from marketplace_core.services.listing_store import ListingStore
from marketplace_core.services.notification_dispatcher import NotificationDispatcher
from marketplace_core.services.penalty import PenaltyCalculation, compute_penalty
from marketplace_core.utils.logging import log_booking_transition

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.REQUESTED: frozenset(
        {BookingStatus.ACCEPTED, BookingStatus.DECLINED, BookingStatus.CANCELLED}
    ),
    BookingStatus.ACCEPTED: frozenset({BookingStatus.PENDING_PAYMENT}),
    BookingStatus.PENDING_PAYMENT: frozenset(
        {BookingStatus.PAID, BookingStatus.REQUESTED, BookingStatus.CANCELLED}
    ),
    BookingStatus.PAID: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.DECLINED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

# Set once, on the first transition into the status.
TIMESTAMP_FIELDS: dict[BookingStatus, str] = {
    BookingStatus.ACCEPTED: "accepted_at",
    BookingStatus.DECLINED: "declined_at",
    BookingStatus.PAID: "paid_at",
    BookingStatus.CANCELLED: "cancelled_at",
    BookingStatus.COMPLETED: "completed_at",
}

PAYMENT_TARGET_STATUS: dict[CanonicalPaymentStatus, BookingStatus] = {
    CanonicalPaymentStatus.APPROVED: BookingStatus.PAID,
    CanonicalPaymentStatus.PENDING: BookingStatus.PENDING_PAYMENT,
    CanonicalPaymentStatus.REJECTED: BookingStatus.REQUESTED,
}

PAYMENT_TRANSITIONS: dict[CanonicalPaymentStatus, TransitionType] = {
    CanonicalPaymentStatus.APPROVED: TransitionType.PAYMENT_APPROVED,
    CanonicalPaymentStatus.REJECTED: TransitionType.PAYMENT_REJECTED,
}


def is_transition_allowed(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def validate_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise INVALID_TRANSITION unless ``current → target`` is legal."""
    if not is_transition_allowed(current, target):
        raise BookingError(
            ErrorCode.INVALID_TRANSITION,
            details={"current_status": current.value, "target_status": target.value},
            message=f"Booking cannot move from {current.value} to {target.value}",
        )


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


@dataclass
class _Write:
    """A planned compare-and-swap write."""

    new_status: BookingStatus
    fields: dict[str, Any] = field(default_factory=dict)
    stamp: bool = True


@dataclass
class TransitionOutcome:
    """Result of a state machine operation."""

    booking: Booking
    previous_status: BookingStatus
    result: WebhookProcessingResult = WebhookProcessingResult.APPLIED
    notifications: list[Notification] = field(default_factory=list)
    penalty: PenaltyCalculation | None = None
    message: str | None = None

    @property
    def applied(self) -> bool:
        return self.result == WebhookProcessingResult.APPLIED


class BookingStateMachine:
    """Owns every booking status transition.

    Args:
        bookings: Booking store (compare-and-swap writes)
        listings: Listing store (titles, owners and cancellation policies)
        dispatcher: Notification dispatcher invoked after each write
        clock: Source of the current UTC time
    """

    def __init__(
        self,
        bookings: BookingStore,
        listings: ListingStore,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self._bookings = bookings
        self._listings = listings
        self._dispatcher = dispatcher
        self._clock = clock

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking:
        """Fetch a booking or raise BOOKING_NOT_FOUND."""
        booking = self._bookings.get_by_id(booking_id)
        if booking is None:
            raise BookingError(
                ErrorCode.BOOKING_NOT_FOUND, details={"booking_id": booking_id}
            )
        return booking

    def _listing_title(self, booking: Booking, listing: Listing | None = None) -> str:
        """Listing title for notifications, or the post ID if it cannot be read.

        Called after the status write, so a store failure here must not
        fail the operation.
        """
        if listing is None:
            try:
                listing = self._listings.get_by_id(booking.post_id)
            except (BotoCoreError, ClientError) as e:
                logger.warning(
                    "Could not read listing %s for booking %s notifications: %s",
                    booking.post_id,
                    booking.booking_id,
                    e,
                )
        return listing.title if listing else booking.post_id

    @staticmethod
    def _require_actor(actor_id: str | None, expected_id: str, booking_id: str) -> None:
        if actor_id is not None and actor_id != expected_id:
            raise BookingError(
                ErrorCode.UNAUTHORIZED,
                details={"booking_id": booking_id},
            )

    # ------------------------------------------------------------------
    # Compare-and-swap loop
    # ------------------------------------------------------------------

    def _write(
        self,
        booking_id: str,
        operation: str,
        plan: Callable[[Booking], _Write | TransitionOutcome],
        now: dt.datetime,
    ) -> tuple[Booking, Booking | TransitionOutcome]:
        """Run read → plan → conditional write until the write wins.

        ``plan`` validates the freshly read booking and returns the write to
        attempt, or a finished TransitionOutcome when nothing must be written.
        It may raise BookingError to reject the operation.

        Returns:
            The booking as read, and either the updated booking or the
            outcome returned by ``plan``
        """
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            current = self.get_booking(booking_id)
            planned = plan(current)
            if isinstance(planned, TransitionOutcome):
                return current, planned

            updated = self._bookings.update_status(
                booking_id,
                expected_status=current.status,
                expected_version=current.version,
                new_status=planned.new_status,
                fields=planned.fields,
                stamp_field=TIMESTAMP_FIELDS.get(planned.new_status) if planned.stamp else None,
                now=now,
            )
            if updated is not None:
                return current, updated

            logger.info(
                "Retrying %s for booking %s after write conflict (attempt %d/%d)",
                operation,
                booking_id,
                attempt,
                MAX_WRITE_ATTEMPTS,
            )

        log_booking_transition(
            logger,
            operation,
            booking_id=booking_id,
            result="conflict",
            error="booking kept changing during update",
        )
        raise BookingError(
            ErrorCode.CONCURRENT_MODIFICATION,
            details={"booking_id": booking_id, "attempts": MAX_WRITE_ATTEMPTS},
        )

    def _transition(
        self,
        booking_id: str,
        operation: str,
        target: BookingStatus,
        transition: TransitionType,
        *,
        actor: Callable[[Booking], str] | None = None,
        actor_id: str | None = None,
        fields: dict[str, Any] | None = None,
        **notify_context: Any,
    ) -> TransitionOutcome:
        """Move a booking to ``target`` and notify."""
        now = self._clock()

        def plan(booking: Booking) -> _Write:
            if actor is not None:
                self._require_actor(actor_id, actor(booking), booking.booking_id)
            validate_transition(booking.status, target)
            return _Write(new_status=target, fields=dict(fields or {}))

        try:
            before, updated = self._write(booking_id, operation, plan, now)
        except BookingError as e:
            if e.code == ErrorCode.INVALID_TRANSITION:
                log_booking_transition(
                    logger, operation, booking_id=booking_id,
                    to_status=target.value, result="rejected",
                    error=e.message,
                )
            raise

        updated = cast(Booking, updated)
        log_booking_transition(
            logger,
            operation,
            booking_id=booking_id,
            from_status=before.status.value,
            to_status=updated.status.value,
            result="applied",
        )
        notifications = self._dispatcher.dispatch(
            transition, updated, self._listing_title(updated), **notify_context
        )
        return TransitionOutcome(
            booking=updated,
            previous_status=before.status,
            notifications=notifications,
        )

    # ------------------------------------------------------------------
    # Booking lifecycle
    # ------------------------------------------------------------------

    def create_booking(
        self,
        *,
        post_id: str,
        client_id: str,
        start_date: dt.date,
        end_date: dt.date,
        total_amount: Decimal,
        currency: str,
        guest_count: int,
        booking_id: str | None = None,
    ) -> TransitionOutcome:
        """Create a booking in ``requested`` status and notify the owner.

        Raises:
            BookingError: LISTING_NOT_FOUND if the listing does not exist,
                INVALID_INPUT if the dates, amounts or parties are invalid
        """
        listing = self._listings.get_by_id(post_id)
        if listing is None:
            raise BookingError(ErrorCode.LISTING_NOT_FOUND, details={"post_id": post_id})
        if listing.owner_id == client_id:
            raise BookingError(
                ErrorCode.INVALID_INPUT,
                details={"post_id": post_id},
                message="You cannot book your own listing",
            )

        now = self._clock()
        try:
            booking = Booking(
                booking_id=booking_id or f"BKG-{uuid.uuid4().hex[:12].upper()}",
                post_id=post_id,
                client_id=client_id,
                owner_id=listing.owner_id,
                status=BookingStatus.REQUESTED,
                start_date=start_date,
                end_date=end_date,
                total_amount=total_amount,
                currency=currency.upper(),
                guest_count=guest_count,
                created_at=now,
                updated_at=now,
            )
        except ValidationError as e:
            raise BookingError(
                ErrorCode.INVALID_INPUT,
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e

        if not self._bookings.create(booking):
            raise BookingError(
                ErrorCode.INVALID_INPUT,
                details={"booking_id": booking.booking_id},
                message="A booking with this ID already exists",
            )

        log_booking_transition(
            logger,
            "create_booking",
            booking_id=booking.booking_id,
            to_status=booking.status.value,
            result="applied",
        )
        notifications = self._dispatcher.dispatch(
            TransitionType.REQUEST, booking, self._listing_title(booking, listing)
        )
        return TransitionOutcome(
            booking=booking,
            previous_status=BookingStatus.REQUESTED,
            notifications=notifications,
        )

    def accept(self, booking_id: str, actor_id: str | None = None) -> TransitionOutcome:
        """Owner approves a requested booking."""
        return self._transition(
            booking_id,
            "accept",
            BookingStatus.ACCEPTED,
            TransitionType.ACCEPT,
            actor=lambda b: b.owner_id,
            actor_id=actor_id,
        )

    def decline(self, booking_id: str, actor_id: str | None = None) -> TransitionOutcome:
        """Owner declines a requested booking."""
        return self._transition(
            booking_id,
            "decline",
            BookingStatus.DECLINED,
            TransitionType.DECLINE,
            actor=lambda b: b.owner_id,
            actor_id=actor_id,
        )

    def start_payment(
        self,
        booking_id: str,
        *,
        gateway: PaymentGateway,
        checkout_id: str,
        checkout_url: str | None = None,
        actor_id: str | None = None,
    ) -> TransitionOutcome:
        """Record a created checkout and move ``accepted → pending_payment``."""
        return self._transition(
            booking_id,
            "start_payment",
            BookingStatus.PENDING_PAYMENT,
            TransitionType.START_PAYMENT,
            actor=lambda b: b.owner_id,
            actor_id=actor_id,
            fields={"gateway": gateway, "checkout_id": checkout_id},
            checkout_url=checkout_url,
        )

    def complete(self, booking_id: str, actor_id: str | None = None) -> TransitionOutcome:
        """Mark a paid booking as completed once the service date has passed."""
        return self._transition(
            booking_id,
            "complete",
            BookingStatus.COMPLETED,
            TransitionType.COMPLETE,
            actor=lambda b: b.owner_id,
            actor_id=actor_id,
        )

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def request_cancel(
        self,
        booking_id: str,
        cancelled_by: CancelledBy | str,
        actor_id: str | None = None,
    ) -> TransitionOutcome:
        """Cancel a booking on behalf of the client or the owner.

        Clients pay the penalty of the listing's applicable cancellation
        window; owners always cancel free of charge. Cancelling is only
        possible from ``requested``, ``pending_payment`` or ``paid``.

        Args:
            booking_id: Booking to cancel
            cancelled_by: "client" or "owner"
            actor_id: Caller's user ID; must match the cancelling party when given

        Returns:
            TransitionOutcome with the penalty calculation

        Raises:
            BookingError: INVALID_INPUT for an unknown party, BOOKING_NOT_FOUND,
                UNAUTHORIZED, INVALID_TRANSITION or CONCURRENT_MODIFICATION
        """
        try:
            party = CancelledBy(cancelled_by)
        except ValueError as e:
            raise BookingError(
                ErrorCode.INVALID_INPUT,
                details={"cancelled_by": str(cancelled_by)},
                message="cancelledBy must be 'client' or 'owner'",
            ) from e

        now = self._clock()
        listing: Listing | None = None
        penalty: PenaltyCalculation | None = None

        def plan(booking: Booking) -> _Write:
            nonlocal listing, penalty
            expected_actor = booking.client_id if party == CancelledBy.CLIENT else booking.owner_id
            self._require_actor(actor_id, expected_actor, booking.booking_id)

            if booking.status not in CANCELLABLE_STATUSES:
                raise BookingError(
                    ErrorCode.INVALID_TRANSITION,
                    details={"booking_id": booking.booking_id, "current_status": booking.status.value},
                    message=f"A booking in status {booking.status.value} cannot be cancelled",
                )

            if listing is None:
                listing = self._listings.get_by_id(booking.post_id)
                if listing is None:
                    logger.warning(
                        "Listing %s not found while cancelling %s; no policies apply",
                        booking.post_id,
                        booking.booking_id,
                    )
            policies = listing.cancellation_policies if listing else []
            if party == CancelledBy.CLIENT:
                penalty = compute_penalty(policies, booking.total_amount, booking.start_date, now)
            else:
                penalty = compute_penalty([], booking.total_amount, booking.start_date, now)

            return _Write(
                new_status=BookingStatus.CANCELLED,
                fields={
                    "cancelled_by": party,
                    "penalty_amount": penalty["penalty_amount"],
                },
            )

        try:
            before, updated = self._write(booking_id, "request_cancel", plan, now)
        except BookingError as e:
            if e.code == ErrorCode.INVALID_TRANSITION:
                log_booking_transition(
                    logger, "request_cancel", booking_id=booking_id,
                    to_status=BookingStatus.CANCELLED.value, result="rejected",
                    error=e.message,
                )
            raise

        updated = cast(Booking, updated)
        penalty = cast(PenaltyCalculation, penalty)
        log_booking_transition(
            logger,
            "request_cancel",
            booking_id=booking_id,
            from_status=before.status.value,
            to_status=updated.status.value,
            result="applied",
            cancelled_by=party.value,
            penalty_amount=str(penalty["penalty_amount"]),
        )
        notifications = self._dispatcher.dispatch(
            TransitionType.CANCEL,
            updated,
            self._listing_title(updated, listing),
            cancelled_by=party,
            penalty_amount=penalty["penalty_amount"],
        )
        return TransitionOutcome(
            booking=updated,
            previous_status=before.status,
            notifications=notifications,
            penalty=penalty,
        )

    # ------------------------------------------------------------------
    # Payment reconciliation
    # ------------------------------------------------------------------

    def apply_payment_event(self, event: PaymentEvent) -> TransitionOutcome:
        """Fold a normalized gateway event into the booking.

        - approved → paid, pending → pending_payment, rejected → requested
        - terminal bookings are never changed (late or out-of-order delivery)
        - the same payment ID with the same resulting status changes nothing;
          its notifications are dispatched again and the store drops those
          already written
        - a new payment ID that does not change the status only updates the
          payment snapshot
        - any other illegal move is logged and ignored

        Raises:
            BookingError: BOOKING_NOT_FOUND or CONCURRENT_MODIFICATION
        """
        now = self._clock()
        target = PAYMENT_TARGET_STATUS[event.canonical_status]
        payment_data = PaymentData(
            gateway=event.gateway,
            payment_id=event.gateway_payment_id,
            status=event.canonical_status,
            gateway_status=event.gateway_status,
            status_detail=event.status_detail,
            amount=event.amount,
            currency=event.currency,
            payment_method=event.payment_method,
            processed_at=now,
        )
        fields = {"payment_data": payment_data, "gateway": event.gateway}

        def plan(booking: Booking) -> _Write | TransitionOutcome:
            if booking.status in TERMINAL_STATUSES:
                return TransitionOutcome(
                    booking=booking,
                    previous_status=booking.status,
                    result=WebhookProcessingResult.IGNORED,
                    message=f"Booking is {booking.status.value}; payment event not applied",
                )
            if booking.status == target:
                if booking.last_payment_id == event.gateway_payment_id:
                    return TransitionOutcome(
                        booking=booking,
                        previous_status=booking.status,
                        result=WebhookProcessingResult.DUPLICATE,
                        message="Payment event already applied",
                    )
                return _Write(new_status=target, fields=fields, stamp=False)
            if not is_transition_allowed(booking.status, target):
                return TransitionOutcome(
                    booking=booking,
                    previous_status=booking.status,
                    result=WebhookProcessingResult.IGNORED,
                    message=(
                        f"Payment {event.canonical_status.value} cannot move a "
                        f"{booking.status.value} booking"
                    ),
                )
            return _Write(new_status=target, fields=fields)

        before, written = self._write(event.booking_reference, "apply_payment_event", plan, now)

        if isinstance(written, TransitionOutcome):
            log_booking_transition(
                logger,
                "apply_payment_event",
                booking_id=event.booking_reference,
                from_status=before.status.value,
                result=written.result.value,
                payment_id=event.gateway_payment_id,
                canonical_status=event.canonical_status.value,
                reason=written.message,
            )
            if written.result == WebhookProcessingResult.DUPLICATE:
                # A failed first delivery may have left notifications unwritten;
                # deterministic IDs make the store drop the ones that exist.
                written.notifications = self._notify_payment(written.booking, event)
            return written

        if before.status == written.status:
            log_booking_transition(
                logger,
                "apply_payment_event",
                booking_id=event.booking_reference,
                from_status=before.status.value,
                to_status=written.status.value,
                result=WebhookProcessingResult.RECORDED.value,
                payment_id=event.gateway_payment_id,
            )
            return TransitionOutcome(
                booking=written,
                previous_status=before.status,
                result=WebhookProcessingResult.RECORDED,
                message="Payment snapshot updated; status unchanged",
            )

        log_booking_transition(
            logger,
            "apply_payment_event",
            booking_id=event.booking_reference,
            from_status=before.status.value,
            to_status=written.status.value,
            result=WebhookProcessingResult.APPLIED.value,
            payment_id=event.gateway_payment_id,
            gateway=event.gateway.value,
        )

        return TransitionOutcome(
            booking=written,
            previous_status=before.status,
            notifications=self._notify_payment(written, event),
        )

    def _notify_payment(self, booking: Booking, event: PaymentEvent) -> list[Notification]:
        transition = PAYMENT_TRANSITIONS.get(event.canonical_status)
        if transition is None:
            return []
        return self._dispatcher.dispatch(
            transition, booking, self._listing_title(booking), payment_event=event
        )
