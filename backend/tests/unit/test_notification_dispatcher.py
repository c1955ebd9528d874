"""Unit tests for notification building and dispatch."""

from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from marketplace_core.models.booking import Booking
from marketplace_core.models.enums import (
    BookingStatus,
    CancelledBy,
    CanonicalPaymentStatus,
    NotificationType,
    PaymentGateway,
    TransitionType,
)
from marketplace_core.models.notification import notification_dedup_id
from marketplace_core.models.payment_event import PaymentEvent
from marketplace_core.services.notification_dispatcher import (
    NotificationDispatcher,
    build_notifications,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
TITLE = "Cabaña en Bariloche"


@pytest.fixture
def booking() -> Booking:
    return Booking(
        booking_id="BKG-1",
        post_id="POST-001",
        client_id="client",
        owner_id="owner",
        status=BookingStatus.PAID,
        start_date=date(2026, 1, 6),
        end_date=date(2026, 1, 10),
        total_amount=Decimal("1000"),
        currency="ARS",
        guest_count=2,
        version=3,
    )


@pytest.fixture
def approved_event() -> PaymentEvent:
    return PaymentEvent(
        booking_reference="BKG-1",
        gateway=PaymentGateway.MERCADOPAGO,
        gateway_status="approved",
        canonical_status=CanonicalPaymentStatus.APPROVED,
        gateway_payment_id="p1",
        amount=Decimal("1000"),
        currency="ARS",
    )


class TestBuildNotifications:
    def test_request_notifies_owner(self, booking: Booking) -> None:
        notifications = build_notifications(TransitionType.REQUEST, booking, TITLE, now=NOW)

        assert [n.user_id for n in notifications] == ["owner"]
        assert notifications[0].type == NotificationType.BOOKING_REQUEST
        assert notifications[0].data["bookingId"] == "BKG-1"
        assert notifications[0].data["postId"] == "POST-001"
        assert notifications[0].is_read is False

    @pytest.mark.parametrize(
        ("transition", "expected_type"),
        [
            (TransitionType.ACCEPT, NotificationType.BOOKING_ACCEPTED),
            (TransitionType.DECLINE, NotificationType.BOOKING_DECLINED),
            (TransitionType.COMPLETE, NotificationType.BOOKING_COMPLETED),
        ],
    )
    def test_owner_decisions_notify_client(
        self, booking: Booking, transition: TransitionType, expected_type: NotificationType
    ) -> None:
        notifications = build_notifications(transition, booking, TITLE, now=NOW)

        assert [(n.user_id, n.type) for n in notifications] == [("client", expected_type)]

    def test_start_payment_carries_checkout_url(self, booking: Booking) -> None:
        notifications = build_notifications(
            TransitionType.START_PAYMENT,
            booking,
            TITLE,
            now=NOW,
            checkout_url="https://pay.example/abc",
        )

        assert notifications[0].type == NotificationType.PAYMENT_PENDING
        assert notifications[0].data["checkoutUrl"] == "https://pay.example/abc"

    def test_payment_approved_owner_only_when_client_flag_off(
        self, booking: Booking, approved_event: PaymentEvent
    ) -> None:
        notifications = build_notifications(
            TransitionType.PAYMENT_APPROVED,
            booking,
            TITLE,
            now=NOW,
            payment_event=approved_event,
            notify_client_on_payment=False,
        )

        assert [n.user_id for n in notifications] == ["owner"]
        assert notifications[0].type == NotificationType.PAYMENT_COMPLETED
        assert notifications[0].data["paymentId"] == "p1"

    def test_payment_approved_also_confirms_to_client(
        self, booking: Booking, approved_event: PaymentEvent
    ) -> None:
        notifications = build_notifications(
            TransitionType.PAYMENT_APPROVED,
            booking,
            TITLE,
            now=NOW,
            payment_event=approved_event,
        )

        assert sorted(n.user_id for n in notifications) == ["client", "owner"]

    def test_payment_rejected_notifies_client(
        self, booking: Booking, approved_event: PaymentEvent
    ) -> None:
        rejected = approved_event.model_copy(
            update={"canonical_status": CanonicalPaymentStatus.REJECTED, "gateway_status": "rejected"}
        )

        notifications = build_notifications(
            TransitionType.PAYMENT_REJECTED, booking, TITLE, now=NOW, payment_event=rejected
        )

        assert [(n.user_id, n.type) for n in notifications] == [
            ("client", NotificationType.PAYMENT_FAILED)
        ]

    def test_client_cancel_notifies_both_parties(self, booking: Booking) -> None:
        notifications = build_notifications(
            TransitionType.CANCEL,
            booking,
            TITLE,
            now=NOW,
            cancelled_by=CancelledBy.CLIENT,
            penalty_amount=Decimal("500.00"),
        )

        by_user = {n.user_id: n for n in notifications}
        assert set(by_user) == {"client", "owner"}
        assert by_user["owner"].title == "Reserva cancelada"
        assert by_user["client"].title == "Cancelación confirmada"
        assert "500.00 ARS" in by_user["client"].message
        assert all(n.type == NotificationType.BOOKING_CANCELLED_BY_CLIENT for n in notifications)

    def test_owner_cancel_has_no_penalty_suffix(self, booking: Booking) -> None:
        notifications = build_notifications(
            TransitionType.CANCEL,
            booking,
            TITLE,
            now=NOW,
            cancelled_by=CancelledBy.OWNER,
            penalty_amount=Decimal("0"),
        )

        by_user = {n.user_id: n for n in notifications}
        assert "Penalización" not in by_user["owner"].message
        assert by_user["client"].type == NotificationType.BOOKING_CANCELLED_BY_OWNER

    def test_cancel_requires_party(self, booking: Booking) -> None:
        with pytest.raises(ValueError):
            build_notifications(TransitionType.CANCEL, booking, TITLE, now=NOW)

    def test_ids_are_deterministic(self, booking: Booking, approved_event: PaymentEvent) -> None:
        first = build_notifications(
            TransitionType.PAYMENT_APPROVED, booking, TITLE, now=NOW, payment_event=approved_event
        )
        second = build_notifications(
            TransitionType.PAYMENT_APPROVED,
            booking,
            TITLE,
            now=datetime(2026, 2, 1, tzinfo=UTC),
            payment_event=approved_event,
        )

        assert [n.notification_id for n in first] == [n.notification_id for n in second]
        assert first[0].notification_id == notification_dedup_id(
            "BKG-1", TransitionType.PAYMENT_APPROVED, "owner", "p1"
        )

    def test_non_payment_ids_depend_on_version(self, booking: Booking) -> None:
        later = booking.model_copy(update={"version": 7})

        first = build_notifications(TransitionType.ACCEPT, booking, TITLE, now=NOW)
        second = build_notifications(TransitionType.ACCEPT, later, TITLE, now=NOW)

        assert first[0].notification_id != second[0].notification_id


class TestNotificationDispatcher:
    def test_skips_already_delivered(self, booking: Booking) -> None:
        store = MagicMock()
        store.create.return_value = False
        dispatcher = NotificationDispatcher(store, clock=lambda: NOW)

        delivered = dispatcher.dispatch(TransitionType.ACCEPT, booking, TITLE)

        assert delivered == []
        store.create.assert_called_once()

    def test_retries_failed_writes(self, booking: Booking) -> None:
        store = MagicMock()
        store.create.side_effect = [RuntimeError("throttled"), True]
        sleeps: list[float] = []
        dispatcher = NotificationDispatcher(store, sleep=sleeps.append, clock=lambda: NOW)

        delivered = dispatcher.dispatch(TransitionType.ACCEPT, booking, TITLE)

        assert len(delivered) == 1
        assert store.create.call_count == 2
        assert sleeps == [0.2]

    def test_gives_up_without_raising(self, booking: Booking) -> None:
        store = MagicMock()
        store.create.side_effect = RuntimeError("down")
        dispatcher = NotificationDispatcher(
            store, max_attempts=3, sleep=lambda _: None, clock=lambda: NOW
        )

        delivered = dispatcher.dispatch(TransitionType.ACCEPT, booking, TITLE)

        assert delivered == []
        assert store.create.call_count == 3

    def test_persists_and_dedups_in_dynamodb(self, notification_store, booking: Booking) -> None:
        dispatcher = NotificationDispatcher(notification_store, clock=lambda: NOW)

        first = dispatcher.dispatch(TransitionType.ACCEPT, booking, TITLE)
        second = dispatcher.dispatch(TransitionType.ACCEPT, booking, TITLE)

        assert len(first) == 1
        assert second == []
        stored = notification_store.list_for_booking("BKG-1")
        assert len(stored) == 1
        assert stored[0].type == NotificationType.BOOKING_ACCEPTED
