"""Unit tests for the MercadoPago and Mobbex webhook adapters."""

from decimal import Decimal

import pytest

from marketplace_core.adapters.mercadopago import (
    map_mercadopago_status,
    normalize_mercadopago_payment,
)
from marketplace_core.adapters.mobbex import (
    booking_id_from_reference,
    map_mobbex_status,
    normalize_mobbex_webhook,
)
from marketplace_core.models.enums import CanonicalPaymentStatus, PaymentGateway
from marketplace_core.models.errors import BookingError, ErrorCode

APPROVED = CanonicalPaymentStatus.APPROVED
PENDING = CanonicalPaymentStatus.PENDING
REJECTED = CanonicalPaymentStatus.REJECTED


class TestMercadoPagoAdapter:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("approved", APPROVED),
            ("pending", PENDING),
            ("in_process", PENDING),
            ("authorized", PENDING),
            ("rejected", REJECTED),
            ("cancelled", REJECTED),
            ("refunded", PENDING),
            ("something_new", PENDING),
            (None, PENDING),
        ],
    )
    def test_status_mapping(self, status: str | None, expected: CanonicalPaymentStatus) -> None:
        assert map_mercadopago_status(status) == expected

    def test_normalizes_payment(self) -> None:
        raw = {
            "id": 1234567890,
            "status": "approved",
            "status_detail": "accredited",
            "external_reference": "BKG-1",
            "transaction_amount": 1000.5,
            "currency_id": "ARS",
            "payment_type_id": "credit_card",
        }

        event = normalize_mercadopago_payment(raw)

        assert event.booking_reference == "BKG-1"
        assert event.gateway == PaymentGateway.MERCADOPAGO
        assert event.gateway_payment_id == "1234567890"
        assert event.canonical_status == APPROVED
        assert event.gateway_status == "approved"
        assert event.amount == Decimal("1000.5")
        assert event.raw_payload == raw

    def test_tolerates_malformed_optional_fields(self) -> None:
        raw = {
            "id": "55",
            "status": {"unexpected": "shape"},
            "external_reference": "BKG-1",
            "transaction_amount": "not-a-number",
            "currency_id": ["ARS"],
        }

        event = normalize_mercadopago_payment(raw)

        assert event.canonical_status == PENDING
        assert event.amount is None
        assert event.currency is None

    def test_missing_reference_is_malformed(self) -> None:
        with pytest.raises(BookingError) as exc_info:
            normalize_mercadopago_payment({"id": "55", "status": "approved"})

        assert exc_info.value.code == ErrorCode.MALFORMED_PAYLOAD

    def test_non_object_is_malformed(self) -> None:
        with pytest.raises(BookingError) as exc_info:
            normalize_mercadopago_payment(["not", "a", "payment"])

        assert exc_info.value.code == ErrorCode.MALFORMED_PAYLOAD


class TestMobbexAdapter:
    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            (200, APPROVED),
            (3, APPROVED),
            (400, REJECTED),
            (2, REJECTED),
            (1, PENDING),
            (0, PENDING),
            (None, PENDING),
        ],
    )
    def test_status_mapping(self, code: int | None, expected: CanonicalPaymentStatus) -> None:
        assert map_mobbex_status(code) == expected

    def test_strips_booking_prefix(self) -> None:
        assert booking_id_from_reference("booking_BKG-1") == "BKG-1"
        assert booking_id_from_reference("BKG-1") == "BKG-1"
        assert booking_id_from_reference("booking_") is None
        assert booking_id_from_reference(None) is None

    def test_normalizes_nested_payload(self) -> None:
        raw = {
            "type": "checkout",
            "data": {
                "checkout": {"uid": "chk-1", "reference": "booking_BKG-1", "total": 1000},
                "payment": {
                    "id": "trx-9",
                    "status": {"code": "200", "text": "Aprobado"},
                    "total": 1000,
                    "currency": {"code": "ARS"},
                    "source": {"type": "card"},
                },
            },
        }

        event = normalize_mobbex_webhook(raw)

        assert event.booking_reference == "BKG-1"
        assert event.gateway == PaymentGateway.MOBBEX
        assert event.gateway_payment_id == "trx-9"
        assert event.canonical_status == APPROVED
        assert event.gateway_status == "200"
        assert event.status_detail == "Aprobado"
        assert event.currency == "ARS"
        assert event.payment_method == "card"

    def test_normalizes_flat_payload(self) -> None:
        raw = {
            "reference": "booking_BKG-2",
            "status": {"code": 400, "text": "Rechazado"},
            "transactionId": "trx-10",
        }

        event = normalize_mobbex_webhook(raw)

        assert event.booking_reference == "BKG-2"
        assert event.canonical_status == REJECTED
        assert event.gateway_payment_id == "trx-10"

    def test_fallback_payment_id_without_transaction(self) -> None:
        event = normalize_mobbex_webhook(
            {"reference": "booking_BKG-3", "status": {"code": 2}}
        )

        assert event.gateway_payment_id == "mobbex:BKG-3:none:2"

    def test_fallback_payment_id_differs_per_checkout(self) -> None:
        def rejected(checkout_id: str) -> dict:
            return {
                "data": {
                    "checkout": {"uid": checkout_id, "reference": "booking_BKG-3"},
                    "payment": {"status": {"code": 400}},
                }
            }

        first = normalize_mobbex_webhook(rejected("chk-1"))
        second = normalize_mobbex_webhook(rejected("chk-2"))

        assert first.gateway_payment_id == "mobbex:BKG-3:chk-1:400"
        assert second.gateway_payment_id == "mobbex:BKG-3:chk-2:400"

    def test_unknown_code_never_approves(self) -> None:
        event = normalize_mobbex_webhook(
            {"reference": "booking_BKG-3", "status": {"code": "abc"}}
        )

        assert event.canonical_status == PENDING

    def test_missing_reference_is_malformed(self) -> None:
        with pytest.raises(BookingError) as exc_info:
            normalize_mobbex_webhook({"data": {"payment": {"status": {"code": 200}}}})

        assert exc_info.value.code == ErrorCode.MALFORMED_PAYLOAD
