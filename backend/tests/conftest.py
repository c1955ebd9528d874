"""Pytest configuration and fixtures for the marketplace booking backend tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto (bookings, posts, notifications, webhook audit)
- Store, dispatcher and state machine instances on the mocked tables
- Sample listing, booking factory and gateway configuration
- FastAPI TestClient with services bound to the mocked tables and gateways
"""

import os
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Callable, Generator
from unittest.mock import MagicMock

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

# === Environment Setup ===

os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-marketplace")
os.environ.setdefault("ENVIRONMENT", "test")

if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from marketplace_api.dependencies import (  # noqa: E402
    get_checkout_service,
    get_state_machine,
    get_webhook_handler,
    reset_services,
)
from marketplace_api.main import app  # noqa: E402
from marketplace_core.config import GatewayConfig, MercadoPagoCredentials, MobbexCredentials  # noqa: E402
from marketplace_core.models.booking import Booking, CancellationPolicy, Listing  # noqa: E402
from marketplace_core.models.enums import BookingStatus  # noqa: E402
from marketplace_core.services.booking_state_machine import BookingStateMachine  # noqa: E402
from marketplace_core.services.booking_store import BookingStore  # noqa: E402
from marketplace_core.services.checkout_service import CheckoutService  # noqa: E402
from marketplace_core.services.dynamodb import (  # noqa: E402
    DynamoDBService,
    reset_dynamodb_service,
    to_dynamodb_item,
)
from marketplace_core.services.listing_store import ListingStore  # noqa: E402
from marketplace_core.services.notification_dispatcher import NotificationDispatcher  # noqa: E402
from marketplace_core.services.notification_store import NotificationStore  # noqa: E402
from marketplace_core.services.payment_webhook_handler import PaymentWebhookHandler  # noqa: E402

TABLE_PREFIX = os.environ["DYNAMODB_TABLE_PREFIX"]

# 2026-01-01 12:00 UTC: a booking starting 2026-01-06 is 5 days away.
FIXED_NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

CLIENT_ID = "user-client-1"
OWNER_ID = "user-owner-1"
POST_ID = "POST-001"


# === DynamoDB Fixtures ===


@pytest.fixture(autouse=True)
def reset_dynamodb_singleton() -> Generator[None, None, None]:
    """Reset the DynamoDB singleton so each test gets a fresh service."""
    reset_dynamodb_service()
    yield
    reset_dynamodb_service()


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "eu-west-1"


def _table_definitions() -> list[dict[str, Any]]:
    return [
        {
            "TableName": f"{TABLE_PREFIX}-bookings",
            "KeySchema": [{"AttributeName": "booking_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "booking_id", "AttributeType": "S"}],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": f"{TABLE_PREFIX}-posts",
            "KeySchema": [{"AttributeName": "post_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "post_id", "AttributeType": "S"}],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": f"{TABLE_PREFIX}-notifications",
            "KeySchema": [{"AttributeName": "notification_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "notification_id", "AttributeType": "S"},
                {"AttributeName": "booking_id", "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "booking_id-index",
                    "KeySchema": [{"AttributeName": "booking_id", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": f"{TABLE_PREFIX}-payment-webhook-events",
            "KeySchema": [
                {"AttributeName": "event_key", "KeyType": "HASH"},
                {"AttributeName": "processed_at", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": "event_key", "AttributeType": "S"},
                {"AttributeName": "processed_at", "AttributeType": "S"},
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
    ]


@pytest.fixture
def dynamodb_tables(aws_credentials: None) -> Generator[Any, None, None]:
    """Mocked DynamoDB with all tables created; yields the boto3 resource."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="eu-west-1")
        for table in _table_definitions():
            client.create_table(**table)
        yield boto3.resource("dynamodb", region_name="eu-west-1")


@pytest.fixture
def db(dynamodb_tables: Any) -> DynamoDBService:
    return DynamoDBService(environment="test")


@pytest.fixture
def booking_store(db: DynamoDBService) -> BookingStore:
    return BookingStore(db)


@pytest.fixture
def listing_store(db: DynamoDBService) -> ListingStore:
    return ListingStore(db)


@pytest.fixture
def notification_store(db: DynamoDBService) -> NotificationStore:
    return NotificationStore(db)


@pytest.fixture
def dispatcher(notification_store: NotificationStore) -> NotificationDispatcher:
    return NotificationDispatcher(
        notification_store,
        notify_client_on_payment=False,
        sleep=lambda _: None,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def state_machine(
    booking_store: BookingStore,
    listing_store: ListingStore,
    dispatcher: NotificationDispatcher,
) -> BookingStateMachine:
    return BookingStateMachine(
        bookings=booking_store,
        listings=listing_store,
        dispatcher=dispatcher,
        clock=lambda: FIXED_NOW,
    )


# === Sample Data Fixtures ===


@pytest.fixture
def sample_policies() -> list[CancellationPolicy]:
    return [
        CancellationPolicy(days_quantity=7, penalty_percentage=Decimal("50")),
        CancellationPolicy(days_quantity=3, penalty_percentage=Decimal("20")),
    ]


@pytest.fixture
def sample_listing(db: DynamoDBService, sample_policies: list[CancellationPolicy]) -> Listing:
    """A published listing stored in the posts table."""
    listing = Listing(
        post_id=POST_ID,
        owner_id=OWNER_ID,
        title="Cabaña en Bariloche",
        cancellation_policies=sample_policies,
        owner_tax_id="20123456789",
    )
    db.put_item("posts", to_dynamodb_item(listing))
    return listing


@pytest.fixture
def make_booking(
    booking_store: BookingStore, sample_listing: Listing
) -> Callable[..., Booking]:
    """Factory storing a booking in a given status."""

    def _make(
        status: BookingStatus = BookingStatus.REQUESTED,
        booking_id: str = "BKG-1",
        start_date: date = date(2026, 1, 6),
        end_date: date = date(2026, 1, 10),
        total_amount: Decimal = Decimal("1000"),
        **overrides: Any,
    ) -> Booking:
        booking = Booking(
            booking_id=booking_id,
            post_id=sample_listing.post_id,
            client_id=CLIENT_ID,
            owner_id=OWNER_ID,
            status=status,
            start_date=start_date,
            end_date=end_date,
            total_amount=total_amount,
            currency="ARS",
            guest_count=2,
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
            **overrides,
        )
        assert booking_store.create(booking)
        return booking

    return _make


@pytest.fixture
def gateway_config() -> GatewayConfig:
    """Gateway configuration with fixture credentials for both gateways."""
    return GatewayConfig(
        mercadopago=MercadoPagoCredentials(access_token="TEST-mp-token"),
        mobbex=MobbexCredentials(
            api_key="mbx-key",
            access_token="mbx-token",
            test_mode=True,
            marketplace_fee_percent=Decimal("10"),
        ),
        public_base_url="https://marketplace.example.com",
        request_timeout_seconds=2.0,
    )


# === API Fixtures ===


@pytest.fixture
def mercadopago_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def mobbex_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(
    state_machine: BookingStateMachine,
    listing_store: ListingStore,
    db: DynamoDBService,
    gateway_config: GatewayConfig,
    mercadopago_client: MagicMock,
    mobbex_client: MagicMock,
) -> Generator[TestClient, None, None]:
    """TestClient whose services use the moto tables and mocked gateway clients."""
    checkout = CheckoutService(
        state_machine,
        listing_store,
        gateway_config,
        mercadopago_factory=lambda config: mercadopago_client,
        mobbex_factory=lambda config: mobbex_client,
    )
    webhooks = PaymentWebhookHandler(
        state_machine,
        db,
        gateway_config,
        mercadopago_factory=lambda config: mercadopago_client,
        mobbex_factory=lambda config: mobbex_client,
    )
    app.dependency_overrides[get_state_machine] = lambda: state_machine
    app.dependency_overrides[get_checkout_service] = lambda: checkout
    app.dependency_overrides[get_webhook_handler] = lambda: webhooks
    yield TestClient(app)
    app.dependency_overrides.clear()
    reset_services()
