"""FastAPI dependency injection providers for core services.

Services are built lazily and cached with @lru_cache.

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── BookingStore
        ├── ListingStore
        └── NotificationStore
                └── NotificationDispatcher
    BookingStateMachine (stores + dispatcher)
        ├── CheckoutService (+ GatewayConfig)
        └── PaymentWebhookHandler (+ GatewayConfig)

Testing:
    Override providers with ``app.dependency_overrides`` or call
    reset_services() between tests.
"""

from functools import lru_cache

from fastapi import Request

from marketplace_core.config import GatewayConfig, load_gateway_config
from marketplace_core.models.errors import BookingError, ErrorCode
from marketplace_core.services.booking_state_machine import BookingStateMachine
from marketplace_core.services.booking_store import BookingStore
from marketplace_core.services.checkout_service import CheckoutService
from marketplace_core.services.dynamodb import get_dynamodb_service
from marketplace_core.services.listing_store import ListingStore
from marketplace_core.services.notification_dispatcher import NotificationDispatcher
from marketplace_core.services.notification_store import NotificationStore
from marketplace_core.services.payment_webhook_handler import PaymentWebhookHandler

USER_ID_HEADER = "x-user-id"


def get_current_user_id(request: Request) -> str:
    """Caller identity injected by the identity provider's gateway.

    Raises:
        BookingError: AUTH_REQUIRED if the header is missing
    """
    user_id = request.headers.get(USER_ID_HEADER)
    if not user_id:
        raise BookingError(ErrorCode.AUTH_REQUIRED)
    return user_id


@lru_cache
def get_gateway_config() -> GatewayConfig:
    """Gateway credentials, loaded once from SSM."""
    return load_gateway_config()


@lru_cache
def get_listing_store() -> ListingStore:
    return ListingStore(get_dynamodb_service())


@lru_cache
def get_state_machine() -> BookingStateMachine:
    """Get cached BookingStateMachine instance."""
    db = get_dynamodb_service()
    dispatcher = NotificationDispatcher(
        NotificationStore(db),
        notify_client_on_payment=get_gateway_config().notify_client_on_payment,
    )
    return BookingStateMachine(
        bookings=BookingStore(db),
        listings=get_listing_store(),
        dispatcher=dispatcher,
    )


@lru_cache
def get_checkout_service() -> CheckoutService:
    return CheckoutService(
        state_machine=get_state_machine(),
        listings=get_listing_store(),
        config=get_gateway_config(),
    )


@lru_cache
def get_webhook_handler() -> PaymentWebhookHandler:
    return PaymentWebhookHandler(
        state_machine=get_state_machine(),
        db=get_dynamodb_service(),
        config=get_gateway_config(),
    )


def reset_services() -> None:
    """Clear all cached service instances, including the DynamoDB singleton."""
    from marketplace_core.services.dynamodb import reset_dynamodb_service

    get_gateway_config.cache_clear()
    get_listing_store.cache_clear()
    get_state_machine.cache_clear()
    get_checkout_service.cache_clear()
    get_webhook_handler.cache_clear()

    reset_dynamodb_service()
