"""API-specific request/response models.

Domain models (Booking, PaymentEvent, ...) live in marketplace_core.models.
HTTP bodies use camelCase field names.

Modules:
- common: validation error body and base model configuration
- bookings: booking, cancellation and checkout bodies
- webhooks: webhook acknowledgement body
"""

__all__: list[str] = []
