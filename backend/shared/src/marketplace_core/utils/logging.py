"""Structured logging for booking transitions and webhook deliveries.

Every record carries the correlation ID of the request or webhook delivery
that produced it, so one booking's history can be followed across the API,
the state machine and the webhook audit log.

Usage:
    from marketplace_core.utils.logging import correlation_scope, log_booking_transition

    with correlation_scope(request.headers.get("X-Correlation-ID")) as cid:
        ...
        log_booking_transition(logger, "accept", booking_id="BKG-123", result="applied")
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

NO_CORRELATION_ID = "no-correlation-id"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Outcomes that are expected under at-least-once delivery but worth a look.
_WARNING_RESULTS = frozenset({"duplicate", "ignored", "skipped", "rejected", "conflict"})


def get_correlation_id() -> str | None:
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID (generated if not given) for the enclosed block."""
    cid = correlation_id or str(uuid.uuid4())
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)


class CorrelationIdFilter(logging.Filter):
    """Adds ``correlation_id`` to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


def get_logger(name: str) -> logging.Logger:
    """Get a logger whose records always carry a correlation ID."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def configure_logging(level: int | str = logging.INFO) -> None:
    """Route all logs to stderr as ``[correlation-id] time LEVEL name: message``."""
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        logging.Formatter("[%(correlation_id)s] %(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


def _emit(logger: logging.Logger, headline: str, context: dict[str, Any]) -> None:
    fields = {key: value for key, value in context.items() if value is not None}
    message = " | ".join([headline, *(f"{key}={value}" for key, value in fields.items())])

    result = fields.get("result")
    if fields.get("error") or result == "error":
        level = logging.ERROR
    elif result in _WARNING_RESULTS:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(level, message, extra={"context": fields})


def log_booking_transition(
    logger: logging.Logger,
    operation: str,
    *,
    booking_id: str,
    from_status: str | None = None,
    to_status: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log one state machine operation on a booking.

    Args:
        logger: Logger instance
        operation: Operation name (e.g., "request_cancel", "apply_payment_event")
        booking_id: Booking being transitioned
        from_status: Status before the transition
        to_status: Status after the transition
        result: Outcome (applied, recorded, duplicate, ignored, rejected, conflict)
        error: Reason the operation failed
        **extra: Additional context fields
    """
    _emit(
        logger,
        f"Booking {operation}",
        {
            "booking_id": booking_id,
            "from_status": from_status,
            "to_status": to_status,
            "result": result,
            "error": error,
            **extra,
        },
    )


def log_webhook_event(
    logger: logging.Logger,
    gateway: str,
    event_key: str,
    *,
    booking_id: str | None = None,
    payment_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log the outcome of one webhook delivery."""
    _emit(
        logger,
        f"Webhook {gateway} ({event_key})",
        {
            "booking_id": booking_id,
            "payment_id": payment_id,
            "result": result,
            "error": error,
            **extra,
        },
    )
