"""Booking persistence with compare-and-swap status updates."""

import datetime as dt
import logging
from typing import Any

from marketplace_core.models.booking import Booking
from marketplace_core.models.enums import BookingStatus
from marketplace_core.services.dynamodb import DynamoDBService, to_dynamodb_item

logger = logging.getLogger(__name__)


class BookingStore:
    """Reads and writes the bookings table.

    Every status write is conditional on the status and version the caller
    read, so concurrent webhook deliveries and cancellations cannot
    overwrite each other.
    """

    TABLE = "bookings"

    def __init__(self, db: DynamoDBService) -> None:
        self._db = db

    def get_by_id(self, booking_id: str) -> Booking | None:
        item = self._db.get_item(self.TABLE, {"booking_id": booking_id})
        return Booking.from_item(item) if item else None

    def create(self, booking: Booking) -> bool:
        """Insert a new booking. Returns False if the ID is already taken."""
        return self._db.put_if_absent(self.TABLE, to_dynamodb_item(booking), "booking_id")

    def update_status(
        self,
        booking_id: str,
        *,
        expected_status: BookingStatus,
        expected_version: int,
        new_status: BookingStatus,
        fields: dict[str, Any] | None = None,
        stamp_field: str | None = None,
        now: dt.datetime,
    ) -> Booking | None:
        """Atomically move a booking from ``expected_status`` to ``new_status``.

        Args:
            booking_id: Booking to update
            expected_status: Status the caller validated against
            expected_version: Version the caller read
            new_status: Status to write (may equal expected_status)
            fields: Extra attributes to set
            stamp_field: Transition timestamp attribute, written only if unset
            now: Timestamp for updated_at and stamp_field

        Returns:
            The updated Booking, or None if the booking changed since it was read
        """
        names: dict[str, str] = {"#status": "status", "#version": "version"}
        values: dict[str, Any] = {
            ":status": new_status.value,
            ":expected_status": expected_status.value,
            ":expected_version": expected_version,
            ":next_version": expected_version + 1,
            ":now": now.isoformat(),
        }
        assignments = [
            "#status = :status",
            "#version = :next_version",
            "updated_at = :now",
        ]

        for index, (name, value) in enumerate((fields or {}).items()):
            if value is None:
                continue
            names[f"#f{index}"] = name
            values[f":f{index}"] = to_dynamodb_item(value)
            assignments.append(f"#f{index} = :f{index}")

        if stamp_field:
            names["#stamp"] = stamp_field
            assignments.append("#stamp = if_not_exists(#stamp, :now)")

        attrs = self._db.update_item(
            self.TABLE,
            {"booking_id": booking_id},
            "SET " + ", ".join(assignments),
            values,
            names,
            condition_expression=(
                "#status = :expected_status AND #version = :expected_version"
            ),
        )
        if attrs is None:
            logger.info(
                "Booking %s changed since read (expected %s v%d)",
                booking_id,
                expected_status.value,
                expected_version,
            )
            return None
        return Booking.from_item(attrs)
