"""Notification persistence keyed by deterministic dedup IDs."""

from boto3.dynamodb.conditions import Key

from marketplace_core.models.notification import Notification
from marketplace_core.services.dynamodb import DynamoDBService, to_dynamodb_item


class NotificationStore:
    """Writes notifications; a second write of the same ID is rejected."""

    TABLE = "notifications"
    BOOKING_INDEX = "booking_id-index"

    def __init__(self, db: DynamoDBService) -> None:
        self._db = db

    def create(self, notification: Notification) -> bool:
        """Persist a notification.

        Returns:
            True if written, False if a notification with this ID already exists
        """
        item = to_dynamodb_item(notification)
        booking_id = notification.data.get("bookingId")
        if booking_id:
            item["booking_id"] = booking_id
        return self._db.put_if_absent(self.TABLE, item, "notification_id")

    def list_for_booking(self, booking_id: str) -> list[Notification]:
        items = self._db.query(
            self.TABLE,
            Key("booking_id").eq(booking_id),
            index_name=self.BOOKING_INDEX,
        )
        return [
            Notification.model_validate({k: v for k, v in item.items() if k != "booking_id"})
            for item in items
        ]
