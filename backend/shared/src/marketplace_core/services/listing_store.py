"""Read-only access to published listings (posts)."""

from marketplace_core.models.booking import Listing
from marketplace_core.services.dynamodb import DynamoDBService


class ListingStore:
    """Reads listings from the posts table."""

    TABLE = "posts"

    def __init__(self, db: DynamoDBService) -> None:
        self._db = db

    def get_by_id(self, post_id: str) -> Listing | None:
        item = self._db.get_item(self.TABLE, {"post_id": post_id}, consistent_read=False)
        return Listing.model_validate(item) if item else None
