"""Notification model."""

import hashlib
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import NotificationType, TransitionType


def notification_dedup_id(
    booking_id: str,
    transition: TransitionType,
    recipient_id: str,
    payment_id: str | None = None,
) -> str:
    """Deterministic notification ID for (booking, transition, recipient, payment).

    The same transition delivered twice yields the same ID, so the store can
    reject the second write.
    """
    key = "|".join([booking_id, transition.value, recipient_id, payment_id or "-"])
    return "NTF-" + hashlib.sha256(key.encode()).hexdigest()[:32]


class Notification(BaseModel):
    """A message for one user about one booking transition.

    Created by the dispatcher and never mutated by the booking core;
    ``is_read`` is managed by the UI layer.
    """

    notification_id: str = Field(..., description="Deterministic dedup ID")
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    created_at: datetime
