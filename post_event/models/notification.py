"""Notification model for invitation messages delivered to users."""

from datetime import UTC, datetime

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel

CUSTOM_NOTIFICATION_TYPE = "custom"


class Notification(SQLModel, table=True):
    """A notification waiting in a user's inbox.

    Attributes:
        id: Unique identifier.
        user_id: Recipient.
        notification_type: Kind of notification. Invitations use "custom".
        topic_id: Thread the notification points at.
        post_number: Position of the post within the thread.
        data: Display payload (topic title, author name, message key).
        read: Whether the recipient has seen it.
        created_at: When the notification was created.
    """
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    notification_type: str = Field(default=CUSTOM_NOTIFICATION_TYPE)
    topic_id: int | None = None
    post_number: int | None = None
    data: dict = Field(default_factory=dict, sa_type=JSON)
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
