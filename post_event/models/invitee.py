"""Invitee model for tracking event participants.

An invitee row ties one user to one event. Rows for private events are
created by roster reconciliation; rows for public events appear when a
user registers attendance themselves.
"""

from enum import IntEnum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from post_event.models.event import Event


class InviteeStatus(IntEnum):
    """Attendance answer. Lower values sort first in attendance previews."""
    GOING = 0
    INTERESTED = 1
    NOT_GOING = 2


class Invitee(SQLModel, table=True):
    """A user invited to, or attending, an event.

    Attributes:
        id: Row identifier.
        post_id: Foreign key to the owning Event (which shares the post id).
        user_id: The participant.
        status: InviteeStatus value, or None until the user answers.
        notified: True once the invitation notification has been sent.
        event: Reference to the owning Event.
    """
    __tablename__ = "post_event_invitee"
    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_event_invitee_post_user"),
    )

    id: int | None = Field(default=None, primary_key=True)
    post_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("post_event.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    user_id: int = Field(index=True)
    status: int | None = Field(default=None, sa_type=Integer)
    notified: bool = Field(default=False)

    # Relationship
    event: Optional["Event"] = Relationship(back_populates="invitees")

    @property
    def invitee_status(self) -> InviteeStatus | None:
        return None if self.status is None else InviteeStatus(self.status)
