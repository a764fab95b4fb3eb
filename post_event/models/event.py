"""Event model for the scheduled occurrence attached to a post.

This module defines the Event aggregate and its visibility status. An
event shares its identity with the post it lives on, owns a roster of
invitees, and enforces its own field rules through ``ensure_valid()`` so that
no storage concern is needed to decide whether an event is well formed.
"""

from datetime import UTC, datetime
from enum import IntEnum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Integer
from sqlmodel import Field, Relationship, SQLModel

from post_event.events.errors import EventValidationError, InvalidEventStatusError
from post_event.events.interfaces import Author, Post
from post_event.events.timeutil import as_utc, utcnow

if TYPE_CHECKING:
    from post_event.models.invitee import Invitee

MIN_NAME_LENGTH = 5
MAX_NAME_LENGTH = 30
MAX_RAW_INVITEES = 10


class EventStatus(IntEnum):
    """Visibility and roster-control mode of an event.

    STANDALONE events have no invitee concept, PUBLIC events are open to
    anyone, and PRIVATE events restrict attendance to the roster derived
    from ``raw_invitees``.
    """
    STANDALONE = 0
    PUBLIC = 1
    PRIVATE = 2

    @classmethod
    def parse(cls, value) -> "EventStatus":
        """Convert a member, an int, or a case-insensitive name to a status.

        Raises:
            InvalidEventStatusError: If the value names no known status.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidEventStatusError(value)
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidEventStatusError(value) from None
        if isinstance(value, str):
            key = value.strip().upper()
            if key.isdigit():
                return cls.parse(int(key))
            if key in cls.__members__:
                return cls[key]
        raise InvalidEventStatusError(value)


class Event(SQLModel, table=True):
    """A scheduled event attached to a single post.

    Attributes:
        id: Same value as the owning post's id (not an independent sequence).
        name: Optional short label, 5 to 30 characters when not blank.
        starts_at: When the event starts, in UTC.
        ends_at: When the event ends, in UTC. Must be after starts_at.
        status: One of the EventStatus values, stored as its integer.
        raw_invitees: Group or user names the roster is derived from.
            Only meaningful for private events.
        owner_id: User id of the post's author.
        owner_username: Username of the post's author.
        topic_id: Id of the thread the post belongs to.
        topic_title: Title of that thread.
        post_number: Position of the post within the thread.
        deleted_at: Soft-delete marker.
        updated_at: Timestamp of the last write through the update pipeline.
        invitees: Roster rows for this event.
    """
    __tablename__ = "post_event"

    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    name: str | None = Field(default=None)
    starts_at: datetime | None = Field(default=None, index=True)
    ends_at: datetime | None = Field(default=None)
    status: int = Field(default=EventStatus.STANDALONE, sa_type=Integer)
    raw_invitees: list[str] = Field(default_factory=list, sa_type=JSON)
    owner_id: int | None = Field(default=None, index=True)
    owner_username: str | None = Field(default=None)
    topic_id: int | None = Field(default=None, index=True)
    topic_title: str | None = Field(default=None)
    post_number: int | None = Field(default=None)
    deleted_at: datetime | None = Field(default=None)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationships
    invitees: list["Invitee"] = Relationship(
        back_populates="event",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )

    @property
    def event_status(self) -> EventStatus:
        return EventStatus.parse(self.status)

    def validation_errors(self) -> list[str]:
        """Return every rule the current field values break."""
        errors = []

        if self.starts_at is None:
            errors.append("starts_at is required")

        if self.name and self.name.strip():
            if not MIN_NAME_LENGTH <= len(self.name) <= MAX_NAME_LENGTH:
                errors.append(
                    f"name must be between {MIN_NAME_LENGTH} and "
                    f"{MAX_NAME_LENGTH} characters"
                )

        if self.raw_invitees and len(self.raw_invitees) > MAX_RAW_INVITEES:
            errors.append(f"raw_invitees cannot have more than {MAX_RAW_INVITEES} entries")

        if self.starts_at is not None and self.ends_at is not None:
            if as_utc(self.starts_at) >= as_utc(self.ends_at):
                errors.append("ends_at must be after starts_at")

        return errors

    def ensure_valid(self) -> None:
        """Raise EventValidationError listing all broken rules, if any."""
        errors = self.validation_errors()
        if errors:
            raise EventValidationError(errors)

    def is_expired(self, now: datetime | None = None) -> bool:
        """An event expires once its end, or its start when it has no end, has passed."""
        now = as_utc(now) if now else utcnow()
        boundary = self.ends_at or self.starts_at
        return now > (as_utc(boundary) if boundary else now)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def copy_source(self, post: Post) -> None:
        """Record the post details needed for notifications and ownership checks."""
        self.owner_id = post.user.id
        self.owner_username = post.user.username
        self.topic_id = post.topic_id
        self.topic_title = post.topic_title
        self.post_number = post.post_number

    def source_post(self) -> Post:
        """Rebuild the owning post from the recorded details, without its text."""
        return Post(
            id=self.id,
            topic_id=self.topic_id,
            post_number=self.post_number,
            user=Author(id=self.owner_id, username=self.owner_username),
            topic_title=self.topic_title,
        )
