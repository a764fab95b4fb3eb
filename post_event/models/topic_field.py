"""Topic-level key/value fields.

The event start time of a topic's first post is mirrored here so that
topic listings can show and sort by it without loading events.
"""

from datetime import UTC, datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class TopicCustomField(SQLModel, table=True):
    """A named value attached to a topic. Unique per (topic_id, name)."""
    __table_args__ = (
        UniqueConstraint("topic_id", "name", name="uq_topic_custom_field_topic_name"),
    )

    id: int | None = Field(default=None, primary_key=True)
    topic_id: int = Field(index=True)
    name: str
    value: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
