"""Collaborator interfaces.

The event service depends only on these capabilities. Default
implementations live next to this module (parser, resolver, notifications,
publisher, mirror) and can be replaced by anything with the same shape.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol


@dataclass
class Author:
    """The user who wrote a post."""
    id: int
    username: str


@dataclass
class Post:
    """The content item an event is attached to.

    Attributes:
        id: Post id, shared with the event.
        topic_id: Id of the parent thread.
        post_number: Position of the post within its thread.
        user: Author of the post.
        topic_title: Title of the parent thread.
        raw: Source text the event markup is parsed from.
    """
    id: int
    topic_id: int
    post_number: int
    user: Author
    topic_title: str
    raw: str = ""

    @property
    def is_first_post(self) -> bool:
        return self.post_number == 1


class EventTextParser(Protocol):
    def extract(self, text: str) -> dict[str, Any] | None:
        """Return the first event candidate in text, or None.

        Candidate keys: name, start, end, status, allowedGroups.
        """
        ...


class InviteeResolver(Protocol):
    def resolve(self, specifiers: list[str]) -> set[int]:
        """Expand group and user names into a set of user ids."""
        ...


class NotificationChannel(Protocol):
    def send(self, user_id: int, payload: dict[str, Any]) -> None:
        ...


class RealtimePublisher(Protocol):
    def publish(self, channel: str, payload: dict[str, Any]) -> None:
        ...


class SideFieldMirror(Protocol):
    def upsert(self, topic_id: int, name: str, value: datetime) -> None:
        ...

    def delete(self, topic_id: int, name: str) -> None:
        ...
