"""Create, update or remove a post's event from the post's text.

This is the write path of the service. For one post it:

    1. Parses the event markup out of the post text.
    2. Removes the stored event when the markup is gone.
    3. Otherwise merges the parsed fields over the stored ones field by
       field, normalizes times to UTC, validates, and writes the event.
    4. Applies the side effects of the target status (roster
       reconciliation for private events, roster teardown for standalone).
    5. Mirrors the start time onto the topic for a topic's first post.
    6. Publishes an update on the topic's realtime channel. The message is
       held until the session commits and dropped if it rolls back.

Everything runs on the caller's session. Wrap a call in session_scope()
so the event write and roster changes commit or roll back together.
"""
import logging
from dataclasses import dataclass
from typing import Any

from sqlmodel import Session

from post_event.core.config import settings
from post_event.events.attendance import AccessController, AttendanceResolver, AttendanceService
from post_event.events.errors import EventValidationError
from post_event.events.interfaces import (
    EventTextParser,
    InviteeResolver,
    NotificationChannel,
    Post,
    RealtimePublisher,
    SideFieldMirror,
)
from post_event.events.invitees import InviteeReconciler, ReconcileResult
from post_event.events.mirror import TopicFieldMirror
from post_event.events.notifications import DatabaseNotificationChannel, NotificationDispatcher
from post_event.events.parser import BBCodeEventParser
from post_event.events.publisher import MessageBus, event_channel, publish_on_commit
from post_event.events.repository import EventRepository
from post_event.events.resolver import GroupMembershipResolver
from post_event.events.timeutil import normalize_time
from post_event.models import Event, EventStatus

logger = logging.getLogger(__name__)

# Shared by services that are not given a publisher of their own
default_bus = MessageBus()


@dataclass
class EventParams:
    """Fully merged field values for one event write."""
    name: str | None
    starts_at: Any
    ends_at: Any
    status: EventStatus
    raw_invitees: list[str] | None


def _parse_time(field: str, value):
    try:
        return normalize_time(value)
    except ValueError:
        raise EventValidationError([f"{field} is not a valid time: {value!r}"]) from None


def split_allowed_groups(value: str | None) -> list[str] | None:
    """Split a comma separated allowedGroups value. None when absent."""
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


class PostEventService:
    """
    Entry point for everything the service does with a post's event.

    Collaborators default to the database-backed implementations bound to
    the given session and to the module-level message bus.
    """

    def __init__(
        self,
        session: Session,
        parser: EventTextParser | None = None,
        resolver: InviteeResolver | None = None,
        channel: NotificationChannel | None = None,
        publisher: RealtimePublisher | None = None,
        mirror: SideFieldMirror | None = None,
    ):
        self.session = session
        self.repository = EventRepository(session)
        self.parser = parser if parser is not None else BBCodeEventParser()
        self.publisher = publisher if publisher is not None else default_bus
        self.mirror = mirror if mirror is not None else TopicFieldMirror(session)

        if channel is None:
            channel = DatabaseNotificationChannel(session)
        if resolver is None:
            resolver = GroupMembershipResolver(session)

        self.dispatcher = NotificationDispatcher(self.repository, channel)
        self.reconciler = InviteeReconciler(self.repository, resolver, self.dispatcher)
        self.access = AccessController(self.repository)
        self.attendance = AttendanceResolver(self.repository, self.access)
        self.registration = AttendanceService(self.repository, self.access, self.publisher)

    # Write path

    def create_or_update_from_source(self, post: Post) -> Event | None:
        """
        Bring the post's event in line with the post text.

        Returns the written event, or None when the post carries no event.

        Raises:
            EventValidationError: If the merged fields break an event rule.
            InvalidEventStatusError: If the markup names an unknown status.
        """
        candidate = self.parser.extract(post.raw)
        event = self.repository.get(post.id)

        if candidate is None:
            if event is not None:
                self.destroy_for_post(post, event)
            return None

        params = self.merge_params(candidate, event)

        if event is None:
            event = Event(id=post.id)
            logger.info(f"Creating event for post {post.id}")
        event.copy_source(post)

        self.apply_status_update(event, params, post)
        return event

    def merge_params(self, candidate: dict[str, Any], event: Event | None) -> EventParams:
        """Take each parsed field, falling back to the stored value when it is missing."""
        def stored(attr):
            return getattr(event, attr) if event is not None else None

        status = candidate.get("status")
        return EventParams(
            name=candidate.get("name") or stored("name"),
            starts_at=_parse_time("starts_at", candidate.get("start") or stored("starts_at")),
            ends_at=_parse_time("ends_at", candidate.get("end") or stored("ends_at")),
            status=(
                EventStatus.parse(status)
                if status
                else EventStatus.parse(stored("status") or EventStatus.STANDALONE)
            ),
            raw_invitees=split_allowed_groups(candidate.get("allowedGroups")),
        )

    def apply_status_update(
        self, event: Event, params: EventParams, post: Post | None = None
    ) -> Event:
        """Write the event and run the side effects of its status, then publish."""
        event.name = params.name
        event.starts_at = params.starts_at
        event.ends_at = params.ends_at
        event.status = int(params.status)

        if params.status == EventStatus.PRIVATE:
            event.raw_invitees = list(params.raw_invitees or [])
            self.repository.save(event)
            self.reconciler.reconcile(event, post)
        elif params.status == EventStatus.PUBLIC:
            event.raw_invitees = []
            self.repository.save(event)
        else:
            event.raw_invitees = []
            self.repository.save(event)
            removed = self.repository.delete_invitees(event)
            if removed:
                logger.info(f"Removed {removed} invitees from standalone event {event.id}")

        self.mirror_starts_at(event, post)
        self.publish_update(event)
        return event

    def destroy_for_post(self, post: Post, event: Event | None = None) -> bool:
        """Delete the post's event and its invitees. True if there was one."""
        event = event or self.repository.get(post.id)
        if event is None:
            return False

        self.repository.delete(event)
        logger.info(f"Destroyed event for post {post.id}")

        if post.is_first_post:
            self.mirror.delete(post.topic_id, settings.starts_at_field_name)
        return True

    def mirror_starts_at(self, event: Event, post: Post | None = None) -> None:
        post = post or event.source_post()
        if post.is_first_post:
            self.mirror.upsert(post.topic_id, settings.starts_at_field_name, event.starts_at)

    def publish_update(self, event: Event) -> None:
        """Announce the change on the topic channel once the session commits."""
        publish_on_commit(
            self.session, self.publisher, event_channel(event.topic_id), {"id": event.id}
        )

    def soft_delete(self, event: Event) -> Event:
        return self.repository.soft_delete(event)

    # Roster and read path

    def reconcile_invitees(self, event: Event) -> ReconcileResult:
        return self.reconciler.reconcile(event)

    def dispatch_pending(self):
        return self.dispatcher.dispatch_pending()

    def most_likely_going(self, event: Event, user, limit: int | None = None, now=None):
        return self.attendance.most_likely_going(event, user, limit, now)

    def can_update_attendance(self, event: Event, user, now=None) -> bool:
        return self.access.can_update_attendance(event, user, now)

    def update_attendance(self, event: Event, user, status, now=None):
        return self.registration.update_attendance(event, user, status, now)
