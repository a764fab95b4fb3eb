"""Invitation notifications.

Every invitee row is notified at most once. Before sending, the dispatcher
claims the row by flipping ``notified`` from False to True in a single
conditional UPDATE, so two dispatchers racing on the same event cannot
both send. If the send itself fails, the claim is released and the
invitee is picked up again by the next sweep. Each send runs in its own
savepoint, so a channel that writes to the session and fails only loses
its own writes.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlmodel import Session

from post_event.core.config import settings
from post_event.events.interfaces import NotificationChannel, Post
from post_event.events.repository import EventRepository
from post_event.models import Event, Notification
from post_event.models.notification import CUSTOM_NOTIFICATION_TYPE

logger = logging.getLogger(__name__)


class DatabaseNotificationChannel:
    """Deliver notifications by writing them to the Notification table."""

    def __init__(self, session: Session):
        self.session = session

    def send(self, user_id: int, payload: dict[str, Any]) -> None:
        notification = Notification(
            user_id=user_id,
            notification_type=CUSTOM_NOTIFICATION_TYPE,
            topic_id=payload.get("topic_id"),
            post_number=payload.get("post_number"),
            data={
                "topic_title": payload.get("topic_title"),
                "display_username": payload.get("display_username"),
                "message": payload.get("message"),
            },
        )
        self.session.add(notification)
        self.session.flush()


def invitation_payload(post: Post) -> dict[str, Any]:
    """Notification payload pointing at the post an event lives on."""
    return {
        "topic_id": post.topic_id,
        "post_number": post.post_number,
        "topic_title": post.topic_title,
        "display_username": post.user.username,
        "message": settings.invite_notification_message_key,
    }


@dataclass
class DispatchResult:
    """Outcome of one dispatch pass."""
    sent: int = 0
    skipped: int = 0
    failed: list[int] = field(default_factory=list)  # user ids


class NotificationDispatcher:
    """Send one invitation per invitee that has not been notified yet."""

    def __init__(self, repository: EventRepository, channel: NotificationChannel):
        self.repository = repository
        self.channel = channel

    def notify_invitees(self, event: Event, post: Post | None = None) -> DispatchResult:
        """
        Notify every pending invitee of the event.

        The payload is built from post when given, otherwise from the post
        details recorded on the event.

        A failed send is logged and does not stop the remaining sends.
        The failed invitee stays unnotified, and whatever the send wrote
        before failing is rolled back to its savepoint.
        """
        result = DispatchResult()
        payload = invitation_payload(post or event.source_post())

        for invitee in self.repository.pending_invitees(event):
            if not self.repository.claim_notification(invitee):
                # Another dispatcher got there first
                result.skipped += 1
                continue

            try:
                # Savepoint: a failed send rolls back only its own writes
                with self.repository.session.begin_nested():
                    self.channel.send(invitee.user_id, dict(payload))
            except Exception as e:
                logger.error(
                    f"Failed to notify user {invitee.user_id} for event {event.id}: {e}"
                )
                self.repository.release_notification(invitee)
                result.failed.append(invitee.user_id)
                continue

            result.sent += 1

        if result.sent or result.failed:
            logger.info(
                f"Notified {result.sent} invitees for event {event.id}"
                + (f", {len(result.failed)} failed" if result.failed else "")
            )
        return result

    def dispatch_pending(self) -> DispatchResult:
        """Notify pending invitees across all visible events."""
        total = DispatchResult()
        event_ids = sorted({i.post_id for i in self.repository.pending_invitees()})

        for event_id in event_ids:
            event = self.repository.get(event_id)
            if event is None or event.is_deleted:
                continue
            result = self.notify_invitees(event)
            total.sent += result.sent
            total.skipped += result.skipped
            total.failed.extend(result.failed)

        return total
