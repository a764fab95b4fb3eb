"""In-process realtime message bus.

Updates about database writes go through publish_on_commit(), which holds
them on the session until its outermost transaction commits. A rollback
drops them, so subscribers never hear about a write that did not land.
"""
import logging
from collections import defaultdict, deque
from typing import Any, Callable

from sqlalchemy import event as sa_event
from sqlmodel import Session

from post_event.core.config import settings

logger = logging.getLogger(__name__)

BACKLOG_SIZE = 100

# Session.info key holding (publisher, channel, payload) waiting for commit
PENDING_KEY = "post_event.pending_publishes"

Subscriber = Callable[[str, dict[str, Any]], None]


def event_channel(topic_id: int) -> str:
    """Channel that clients watching a topic listen on."""
    return f"{settings.publish_channel_prefix}/{topic_id}"


def publish_on_commit(session: Session, publisher, channel: str, payload: dict[str, Any]) -> None:
    """Publish payload once the session's outermost transaction commits."""
    session.info.setdefault(PENDING_KEY, []).append((publisher, channel, payload))


@sa_event.listens_for(Session, "after_commit")
def _publish_pending(session):
    # Savepoint releases fire after_commit too
    if session.in_nested_transaction():
        return

    for publisher, channel, payload in session.info.pop(PENDING_KEY, []):
        try:
            publisher.publish(channel, payload)
        except Exception as e:
            logger.error(f"Failed to publish to {channel}: {e}")


@sa_event.listens_for(Session, "after_transaction_end")
def _drop_pending(session, transaction):
    if transaction.parent is None:
        pending = session.info.pop(PENDING_KEY, [])
        if pending:
            logger.debug(f"Dropped {len(pending)} updates from a rolled back transaction")


class MessageBus:
    """Publish messages to channel subscribers and keep a short backlog.

    Subscriber errors are logged and do not stop delivery to the others.
    """

    def __init__(self, backlog_size: int = BACKLOG_SIZE):
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._backlog: dict[str, deque] = defaultdict(lambda: deque(maxlen=backlog_size))

    def subscribe(self, channel: str, callback: Subscriber) -> None:
        self._subscribers[channel].append(callback)

    def unsubscribe(self, channel: str, callback: Subscriber) -> None:
        if callback in self._subscribers.get(channel, []):
            self._subscribers[channel].remove(callback)

    def publish(self, channel: str, payload: dict[str, Any]) -> None:
        self._backlog[channel].append(payload)
        logger.debug(f"Publishing to {channel}: {payload}")

        for callback in list(self._subscribers.get(channel, [])):
            try:
                callback(channel, payload)
            except Exception as e:
                logger.error(f"Subscriber on {channel} failed: {e}")

    def backlog(self, channel: str) -> list[dict[str, Any]]:
        """Messages published to channel, oldest first."""
        return list(self._backlog.get(channel, []))
