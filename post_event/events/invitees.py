"""Keep a private event's invitee rows in line with its raw invitee list."""
import logging
from dataclasses import dataclass

from post_event.events.interfaces import InviteeResolver, Post
from post_event.events.notifications import NotificationDispatcher
from post_event.events.repository import EventRepository
from post_event.models import Event

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Counts from one reconciliation pass."""
    removed: int = 0
    added: int = 0
    notified: int = 0


class InviteeReconciler:
    """
    Make the stored roster equal the resolution of ``raw_invitees``.

    The resolver is called once per reconcile() and the resulting id set is
    passed to each step, so every step sees the same roster.
    """

    def __init__(
        self,
        repository: EventRepository,
        resolver: InviteeResolver,
        dispatcher: NotificationDispatcher,
    ):
        self.repository = repository
        self.resolver = resolver
        self.dispatcher = dispatcher

    def resolve(self, event: Event) -> set[int]:
        return set(self.resolver.resolve(list(event.raw_invitees or [])))

    def destroy_extraneous(self, event: Event, user_ids: set[int]) -> int:
        """Delete invitees whose user is not in user_ids."""
        return self.repository.delete_invitees(event, keep_user_ids=user_ids)

    def fill_missing(self, event: Event, user_ids: set[int]) -> int:
        """Insert unnotified invitees for users in user_ids not yet on the roster."""
        missing = user_ids - self.repository.invitee_user_ids(event)
        return self.repository.insert_invitees(event, missing)

    def reconcile(self, event: Event, post: Post | None = None) -> ReconcileResult:
        """Remove extraneous invitees, add missing ones, then notify new ones."""
        user_ids = self.resolve(event)

        result = ReconcileResult()
        result.removed = self.destroy_extraneous(event, user_ids)
        result.added = self.fill_missing(event, user_ids)
        result.notified = self.dispatcher.notify_invitees(event, post).sent

        if result.removed or result.added:
            logger.info(
                f"Reconciled invitees for event {event.id}: "
                f"{result.removed} removed, {result.added} added"
            )
        return result
