"""Attendance rules: who may register, and who is most likely going."""
import logging
from datetime import datetime

from post_event.core.config import settings
from post_event.events.errors import AttendanceNotAllowedError, InvalidLimitError
from post_event.events.interfaces import RealtimePublisher
from post_event.events.publisher import event_channel, publish_on_commit
from post_event.events.repository import EventRepository
from post_event.models import Event, EventStatus, Invitee, InviteeStatus, User

logger = logging.getLogger(__name__)


class AccessController:
    """Decide whether a user may register their own attendance."""

    def __init__(self, repository: EventRepository):
        self.repository = repository

    def can_update_attendance(
        self, event: Event, user: User, now: datetime | None = None
    ) -> bool:
        """
        True when the event has not expired, the user is not its owner, and
        the event is public, or private with the user on the roster.
        """
        if event.is_expired(now):
            return False
        if event.owner_id == user.id:
            return False

        status = event.event_status
        if status == EventStatus.PUBLIC:
            return True
        if status == EventStatus.PRIVATE:
            return self.repository.has_invitee(event, user.id)
        return False


class AttendanceResolver:
    """Build the short "most likely going" list shown next to an event."""

    def __init__(self, repository: EventRepository, access: AccessController):
        self.repository = repository
        self.access = access

    def most_likely_going(
        self,
        event: Event,
        user: User,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[Invitee]:
        """
        Return at most limit attendance entries, in display order:

            1. The requesting user, if they may update their attendance.
               Their stored row is reused when there is one.
            2. The event owner, as going.
            3. Stored invitees by (status, user_id), without the requesting user.

        Entries made up for steps 1 and 2 are not added to the session.
        """
        if limit is None:
            limit = settings.displayed_invitees_limit
        if limit < 0:
            raise InvalidLimitError(f"limit must be >= 0, got {limit}")

        most_likely = []

        if self.access.can_update_attendance(event, user, now):
            own = self.repository.find_invitee(event, user.id)
            most_likely.append(own or Invitee(post_id=event.id, user_id=user.id))

        most_likely.append(
            Invitee(post_id=event.id, user_id=event.owner_id, status=InviteeStatus.GOING)
        )

        most_likely.extend(
            self.repository.ordered_invitees(
                event, exclude_user_id=user.id, limit=limit - len(most_likely)
            )
        )
        return most_likely[:limit]


class AttendanceService:
    """Let a user register their own attendance answer."""

    def __init__(
        self,
        repository: EventRepository,
        access: AccessController,
        publisher: RealtimePublisher,
    ):
        self.repository = repository
        self.access = access
        self.publisher = publisher

    def update_attendance(
        self,
        event: Event,
        user: User,
        status: InviteeStatus | int | str,
        now: datetime | None = None,
    ) -> Invitee:
        """
        Record the user's answer, creating their invitee row if needed.

        Rows created here are marked notified: the user acted on their own,
        so there is no invitation to send.

        Raises:
            AttendanceNotAllowedError: If can_update_attendance is False.
            ValueError: If status is not an InviteeStatus value or name.
        """
        answer = _parse_invitee_status(status)

        if not self.access.can_update_attendance(event, user, now):
            raise AttendanceNotAllowedError(
                f"User {user.id} cannot update attendance for event {event.id}"
            )

        invitee = self.repository.find_invitee(event, user.id)
        if invitee is None:
            self.repository.insert_invitees(event, {user.id}, notified=True)
            invitee = self.repository.find_invitee(event, user.id)

        invitee.status = int(answer)
        self.repository.session.add(invitee)
        self.repository.session.flush()

        logger.info(f"User {user.id} is {answer.name} for event {event.id}")
        publish_on_commit(
            self.repository.session, self.publisher, event_channel(event.topic_id), {"id": event.id}
        )
        return invitee


def _parse_invitee_status(value) -> InviteeStatus:
    if isinstance(value, str):
        key = value.strip().upper().replace("-", "_")
        if key in InviteeStatus.__members__:
            return InviteeStatus[key]
        raise ValueError(f"Unknown attendance status: {value!r}")
    return InviteeStatus(value)
