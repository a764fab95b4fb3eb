"""Storage gateway for events and their invitees.

All reads and writes of Event and Invitee rows go through EventRepository.
The event decides on its own whether it is valid; the repository only
refuses to write an event that is not.
"""
import logging
from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Session, select

from post_event.events.timeutil import utcnow
from post_event.models import Event, Invitee

logger = logging.getLogger(__name__)

# Dialects supporting INSERT ... ON CONFLICT DO NOTHING
CONFLICT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class EventRepository:
    """Create, update, delete and query events and invitees in one session."""

    def __init__(self, session: Session):
        self.session = session

    # Events

    def get(self, event_id: int) -> Event | None:
        return self.session.get(Event, event_id)

    def save(self, event: Event) -> Event:
        """Validate and write the event.

        Raises:
            EventValidationError: If any field rule fails. Unflushed changes
                to an already stored event are discarded.
        """
        try:
            event.ensure_valid()
        except Exception:
            if event in self.session:
                self.session.expire(event)
            raise

        event.updated_at = datetime.now(UTC)
        self.session.add(event)
        self.session.flush()
        return event

    def delete(self, event: Event) -> None:
        """Delete the event and every invitee row it owns."""
        for invitee in self.invitees(event):
            self.session.delete(invitee)
        self.session.delete(event)
        self.session.flush()

    def soft_delete(self, event: Event) -> Event:
        event.deleted_at = datetime.now(UTC)
        self.session.add(event)
        self.session.flush()
        return event

    def visible(self) -> list[Event]:
        """Events that have not been soft-deleted, soonest first."""
        statement = (
            select(Event)
            .where(Event.deleted_at == None)  # noqa: E711
            .order_by(Event.starts_at)
        )
        return list(self.session.exec(statement).all())

    def upcoming(self, now: datetime | None = None) -> list[Event]:
        """Visible events that have not started yet."""
        now = now or utcnow()
        statement = (
            select(Event)
            .where(Event.deleted_at == None)  # noqa: E711
            .where(Event.starts_at > now)
            .order_by(Event.starts_at)
        )
        return list(self.session.exec(statement).all())

    # Invitees

    def invitees(self, event: Event) -> list[Invitee]:
        statement = select(Invitee).where(Invitee.post_id == event.id).order_by(Invitee.user_id)
        return list(self.session.exec(statement).all())

    def invitee_user_ids(self, event: Event) -> set[int]:
        statement = select(Invitee.user_id).where(Invitee.post_id == event.id)
        return set(self.session.exec(statement).all())

    def find_invitee(self, event: Event, user_id: int) -> Invitee | None:
        statement = (
            select(Invitee)
            .where(Invitee.post_id == event.id)
            .where(Invitee.user_id == user_id)
        )
        return self.session.exec(statement).first()

    def has_invitee(self, event: Event, user_id: int) -> bool:
        return self.find_invitee(event, user_id) is not None

    def ordered_invitees(
        self, event: Event, exclude_user_id: int | None, limit: int
    ) -> list[Invitee]:
        """Invitees by (status, user_id), unanswered last, at most limit rows."""
        if limit <= 0:
            return []

        statement = select(Invitee).where(Invitee.post_id == event.id)
        if exclude_user_id is not None:
            statement = statement.where(Invitee.user_id != exclude_user_id)
        statement = statement.order_by(
            Invitee.status.is_(None), Invitee.status, Invitee.user_id
        ).limit(limit)
        return list(self.session.exec(statement).all())

    def delete_invitees(self, event: Event, keep_user_ids: set[int] | None = None) -> int:
        """Delete invitee rows, sparing users in keep_user_ids. Returns the count removed."""
        removed = 0
        for invitee in self.invitees(event):
            if keep_user_ids is not None and invitee.user_id in keep_user_ids:
                continue
            self.session.delete(invitee)
            removed += 1

        self.session.flush()
        self._expire_roster(event)
        return removed

    def insert_invitees(
        self, event: Event, user_ids: set[int], notified: bool = False
    ) -> int:
        """Insert one row per user id, skipping users already on the roster.

        SQLite and PostgreSQL skip duplicates with ON CONFLICT DO NOTHING.
        Elsewhere each row goes in its own savepoint and a unique-constraint
        violation counts as already present.

        Returns the number of rows actually inserted.
        """
        if not user_ids:
            return 0

        rows = [
            {"post_id": event.id, "user_id": user_id, "status": None, "notified": notified}
            for user_id in sorted(user_ids)
        ]
        dialect = self.session.get_bind().dialect.name
        conflict_insert = CONFLICT_INSERTS.get(dialect)

        if conflict_insert is not None:
            statement = conflict_insert(Invitee.__table__).values(rows).on_conflict_do_nothing(
                index_elements=["post_id", "user_id"]
            )
            result = self.session.exec(statement)
            inserted = result.rowcount
        else:
            existing = self.invitee_user_ids(event)
            inserted = 0
            for row in rows:
                if row["user_id"] in existing:
                    continue
                try:
                    with self.session.begin_nested():
                        self.session.add(Invitee(**row))
                except IntegrityError:
                    # Added by someone else since the roster read above
                    continue
                inserted += 1

        skipped = len(rows) - inserted
        if skipped:
            logger.info(f"Skipped {skipped} invitees already on event {event.id}")

        self._expire_roster(event)
        return inserted

    def pending_invitees(self, event: Event | None = None) -> list[Invitee]:
        """Invitees that have not been notified, for one event or all of them."""
        statement = select(Invitee).where(Invitee.notified == False)  # noqa: E712
        if event is not None:
            statement = statement.where(Invitee.post_id == event.id)
        return list(self.session.exec(statement.order_by(Invitee.post_id, Invitee.user_id)).all())

    def claim_notification(self, invitee: Invitee) -> bool:
        """Atomically flip notified from False to True. True if this call won."""
        statement = (
            update(Invitee)
            .where(Invitee.id == invitee.id)
            .where(Invitee.notified == False)  # noqa: E712
            .values(notified=True)
        )
        result = self.session.exec(statement)
        self.session.refresh(invitee)
        return result.rowcount == 1

    def release_notification(self, invitee: Invitee) -> None:
        """Mark the invitee as not notified again so a later sweep retries."""
        invitee.notified = False
        self.session.add(invitee)
        self.session.flush()

    def _expire_roster(self, event: Event) -> None:
        """Make event.invitees reload, since rows changed behind the relationship."""
        if event in self.session:
            self.session.expire(event, ["invitees"])
