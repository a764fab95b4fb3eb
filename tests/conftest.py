"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

import post_event.models  # noqa: F401
from post_event.events.interfaces import Author, Post
from post_event.events.pipeline import PostEventService
from post_event.events.publisher import MessageBus
from post_event.events.repository import EventRepository
from post_event.models import Event, EventStatus, Group, GroupMembership, User


class RecordingChannel:
    """Notification channel that remembers what it sent.

    Sends to users listed in fail_for raise instead.
    """

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, user_id, payload):
        if user_id in self.fail_for:
            raise RuntimeError("transport unavailable")
        self.sent.append((user_id, payload))

    @property
    def recipients(self):
        return [user_id for user_id, _ in self.sent]


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="users")
def users_fixture(session: Session) -> dict[str, User]:
    """Create users and groups.

    alice writes the posts. The "friends" group holds bob and carol, the
    "staff" group holds dave. erin belongs to no group.
    """
    users = {
        name: User(username=name, name=name.title())
        for name in ["alice", "bob", "carol", "dave", "erin"]
    }
    for user in users.values():
        session.add(user)

    friends = Group(name="friends")
    staff = Group(name="staff")
    session.add(friends)
    session.add(staff)
    session.flush()

    session.add(GroupMembership(group_id=friends.id, user_id=users["bob"].id))
    session.add(GroupMembership(group_id=friends.id, user_id=users["carol"].id))
    session.add(GroupMembership(group_id=staff.id, user_id=users["dave"].id))
    session.commit()

    for user in users.values():
        session.refresh(user)
    return users


@pytest.fixture(name="make_post")
def make_post_fixture(users):
    """Build posts written by alice in topic 7."""

    def make_post(raw: str, post_id: int = 101, post_number: int = 1, topic_id: int = 7):
        author = users["alice"]
        return Post(
            id=post_id,
            topic_id=topic_id,
            post_number=post_number,
            user=Author(id=author.id, username=author.username),
            topic_title="Summer meetup",
            raw=raw,
        )

    return make_post


@pytest.fixture(name="channel")
def channel_fixture() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture(name="bus")
def bus_fixture() -> MessageBus:
    return MessageBus()


@pytest.fixture(name="service")
def service_fixture(session: Session, channel: RecordingChannel, bus: MessageBus):
    """Service with a recording notification channel and a private message bus."""
    return PostEventService(session, channel=channel, publisher=bus)


@pytest.fixture(name="repository")
def repository_fixture(session: Session) -> EventRepository:
    return EventRepository(session)


@pytest.fixture(name="make_event")
def make_event_fixture(session: Session, repository: EventRepository, users, make_post):
    """Store an event owned by alice directly, bypassing the parser."""

    def make_event(
        status=EventStatus.PUBLIC,
        starts_at=None,
        ends_at=None,
        raw_invitees=None,
        post_id: int = 201,
    ) -> Event:
        event = Event(
            id=post_id,
            starts_at=starts_at or datetime.now(UTC) + timedelta(days=1),
            ends_at=ends_at,
            status=int(status),
            raw_invitees=raw_invitees or [],
        )
        event.copy_source(make_post("", post_id=post_id))
        repository.save(event)
        session.commit()
        session.refresh(event)
        return event

    return make_event


@pytest.fixture(name="channel_factory")
def channel_factory_fixture():
    """Build extra recording channels, optionally failing for some users."""
    return RecordingChannel
