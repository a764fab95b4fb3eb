"""Tests for creating, updating and removing events from post text."""

from datetime import UTC, datetime

import pytest
from sqlmodel import Session, select

from post_event.core.config import settings
from post_event.events.errors import EventValidationError, InvalidEventStatusError
from post_event.events.timeutil import as_utc
from post_event.models import Event, EventStatus, Invitee, InviteeStatus, TopicCustomField

START = "2099-05-01 18:00"
END = "2099-05-01 20:00"


def event_markup(**attrs) -> str:
    fields = {"start": START}
    fields.update(attrs)
    rendered = " ".join(f'{key}="{value}"' for key, value in fields.items() if value is not None)
    return f"Join us!\n\n[event {rendered}]\n[/event]\n"


def mirrored_value(session: Session, topic_id: int = 7):
    statement = (
        select(TopicCustomField)
        .where(TopicCustomField.topic_id == topic_id)
        .where(TopicCustomField.name == settings.starts_at_field_name)
    )
    field = session.exec(statement).first()
    return field.value if field else None


class TestCreateOrUpdate:
    """Tests for the create and update path."""

    def test_creates_standalone_event(self, service, make_post, session: Session):
        post = make_post(event_markup(name="Team dinner", end=END))

        event = service.create_or_update_from_source(post)
        session.commit()

        stored = session.get(Event, post.id)
        assert stored is event
        assert stored.name == "Team dinner"
        assert stored.event_status is EventStatus.STANDALONE
        assert as_utc(stored.starts_at) == datetime(2099, 5, 1, 18, 0, tzinfo=UTC)
        assert as_utc(stored.ends_at) == datetime(2099, 5, 1, 20, 0, tzinfo=UTC)
        assert stored.owner_id == post.user.id
        assert stored.topic_id == post.topic_id

    def test_times_normalized_to_utc(self, service, make_post):
        post = make_post(event_markup(start="2099-05-01T18:00:00+02:00"))

        event = service.create_or_update_from_source(post)

        assert as_utc(event.starts_at) == datetime(2099, 5, 1, 16, 0, tzinfo=UTC)

    def test_no_markup_and_no_event_is_a_no_op(self, service, make_post, bus):
        post = make_post("Nothing to see here")

        assert service.create_or_update_from_source(post) is None
        assert service.repository.get(post.id) is None
        assert bus.backlog("event-channel/7") == []

    def test_missing_fields_fall_back_to_stored_values(self, service, make_post, session):
        service.create_or_update_from_source(
            make_post(event_markup(name="Team dinner", end=END, status="public"))
        )
        session.commit()

        event = service.create_or_update_from_source(make_post(event_markup(start="2099-05-01 19:00")))

        assert event.name == "Team dinner"
        assert as_utc(event.starts_at) == datetime(2099, 5, 1, 19, 0, tzinfo=UTC)
        assert as_utc(event.ends_at) == datetime(2099, 5, 1, 20, 0, tzinfo=UTC)
        assert event.event_status is EventStatus.PUBLIC

    def test_publishes_after_every_update(self, service, make_post, bus, session):
        post = make_post(event_markup())

        for status in ["standalone", "public", "private"]:
            service.create_or_update_from_source(make_post(event_markup(status=status)))
            session.commit()

        assert bus.backlog("event-channel/7") == [{"id": post.id}] * 3

    def test_unknown_status_rejected(self, service, make_post):
        with pytest.raises(InvalidEventStatusError):
            service.create_or_update_from_source(make_post(event_markup(status="secret")))
        assert service.repository.get(101) is None


class TestValidation:
    """A rejected write leaves nothing behind."""

    def test_missing_start_rejected(self, service, make_post, bus):
        with pytest.raises(EventValidationError) as exc_info:
            service.create_or_update_from_source(make_post(event_markup(start=None)))

        assert "starts_at is required" in exc_info.value.errors
        assert service.repository.get(101) is None
        assert bus.backlog("event-channel/7") == []

    def test_all_errors_reported(self, service, make_post):
        markup = event_markup(name="abc", end="2099-05-01 17:00")

        with pytest.raises(EventValidationError) as exc_info:
            service.create_or_update_from_source(make_post(markup))

        assert len(exc_info.value.errors) == 2

    def test_too_many_raw_invitees(self, service, make_post):
        groups = ",".join(f"group{i}" for i in range(11))

        with pytest.raises(EventValidationError):
            service.create_or_update_from_source(
                make_post(event_markup(status="private", allowedGroups=groups))
            )

    def test_ten_raw_invitees_accepted(self, service, make_post):
        groups = ",".join(f"group{i}" for i in range(10))

        event = service.create_or_update_from_source(
            make_post(event_markup(status="private", allowedGroups=groups))
        )

        assert len(event.raw_invitees) == 10

    def test_failed_update_keeps_stored_event(self, service, make_post, session: Session):
        service.create_or_update_from_source(make_post(event_markup(name="Team dinner")))
        session.commit()

        with pytest.raises(EventValidationError):
            service.create_or_update_from_source(make_post(event_markup(name="abc")))
        session.rollback()

        stored = session.get(Event, 101)
        assert stored.name == "Team dinner"

    def test_unparseable_time_rejected(self, service, make_post):
        with pytest.raises(EventValidationError) as exc_info:
            service.create_or_update_from_source(make_post(event_markup(start="next tuesday")))
        assert "starts_at is not a valid time" in exc_info.value.errors[0]


class TestStatusTransitions:
    """Tests for the side effects of each target status."""

    def test_private_builds_roster_and_notifies(self, service, make_post, users, channel):
        post = make_post(event_markup(status="private", allowedGroups="friends"))

        event = service.create_or_update_from_source(post)

        assert event.raw_invitees == ["friends"]
        assert service.repository.invitee_user_ids(event) == {users["bob"].id, users["carol"].id}
        assert sorted(channel.recipients) == sorted([users["bob"].id, users["carol"].id])
        assert channel.sent[0][1]["display_username"] == "alice"

    def test_private_removes_users_no_longer_invited(self, service, make_post, users, session):
        service.create_or_update_from_source(
            make_post(event_markup(status="private", allowedGroups="friends,erin"))
        )
        session.commit()

        event = service.create_or_update_from_source(
            make_post(event_markup(status="private", allowedGroups="friends"))
        )

        assert service.repository.invitee_user_ids(event) == {users["bob"].id, users["carol"].id}

    def test_private_rerun_is_a_no_op(self, service, make_post, channel, session):
        markup = event_markup(status="private", allowedGroups="friends")
        event = service.create_or_update_from_source(make_post(markup))
        session.commit()
        rows = {(i.id, i.user_id) for i in service.repository.invitees(event)}

        service.create_or_update_from_source(make_post(markup))

        assert {(i.id, i.user_id) for i in service.repository.invitees(event)} == rows
        assert len(channel.sent) == 2

    def test_private_without_allowed_groups_has_empty_roster(self, service, make_post):
        event = service.create_or_update_from_source(make_post(event_markup(status="private")))

        assert event.raw_invitees == []
        assert service.repository.invitees(event) == []

    def test_standalone_removes_all_invitees(self, service, make_post, users, session):
        service.create_or_update_from_source(
            make_post(event_markup(status="private", allowedGroups="friends"))
        )
        session.commit()

        event = service.create_or_update_from_source(make_post(event_markup(status="standalone")))

        assert event.raw_invitees == []
        assert service.repository.invitees(event) == []

    def test_standalone_removes_self_registered_rows(self, service, make_post, users, session):
        event = service.create_or_update_from_source(make_post(event_markup(status="public")))
        service.update_attendance(event, users["erin"], InviteeStatus.GOING)
        session.commit()

        service.create_or_update_from_source(make_post(event_markup(status="standalone")))

        assert session.exec(select(Invitee)).all() == []

    def test_public_clears_raw_invitees_but_keeps_rows(self, service, make_post, users, session):
        service.create_or_update_from_source(
            make_post(event_markup(status="private", allowedGroups="friends"))
        )
        session.commit()

        event = service.create_or_update_from_source(
            make_post(event_markup(status="public", allowedGroups="friends"))
        )

        assert event.raw_invitees == []
        assert service.repository.invitee_user_ids(event) == {users["bob"].id, users["carol"].id}


class TestDestroy:
    """Tests for removing an event when its markup disappears."""

    def test_reparse_without_markup_deletes_event_and_invitees(self, service, make_post, session):
        service.create_or_update_from_source(
            make_post(event_markup(status="private", allowedGroups="friends"))
        )
        session.commit()
        assert mirrored_value(session) is not None

        result = service.create_or_update_from_source(make_post("The event is off, sorry."))
        session.commit()

        assert result is None
        assert session.get(Event, 101) is None
        assert session.exec(select(Invitee)).all() == []
        assert mirrored_value(session) is None

    def test_destroy_for_post(self, service, make_post, session):
        post = make_post(event_markup())
        service.create_or_update_from_source(post)
        session.commit()

        assert service.destroy_for_post(post) is True
        assert service.destroy_for_post(post) is False
        assert session.get(Event, post.id) is None

    def test_soft_delete_hides_event(self, service, make_post, session):
        event = service.create_or_update_from_source(make_post(event_markup()))
        session.commit()

        service.soft_delete(event)

        assert event.is_deleted
        assert service.repository.visible() == []
        assert service.repository.get(event.id) is event


class TestTopicMirror:
    """Tests for mirroring the start time onto the topic."""

    def test_first_post_mirrors_starts_at(self, service, make_post, session):
        service.create_or_update_from_source(make_post(event_markup()))
        session.commit()

        assert mirrored_value(session) == "2099-05-01T18:00:00+00:00"

    def test_update_overwrites_single_field(self, service, make_post, session):
        service.create_or_update_from_source(make_post(event_markup()))
        session.commit()
        service.create_or_update_from_source(make_post(event_markup(start="2099-06-01 09:30")))
        session.commit()

        fields = session.exec(select(TopicCustomField)).all()
        assert len(fields) == 1
        assert fields[0].value == "2099-06-01T09:30:00+00:00"

    def test_reply_does_not_touch_topic(self, service, make_post, session):
        reply = make_post(event_markup(), post_id=102, post_number=2)

        service.create_or_update_from_source(reply)
        session.commit()
        assert session.exec(select(TopicCustomField)).all() == []

        service.create_or_update_from_source(make_post("no event", post_id=102, post_number=2))
        session.commit()
        assert session.get(Event, 102) is None


class TestRealtimeUpdates:
    """Updates reach subscribers only for writes that were committed."""

    def test_held_until_commit(self, service, make_post, bus, session):
        service.create_or_update_from_source(make_post(event_markup()))
        assert bus.backlog("event-channel/7") == []

        session.commit()
        assert bus.backlog("event-channel/7") == [{"id": 101}]

    def test_dropped_on_rollback(self, service, make_post, bus, session):
        service.create_or_update_from_source(make_post(event_markup()))
        session.rollback()
        session.commit()

        assert bus.backlog("event-channel/7") == []
        assert session.get(Event, 101) is None

    def test_savepoint_release_does_not_publish(self, service, make_post, bus, session):
        service.create_or_update_from_source(
            make_post(event_markup(status="private", allowedGroups="friends"))
        )
        # Each invitation was sent inside its own savepoint
        assert bus.backlog("event-channel/7") == []

        session.commit()
        assert bus.backlog("event-channel/7") == [{"id": 101}]

    def test_failed_publisher_does_not_undo_commit(self, make_post, session):
        from post_event.events.pipeline import PostEventService

        class BrokenPublisher:
            def publish(self, channel, payload):
                raise RuntimeError("bus down")

        service = PostEventService(session, publisher=BrokenPublisher())
        service.create_or_update_from_source(make_post(event_markup()))
        session.commit()

        assert session.get(Event, 101) is not None
