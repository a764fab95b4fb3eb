from post_event.models.event import Event, EventStatus
from post_event.models.invitee import Invitee, InviteeStatus
from post_event.models.notification import Notification
from post_event.models.topic_field import TopicCustomField
from post_event.models.user import Group, GroupMembership, User

__all__ = [
    "Event",
    "EventStatus",
    "Invitee",
    "InviteeStatus",
    "Notification",
    "TopicCustomField",
    "User",
    "Group",
    "GroupMembership",
]
