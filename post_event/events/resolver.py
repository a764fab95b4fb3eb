"""Resolve raw invitee specifiers to user ids."""
import logging

from sqlalchemy import func
from sqlmodel import Session, select

from post_event.models import Group, GroupMembership, User

logger = logging.getLogger(__name__)


class GroupMembershipResolver:
    """
    Expand group and user names into a deduplicated set of user ids.

    Each specifier is first looked up as a group name, in which case every
    member is included, and otherwise as a username. Matching is
    case-insensitive. Names that match neither are skipped.
    """

    def __init__(self, session: Session):
        self.session = session

    def resolve(self, specifiers: list[str]) -> set[int]:
        names = {s.strip().lower() for s in specifiers or [] if s and s.strip()}
        if not names:
            return set()

        resolved = set()

        groups = self.session.exec(
            select(Group).where(func.lower(Group.name).in_(names))
        ).all()
        if groups:
            members = self.session.exec(
                select(GroupMembership.user_id).where(
                    GroupMembership.group_id.in_([g.id for g in groups])
                )
            ).all()
            resolved.update(members)

        usernames = names - {g.name.lower() for g in groups}
        if usernames:
            users = self.session.exec(
                select(User).where(func.lower(User.username).in_(usernames))
            ).all()
            resolved.update(u.id for u in users)

            unknown = usernames - {u.username.lower() for u in users}
            if unknown:
                logger.debug(f"Ignoring unknown invitee names: {sorted(unknown)}")

        return resolved
