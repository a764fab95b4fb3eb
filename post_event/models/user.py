"""User and group models used to resolve invitee names.

Raw invitee specifiers name either a group or a single user. These tables
hold just enough of the directory to expand them into user ids.
"""

from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """A member of the forum.

    Attributes:
        id: Unique identifier.
        username: Unique handle, matched case-insensitively.
        name: Optional full name.
    """
    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    name: str | None = None


class Group(SQLModel, table=True):
    """A named set of users that can be invited at once."""
    __tablename__ = "user_group"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)


class GroupMembership(SQLModel, table=True):
    """Membership of a user in a group."""
    __tablename__ = "user_group_membership"

    group_id: int = Field(foreign_key="user_group.id", primary_key=True)
    user_id: int = Field(foreign_key="user.id", primary_key=True)
