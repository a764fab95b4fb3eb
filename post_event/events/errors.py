"""Exceptions raised by the post event service."""


class PostEventError(Exception):
    """Base class for post event errors."""


class EventValidationError(PostEventError):
    """An event write was rejected because one or more field rules failed.

    Attributes:
        errors: Every rule that failed, in the order they were checked.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class InvalidEventStatusError(PostEventError, ValueError):
    """A status value does not name Standalone, Public or Private."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unknown event status: {value!r}")


class AttendanceNotAllowedError(PostEventError):
    """The user may not register attendance for this event."""


class InvalidLimitError(PostEventError, ValueError):
    """A display limit was negative."""
