"""Exceptions raised by the assignment engine."""


class AssignmentError(Exception):
    """Base class for assignment engine errors."""


class ValidationError(AssignmentError):
    """Rule, territory, capacity or config input is malformed."""


class NotFoundError(AssignmentError):
    """A rule, territory or team member id is unknown."""


class NoAssigneeFound(AssignmentError):
    """Every strategy in the fallback chain failed to pick an owner."""

    def __init__(self, reason: str = "No assignee found"):
        super().__init__(reason)
        self.reason = reason
