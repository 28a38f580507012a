class TrackerError(Exception):
    """Base class for errors raised by the tracker services."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TrackerError):
    """An entity addressed by id does not exist."""


class InvalidReferenceError(TrackerError):
    """A request body points at an entity that does not exist."""


class BusinessRuleError(TrackerError):
    """The request is well-formed but breaks a rule of the ledger."""
