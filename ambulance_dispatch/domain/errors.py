"""Error taxonomy shared by the domain, service and API layers."""


class DispatchError(Exception):
    """Base class for every failure surfaced to callers."""


class ValidationError(DispatchError):
    """A required field is missing or empty."""


class ConflictError(DispatchError):
    """The request is no longer in the state the caller expected.

    Raised when a claim loses the race, or when cancelling a request that
    already reached a terminal status.
    """


class InvalidTransitionError(DispatchError):
    """A status change violates the state machine or the actor is wrong."""


class NotFoundError(DispatchError):
    """The referenced request or driver does not exist."""


class TransportError(DispatchError):
    """The backing store could not be reached or rejected the statement."""
