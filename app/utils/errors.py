"""Errors raised by the ticket and vouch workflows.

Every error carries the message shown to the invoking user. The dispatcher
turns them into private replies; nothing here is retried automatically.
"""


class BotError(Exception):
    """Base class for errors that end a single interaction."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BotError):
    """Bad user input: star rating, trust marker, self-vouch, missing option."""


class PermissionDeniedError(BotError):
    """The invoking user may not perform the action."""


class NotFoundError(BotError):
    """The interaction targets something that does not exist (e.g. no active ticket)."""


class GatewayError(BotError):
    """A chat platform call failed (channel creation, role creation, ...)."""

    def __init__(self, message: str = "The chat platform rejected the request. Please try again later."):
        super().__init__(message)
