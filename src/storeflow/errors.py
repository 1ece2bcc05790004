"""Classified errors raised by the fulfillment core.

Business rule violations extend Protean's ``ValidationError`` so that callers
get the same ``messages`` dict shape as field validation failures, and the
HTTP layer can map each class to a precise status code. Missing records extend
``ObjectNotFoundError``.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class NotFoundError(ObjectNotFoundError):
    """Cart, order, product or reservation does not exist in the store."""


class InvalidStateError(ValidationError):
    """The target is in a state that does not permit the operation."""


class UnauthorizedError(ValidationError):
    """The caller does not own the resource (e.g. somebody else's cart)."""


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds what is available."""


class ReservationConflictError(ValidationError):
    """Duplicate reservation id, or a compare-and-set on its status failed."""


class InvalidTransitionError(ValidationError):
    """The order state machine does not allow the requested status change."""


class FulfillmentError(Exception):
    """An unexpected failure surfaced as a generic internal error."""

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.message = message
        self.cause = cause


def error_messages(exc) -> dict:
    """Return the ``messages`` dict carried by a Protean exception."""
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return messages
    return {"_error": [str(exc)]}
