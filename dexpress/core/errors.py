"""Error taxonomy shared by the core and the HTTP boundary.

Every ``DexpressError`` carries the HTTP status it maps to and the public
``error`` string rendered in the JSON body.  ``InvalidTransitionError`` is
outside the hierarchy: it signals a driver bug and is never rendered to
clients.
"""

from __future__ import annotations


class DexpressError(Exception):
    """Base class for errors that have a client-facing rendering."""

    status_code: int = 500
    default_message: str = "internal_error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAuthenticatedError(DexpressError):
    """Missing or invalid bearer token on an endpoint that requires one."""

    status_code = 401
    default_message = "not_authenticated"


class ForbiddenError(DexpressError):
    """Authenticated, but not the owner of the requested resource."""

    status_code = 403
    default_message = "forbidden"


class NotFoundError(DexpressError):
    status_code = 404
    default_message = "not_found"


class FieldValidationError(DexpressError):
    """A required request field is missing or malformed."""

    status_code = 400
    default_message = "invalid_request"


class StorageError(DexpressError):
    """An underlying data store call failed.  The message is passed through."""

    status_code = 500
    default_message = "storage_error"


class StoreConflictError(StorageError):
    """A write violated a uniqueness constraint."""

    status_code = 409
    default_message = "conflict"


class ChatNotConfiguredError(DexpressError):
    status_code = 501
    default_message = "CHAT_NOT_CONFIGURED"


class UpstreamError(DexpressError):
    """A third-party service could not be reached."""

    status_code = 502
    default_message = "upstream_unavailable"


class InvalidTransitionError(RuntimeError):
    """Raised when a requested run status transition is not valid."""
