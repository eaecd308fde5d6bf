"""Domain errors raised by the store, auth and catalog layers.

HTTP controllers translate these into status codes in `main`; nothing
below the controller layer raises `HTTPException` directly.
"""


class SavedContentError(Exception):
    """Base class for recoverable, per-operation failures."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SavedContentError):
    """Bad or missing input (empty title, unknown kind, ...)."""
    status_code = 400


class DuplicateError(SavedContentError):
    """The item conflicts with something already saved."""
    status_code = 400


class NotFoundError(SavedContentError):
    """Missing user or record."""
    status_code = 404


class PersistenceError(SavedContentError):
    """The storage backend failed to read or write."""
    status_code = 500
