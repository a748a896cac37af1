"""Domain errors raised by the practice services.

Controllers do not catch these individually; `main.py` registers one
exception handler that turns any `PracticeError` into a JSON response
carrying `status_code` and the error `kind`.
"""


class PracticeError(Exception):
    """Base class for errors surfaced to API callers unmodified."""
    status_code = 500
    kind = "practice_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(PracticeError):
    """The requested practice session does not exist."""
    status_code = 404
    kind = "not_found"


class ForbiddenError(PracticeError):
    """The session belongs to another user."""
    status_code = 403
    kind = "forbidden"


class ValidationError(PracticeError, ValueError):
    """The payload is well-formed but violates a record constraint."""
    status_code = 400
    kind = "validation_error"


class ConflictError(PracticeError):
    """The session is in a state that does not allow the mutation."""
    status_code = 409
    kind = "conflict"
