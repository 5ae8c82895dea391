class DateeError(Exception):
    """Base class for errors raised by the matching backend."""

    status_code = 400

    def __init__(self, message: str, hint: str | None = None):
        self.message = message
        self.hint = hint
        super().__init__(message)


class ValidationError(DateeError):
    status_code = 400


class NotFoundError(DateeError):
    status_code = 404


class ConflictError(DateeError):
    status_code = 409


class MatchPassInProgress(ConflictError):
    def __init__(self) -> None:
        super().__init__("A matching pass is already running", hint="Retry once the current pass has finished")


class StorageError(DateeError):
    """Raised when the document store fails or does not answer in time."""

    status_code = 503
