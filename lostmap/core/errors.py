class MapStateError(Exception):
    """Base for every recoverable failure surfaced to the user."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MapStateError):
    status_code = 400


class AuthRequiredError(MapStateError):
    status_code = 401

    def __init__(self, message: str = "You must be signed in to submit a report."):
        super().__init__(message)


class SignInError(MapStateError):
    status_code = 401


class PermissionDeniedError(MapStateError):
    status_code = 403

    def __init__(self, message: str = "You can only edit your own reports."):
        super().__init__(message)


class NotFoundError(MapStateError):
    status_code = 404


class CommitInProgressError(MapStateError):
    status_code = 409

    def __init__(self, message: str = "A report is already being saved."):
        super().__init__(message)


class UploadError(MapStateError):
    status_code = 502


class WriteError(MapStateError):
    status_code = 502


class TransportError(MapStateError):
    status_code = 502
