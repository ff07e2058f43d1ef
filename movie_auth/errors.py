from fastapi import status


class AuthAppError(Exception):
    """Base for errors that are rendered to the client as a JSON envelope."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AuthAppError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AuthAppError):
    status_code = status.HTTP_409_CONFLICT


class AuthenticationError(AuthAppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotAuthenticated(AuthAppError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class StorageUnavailable(AuthAppError):
    """
    Infrastructure fault. The detail is for server logs only; clients get
    the generic message.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "Server error. Please try again later."

    def __init__(self, detail: str = "", message: str = public_message):
        super().__init__(message)
        self.detail = detail
