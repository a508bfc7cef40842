from typing import Optional


class ClientError(Exception):
    """Base class of session client errors."""


class LoginFailed(ClientError):
    def __init__(self, message: str, status_code: int, retry_after: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        # seconds until the server accepts another attempt (429 only)
        self.retry_after = retry_after


class SessionExpired(ClientError):
    """The session is gone (refresh failed); the user has to log in again."""
