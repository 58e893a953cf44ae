"""
Application Exceptions

Every failure a workflow can report carries its HTTP status code, so a
single boundary handler in main.py can turn it into a JSON response:

    APIError
    ├── ValidationError       400  malformed or out-of-range input
    ├── AuthenticationError   401  missing/invalid token, bad credentials
    ├── AuthorizationError    403  authenticated but not the owner
    ├── NotFoundError         404  unknown resource
    ├── ConflictError         409  duplicate unique field, lost update race
    └── InternalError         500  storage or IO failure

Messages are safe to show to clients. Anything else that escapes a route is
reported as a generic 500 and only logged server-side.
"""

from fastapi import status


class APIError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An internal error occurred."

    def __init__(
        self,
        message: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class ValidationError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request data"


class AuthenticationError(APIError):
    """
    Authentication failed.

    The message is deliberately generic: callers must not be able to tell
    an unknown email from a wrong password, or an expired token from a
    forged one.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Unauthorized request"


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(APIError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicting request"


class InternalError(APIError):
    pass
