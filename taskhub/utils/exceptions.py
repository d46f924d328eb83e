"""Custom exceptions for the TaskHub core"""

from typing import Optional


class TaskHubError(Exception):
    """Base exception for TaskHub"""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(TaskHubError):
    """Bad input shape or a broken invariant"""

    status_code = 400


class DuplicateEmailError(ValidationError):
    """Email is already registered"""

    def __init__(self, message: str = "User with this email already exists"):
        super().__init__(message)


class AuthenticationError(TaskHubError):
    """Missing, invalid or expired credentials"""

    status_code = 401


class TokenError(AuthenticationError):
    """Token could not be verified"""

    reason = "invalid"


class TokenExpiredError(TokenError):
    """Token signature is valid but it is past its expiry"""

    reason = "expired"


class TokenMalformedError(TokenError):
    """Token is garbage, signed with another secret, or lacks a subject"""

    reason = "malformed"


class AuthorizationError(TaskHubError):
    """Authenticated but not allowed"""

    status_code = 403


class NotFoundError(TaskHubError):
    """Entity id does not resolve"""

    status_code = 404


class ConfigError(TaskHubError):
    """Configuration error, fatal at startup"""
    pass


class StorageError(TaskHubError):
    """Unexpected storage or serialization failure"""

    status_code = 500
