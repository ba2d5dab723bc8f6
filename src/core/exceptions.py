"""Custom exception classes for the VoiceIt backend.

This module defines application-specific exceptions following Google Python
Style Guide. Each exception carries the HTTP status code the API layer
translates it to.
"""

from typing import Any, Dict, List, Optional, Sequence


class VoiceItError(Exception):
    """Base exception for all VoiceIt errors."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)


class ValidationError(VoiceItError):
    """Raised when request data fails validation."""

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[List[Dict[str, str]]] = None,
    ):
        """Initialize the exception.

        Args:
            message: Summary message.
            errors: Field-level errors, each a dict with 'field' and 'message'.
        """
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(errors=[{"field": field, "message": message}])


class AuthenticationError(VoiceItError):
    """Raised when the caller's identity cannot be established."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class InvalidCredentialsError(AuthenticationError):
    """Raised when an email/password pair does not match.

    The message is the same for unknown emails and wrong passwords.
    """

    def __init__(self):
        super().__init__("Invalid email or password")


class InvalidTokenError(AuthenticationError):
    """Raised when a bearer token is malformed or its signature is invalid."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class ExpiredTokenError(AuthenticationError):
    """Raised when a bearer token has expired."""

    def __init__(self):
        super().__init__("Token expired")


class UserNotFoundError(AuthenticationError):
    """Raised when a token references a user that no longer exists."""

    def __init__(self, user_id: str):
        """Initialize the exception.

        Args:
            user_id: The ID of the user that was not found.
        """
        self.user_id = user_id
        super().__init__("Token is not valid - user not found")


class AuthorizationError(VoiceItError):
    """Raised when the caller lacks the role required for an operation."""

    status_code = 403

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message)


ForbiddenError = AuthorizationError


class NotFoundError(VoiceItError):
    """Raised when a requested resource does not exist."""

    status_code = 404


class IssueNotFoundError(NotFoundError):
    """Raised when a requested issue cannot be found."""

    def __init__(self, issue_id: int):
        """Initialize the exception.

        Args:
            issue_id: The ID of the issue that was not found.
        """
        self.issue_id = issue_id
        super().__init__("Issue not found")


class AccountNotFoundError(NotFoundError):
    """Raised when a user looked up by an admin does not exist."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User '{user_id}' not found")


class ConflictError(VoiceItError):
    """Raised when a write would violate a uniqueness rule."""

    status_code = 400


class DuplicateEmailError(ConflictError):
    """Raised when registering an email that is already taken."""

    def __init__(self, email: str):
        self.email = email
        super().__init__("User already exists with this email")


class ConfigurationError(VoiceItError):
    """Raised when there is a configuration error."""

    pass


class UploadError(VoiceItError):
    """Raised when the external asset host fails."""

    status_code = 500

    def __init__(self, message: str = "Error uploading images"):
        super().__init__(message)


# Location prefixes FastAPI adds in front of the field name
_REQUEST_LOCATIONS = ("body", "query", "path", "header", "form")


def format_validation_errors(errors: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into field-level error entries.

    Args:
        errors: Output of ``pydantic.ValidationError.errors()`` or
            ``RequestValidationError.errors()``.

    Returns:
        List of {"field": ..., "message": ...} dicts.
    """
    results = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in _REQUEST_LOCATIONS:
            loc = loc[1:]
        message = error.get("msg", "Invalid value")
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        results.append({"field": ".".join(loc) or "body", "message": message})
    return results
