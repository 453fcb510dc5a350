"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is kept as an attribute so the API handlers can
    # put it into the JSON body without parsing str(exception).
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(DomainException):
    """Input failed validation.

    HTTP Status: 422
    """

    pass


class IdentifierDecodeError(ValidationError, ValueError):
    """A remote base-62 id could not be mapped to a local id.

    Raised for characters outside 0-9A-Za-z and for values wider than
    17 bytes once decoded.
    """

    def __init__(self, remote_id: str, reason: str) -> None:
        super().__init__(f"Cannot derive local id from {remote_id!r}: {reason}")
        self.remote_id = remote_id


class ConfigurationError(DomainException):
    """Required configuration is missing or invalid.

    HTTP Status: 503

    Example:
        raise ConfigurationError("No Spotify application credential registered")
    """

    pass


class AuthenticationError(DomainException):
    """Authentication with an external service failed.

    HTTP Status: 401
    """

    pass


class ExternalServiceError(DomainException):
    """An external service returned an error or could not be reached.

    HTTP Status: 502
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code
        self.error_code = error_code  # e.g. "invalid_grant" from the token endpoint


class TokenRefreshException(AuthenticationError):
    """The token endpoint rejected a grant and the user has to log in again.

    Hey future me - Spotify answers 400 {"error": "invalid_grant"} when a
    refresh token was revoked or an authorization code was already used.
    Catch this and send the user back through the authorize redirect.
    """

    def __init__(
        self,
        message: str = "Token refresh failed. Please re-authenticate with Spotify.",
        error_code: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.http_status = http_status

    @property
    def requires_reauth(self) -> bool:
        """Check if error requires user re-authentication."""
        return self.error_code == "invalid_grant" or self.http_status in (400, 401, 403)


__all__ = [
    "AuthenticationError",
    "TokenRefreshException",
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "IdentifierDecodeError",
    "ValidationError",
]
