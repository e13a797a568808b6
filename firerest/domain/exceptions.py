"""Domain exceptions for the firerest client.

Every failure the document store and identity directory clients surface is one
of these. The presentation layer maps them to HTTP responses in
firerest.core.exception_handlers; library callers catch them directly.
"""

from typing import Any


class FirerestException(Exception):
    """Base exception for all firerest errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. status_code, source).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable body (error, message, details)."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class CredentialUnavailableException(FirerestException):
    """Raised when no usable service-account material was supplied at startup.

    Operations fail with this before any network attempt.
    """

    def __init__(
        self,
        message: str = "Firebase service account credentials are not configured",
        source: str | None = None,
    ) -> None:
        details = {"source": source} if source else {}
        super().__init__(message, "CREDENTIAL_UNAVAILABLE", details)


class AuthenticationException(FirerestException):
    """Raised when the OAuth grant or a session token is rejected by the provider."""

    def __init__(self, message: str = "Authentication failed") -> None:
        """Initialize with optional message.

        Args:
            message: Description of the authentication failure.
        """
        super().__init__(message, "AUTHENTICATION_ERROR")


class TransportException(FirerestException):
    """Raised for any non-2xx response not handled by a more specific exception.

    The provider's own error text is preserved in provider_message.
    """

    def __init__(self, status_code: int, provider_message: str) -> None:
        """Initialize with HTTP status and provider text.

        Args:
            status_code: HTTP status returned by the remote service.
            provider_message: error.message from the response body, or raw text.
        """
        self.status_code = status_code
        self.provider_message = provider_message
        super().__init__(
            f"Firebase request failed ({status_code}): {provider_message}",
            "TRANSPORT_ERROR",
            {"status_code": status_code, "provider_message": provider_message},
        )


class CodecException(FirerestException):
    """Raised when a wire value has a bad tag set or a payload of the wrong shape."""

    def __init__(self, message: str, tags: list[str] | None = None) -> None:
        super().__init__(message, "CODEC_ERROR", {"tags": tags or []})


class DocumentExistsException(FirerestException):
    """Raised when creating a document whose ID already exists (HTTP 409)."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Document already exists: {path}",
            "DOCUMENT_EXISTS",
            {"path": path},
        )


class UserAlreadyExistsException(FirerestException):
    """Raised when creating or renaming a user to an email already registered."""

    def __init__(self, email: str | None = None) -> None:
        details = {"email": email} if email else {}
        super().__init__("Email is already registered", "USER_ALREADY_EXISTS", details)


class ValidationException(FirerestException):
    """Raised when the provider rejects input (e.g. weak password, invalid email)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)
