"""Domain layer: exceptions shared by every firerest component.

No dependencies on infrastructure or presentation.
"""

from firerest.domain.exceptions import (
    AuthenticationException,
    CodecException,
    CredentialUnavailableException,
    DocumentExistsException,
    FirerestException,
    TransportException,
    UserAlreadyExistsException,
    ValidationException,
)

__all__ = [
    "AuthenticationException",
    "CodecException",
    "CredentialUnavailableException",
    "DocumentExistsException",
    "FirerestException",
    "TransportException",
    "UserAlreadyExistsException",
    "ValidationException",
]
