"""Firestore and Identity Toolkit integration (REST clients and firebase-admin adapter)."""

from firerest.infrastructure.firebase._identity_client import IdentityToolkitClient
from firerest.infrastructure.firebase._rest_client import FirestoreRESTClient
from firerest.infrastructure.firebase.client import (
    BackendMode,
    FirebaseBackend,
    select_backend,
)
from firerest.infrastructure.firebase.credentials import resolve_service_account
from firerest.infrastructure.firebase.token_manager import CredentialManager

__all__ = [
    "BackendMode",
    "CredentialManager",
    "FirebaseBackend",
    "FirestoreRESTClient",
    "IdentityToolkitClient",
    "resolve_service_account",
    "select_backend",
]
