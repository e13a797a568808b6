"""Presentation-layer dependency injection (composition root).

The backend chosen at startup lives on app.state.firebase; routes depend on
the IdentityDirectory protocol only.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from firerest.application.dtos.identity import IdentityUser
from firerest.application.interfaces.stores import IdentityDirectory
from firerest.infrastructure.firebase.client import FirebaseBackend

_http_bearer = HTTPBearer(auto_error=False)


def get_firebase(request: Request) -> FirebaseBackend:
    """Backend selected by the lifespan (503 if startup has not run)."""
    backend = getattr(request.app.state, "firebase", None)
    if backend is None:
        raise HTTPException(status_code=503, detail="Firebase backend not initialized")
    return backend


def get_identity_directory(
    backend: Annotated[FirebaseBackend, Depends(get_firebase)],
) -> IdentityDirectory:
    return backend.identity


def get_session_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_http_bearer)],
) -> str:
    """Return the caller's bearer (ID) token; raise 401 if missing."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


async def get_current_user(
    token: Annotated[str, Depends(get_session_token)],
    identity: Annotated[IdentityDirectory, Depends(get_identity_directory)],
) -> IdentityUser:
    """Resolve the calling user from their session token (AuthenticationException -> 401)."""
    return await identity.lookup_by_session_token(token)
