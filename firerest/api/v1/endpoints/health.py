"""Health check endpoint; reports which Firebase backend was selected at startup."""

from typing import Annotated

from fastapi import APIRouter, Depends

from firerest.api.v1.dependencies import get_firebase
from firerest.infrastructure.firebase.client import FirebaseBackend
from firerest.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check(
    backend: Annotated[FirebaseBackend, Depends(get_firebase)],
) -> HealthResponse:
    """Return ok status and the active backend mode."""
    return HealthResponse(firebase_backend=backend.mode.value, project_id=backend.project_id)
