"""Auth API: resolve the caller from their session token."""

from typing import Annotated

from fastapi import APIRouter, Depends

from firerest.api.v1.dependencies import get_current_user
from firerest.application.dtos.identity import IdentityUser
from firerest.schemas.identity import IdentityUserResponse

router = APIRouter()


@router.get("/me", response_model=IdentityUserResponse)
async def get_me(
    current_user: Annotated[IdentityUser, Depends(get_current_user)],
) -> IdentityUserResponse:
    """Return the identity behind the Authorization bearer token."""
    return IdentityUserResponse.model_validate(current_user)
