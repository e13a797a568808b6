"""Identity API schemas."""

from pydantic import BaseModel, ConfigDict


class IdentityUserResponse(BaseModel):
    """Identity directory user (no password)."""

    model_config = ConfigDict(from_attributes=True)

    local_id: str
    email: str | None = None
    display_name: str | None = None
    created_at_utc: str | None = None
    disabled: bool = False
