"""Health check API schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health (liveness)."""

    status: str = Field(default="ok", description="Service status")
    firebase_backend: str = Field(..., description="native, rest or unconfigured")
    project_id: str | None = Field(default=None, description="Firebase project id")
