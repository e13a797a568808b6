"""DTOs for identity directory use cases (no dependency on the provider SDK)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class IdentityUser:
    """User read-model returned by the identity directory. No password."""

    local_id: str
    email: str | None = None
    display_name: str | None = None
    created_at_utc: str | None = None
    disabled: bool = False


@dataclass(frozen=True)
class UserCreate:
    email: str
    password: str
    display_name: str | None = None


@dataclass(frozen=True)
class UserUpdate:
    """Partial update; None fields are left untouched on the provider side."""

    local_id: str
    email: str | None = None
    password: str | None = None
    display_name: str | None = None
