"""DTOs for service-account credentials and cached access tokens."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ServiceAccountCredential:
    """Service-account identity resolved once at startup. Never mutated."""

    project_id: str
    client_email: str
    private_key: str
    storage_bucket: str | None = None
    private_key_id: str | None = None
    token_uri: str = "https://oauth2.googleapis.com/token"

    @property
    def bucket(self) -> str:
        """Storage bucket override, else the project's default bucket."""
        return self.storage_bucket or f"{self.project_id}.appspot.com"

    def to_service_account_info(self) -> dict[str, str]:
        """Return the dict shape google-auth and firebase-admin accept."""
        info = {
            "type": "service_account",
            "project_id": self.project_id,
            "client_email": self.client_email,
            "private_key": self.private_key,
            "token_uri": self.token_uri,
        }
        if self.private_key_id:
            info["private_key_id"] = self.private_key_id
        return info

    def __repr__(self) -> str:
        return (
            f"ServiceAccountCredential(project_id={self.project_id!r}, "
            f"client_email={self.client_email!r}, private_key='***')"
        )


@dataclass(frozen=True)
class CachedAccessToken:
    """Bearer token and its expiry (epoch milliseconds). Replaced, never mutated."""

    token: str
    expires_at_epoch_millis: int

    def is_fresh(self, now_millis: int, skew_millis: int) -> bool:
        return now_millis + skew_millis < self.expires_at_epoch_millis
