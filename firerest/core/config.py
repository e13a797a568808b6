"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Service-account material may come from several
environment variables; which one wins is decided by the resolver chain in
firerest.infrastructure.firebase.credentials, not here.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment and .env.

    Everything is optional: with no credentials at all the backend is
    selected as unconfigured and every operation fails fast.
    """

    # App
    app_name: str = "firerest"
    app_version: str = "1.0.0"
    debug: bool = False

    # Backend selection: "rest" (REST clients only) or "native" (firebase-admin,
    # falling back to REST when it cannot be constructed).
    firebase_backend: str = "rest"

    # Service account: full JSON (raw or base64), base64 JSON, or file path.
    firebase_service_account_key: SecretStr | None = None
    firebase_service_account_base64: SecretStr | None = None
    firebase_service_account_path: str | None = None
    google_application_credentials: str | None = None

    # Service account as individual fields. Private key may carry literal "\n".
    firebase_admin_project_id: str | None = None
    firebase_project_id: str | None = None
    firebase_admin_client_email: str | None = None
    firebase_admin_private_key: SecretStr | None = None
    firebase_admin_private_key_base64: SecretStr | None = None
    firebase_storage_bucket: str | None = None

    # Web API key. Lets session-token lookup run without a service account.
    firebase_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "firebase_api_key", "firebase_rest_api_key", "next_public_firebase_api_key"
        ),
    )

    # Emulators (host:port). When set, only a project id is required.
    firestore_emulator_host: str | None = None
    firebase_auth_emulator_host: str | None = None

    # Outbound HTTP
    firebase_request_timeout_seconds: float = 30.0
    firebase_query_page_size: int = 300
    firebase_list_users_page_size: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_backend(self) -> "Settings":
        """Validate backend name and page sizes."""
        if self.firebase_backend not in ("native", "rest"):
            raise ValueError(
                f"firebase_backend must be 'native' or 'rest', got: {self.firebase_backend!r}"
            )
        if self.firebase_query_page_size < 1:
            raise ValueError("FIREBASE_QUERY_PAGE_SIZE must be at least 1")
        if not 1 <= self.firebase_list_users_page_size <= 1000:
            raise ValueError("FIREBASE_LIST_USERS_PAGE_SIZE must be between 1 and 1000")
        return self

    @property
    def project_id(self) -> str | None:
        """Project id from the admin variable, else the public one."""
        return self.firebase_admin_project_id or self.firebase_project_id

    @property
    def emulator_mode(self) -> bool:
        return bool(self.firestore_emulator_host or self.firebase_auth_emulator_host)


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    In tests, call get_settings.cache_clear() before overriding env vars so
    the next get_settings() uses the new values.
    """
    return Settings()
