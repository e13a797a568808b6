"""Service-account credential resolution.

Each resolver reads one configuration source and returns a
ServiceAccountCredential, or None when that source is not configured.
resolve_service_account() tries them in order and returns the first hit.
A source that is configured but malformed raises
CredentialUnavailableException naming the source.

Precedence:
    1. FIREBASE_SERVICE_ACCOUNT_KEY (JSON string, or base64 of it)
    2. FIREBASE_SERVICE_ACCOUNT_BASE64
    3. FIREBASE_SERVICE_ACCOUNT_PATH, else GOOGLE_APPLICATION_CREDENTIALS
    4. FIREBASE_ADMIN_PROJECT_ID + FIREBASE_ADMIN_CLIENT_EMAIL +
       FIREBASE_ADMIN_PRIVATE_KEY (or FIREBASE_ADMIN_PRIVATE_KEY_BASE64)
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from firerest.application.dtos.credential import ServiceAccountCredential
from firerest.core.config import Settings
from firerest.domain.exceptions import CredentialUnavailableException

logger = logging.getLogger(__name__)

CredentialResolver = Callable[[Settings], "ServiceAccountCredential | None"]


def _secret(value) -> str | None:
    if value is None:
        return None
    raw = value.get_secret_value().strip()
    return raw or None


def _restore_newlines(private_key: str) -> str:
    return private_key.replace("\\n", "\n")


def _b64_text(raw: str, source: str) -> str:
    try:
        return base64.b64decode(raw, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise CredentialUnavailableException(f"{source} is not valid base64", source) from e


def _parse_json(raw: str, source: str) -> dict[str, Any]:
    try:
        info = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CredentialUnavailableException(f"{source} is not valid JSON", source) from e
    if not isinstance(info, dict):
        raise CredentialUnavailableException(f"{source} must be a JSON object", source)
    return info


def credential_from_info(
    info: dict[str, Any], source: str, storage_bucket: str | None = None
) -> ServiceAccountCredential:
    """Build a credential from a service-account JSON dict; validate required keys."""
    missing = [k for k in ("project_id", "client_email", "private_key") if not info.get(k)]
    if missing:
        raise CredentialUnavailableException(
            f"{source} is missing required keys: {', '.join(missing)}", source
        )
    kwargs: dict[str, Any] = {}
    if info.get("token_uri"):
        kwargs["token_uri"] = info["token_uri"]
    return ServiceAccountCredential(
        project_id=info["project_id"],
        client_email=info["client_email"],
        private_key=_restore_newlines(info["private_key"]),
        storage_bucket=storage_bucket or info.get("storage_bucket"),
        private_key_id=info.get("private_key_id"),
        **kwargs,
    )


def from_json_env(settings: Settings) -> ServiceAccountCredential | None:
    """FIREBASE_SERVICE_ACCOUNT_KEY: plain JSON, or base64-encoded JSON."""
    source = "FIREBASE_SERVICE_ACCOUNT_KEY"
    raw = _secret(settings.firebase_service_account_key)
    if not raw:
        return None
    if not raw.startswith("{"):
        raw = _b64_text(raw, source)
    return credential_from_info(_parse_json(raw, source), source, settings.firebase_storage_bucket)


def from_base64_env(settings: Settings) -> ServiceAccountCredential | None:
    """FIREBASE_SERVICE_ACCOUNT_BASE64: base64-encoded JSON."""
    source = "FIREBASE_SERVICE_ACCOUNT_BASE64"
    raw = _secret(settings.firebase_service_account_base64)
    if not raw:
        return None
    info = _parse_json(_b64_text(raw, source), source)
    return credential_from_info(info, source, settings.firebase_storage_bucket)


def from_file_path(settings: Settings) -> ServiceAccountCredential | None:
    """FIREBASE_SERVICE_ACCOUNT_PATH, else GOOGLE_APPLICATION_CREDENTIALS."""
    if settings.firebase_service_account_path:
        source, path = "FIREBASE_SERVICE_ACCOUNT_PATH", settings.firebase_service_account_path
    elif settings.google_application_credentials:
        source, path = "GOOGLE_APPLICATION_CREDENTIALS", settings.google_application_credentials
    else:
        return None
    resolved = Path(path).expanduser().resolve()
    if not resolved.is_file():
        logger.warning("%s set but file not found: %s (resolved: %s)", source, path, resolved)
        raise CredentialUnavailableException(f"{source} file not found: {path}", source)
    with open(resolved, encoding="utf-8") as f:
        raw = f.read()
    return credential_from_info(_parse_json(raw, source), source, settings.firebase_storage_bucket)


def from_individual_fields(settings: Settings) -> ServiceAccountCredential | None:
    """FIREBASE_ADMIN_* variables; the private key may be \\n-escaped or base64."""
    private_key = _secret(settings.firebase_admin_private_key)
    if private_key is None:
        encoded = _secret(settings.firebase_admin_private_key_base64)
        if encoded:
            private_key = _b64_text(encoded, "FIREBASE_ADMIN_PRIVATE_KEY_BASE64")
    project_id = settings.project_id
    client_email = settings.firebase_admin_client_email
    if not (project_id and client_email and private_key):
        return None
    return ServiceAccountCredential(
        project_id=project_id,
        client_email=client_email,
        private_key=_restore_newlines(private_key),
        storage_bucket=settings.firebase_storage_bucket,
    )


DEFAULT_RESOLVERS: tuple[CredentialResolver, ...] = (
    from_json_env,
    from_base64_env,
    from_file_path,
    from_individual_fields,
)


def resolve_service_account(
    settings: Settings,
    resolvers: Sequence[CredentialResolver] = DEFAULT_RESOLVERS,
) -> ServiceAccountCredential | None:
    """Return the credential from the first resolver that finds one, else None."""
    for resolver in resolvers:
        credential = resolver(settings)
        if credential is not None:
            logger.info(
                "Firebase service account resolved via %s (project %s)",
                resolver.__name__,
                credential.project_id,
            )
            return credential
    return None
