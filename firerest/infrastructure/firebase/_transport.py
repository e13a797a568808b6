"""HTTP request executor shared by the Firestore and Identity Toolkit clients.

All calls use httpx.AsyncClient so they do not block the event loop. Any
non-2xx response becomes a TransportException carrying the provider's own
error text; callers decide which statuses (e.g. 404) mean something else.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from firerest.domain.exceptions import TransportException

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def _parse_ndjson(text: str) -> list[Any]:
    """Parse newline-delimited JSON, dropping lines that are not valid JSON."""
    entries: list[Any] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return entries


def parse_body(resp: httpx.Response) -> Any:
    """Return parsed JSON, an NDJSON list, or raw bytes for non-JSON content.

    Empty bodies (e.g. DELETE) return {}.
    """
    raw = resp.content
    if not raw:
        return {}
    content_type = resp.headers.get("content-type", "")
    if content_type and "json" not in content_type and not content_type.startswith("text/"):
        return raw
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return _parse_ndjson(text)


def provider_message(resp: httpx.Response) -> str:
    """Extract error.message from a Google API error body, else the raw text."""
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return data.get("error_description") or error
    text = resp.text.strip()
    return text or resp.reason_phrase or f"HTTP {resp.status_code}"


class RestTransport:
    """Authenticated JSON-over-HTTPS requests with typed failures."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    async def aclose(self) -> None:
        """Close the HTTP client only if we created it (do not close injected client)."""
        if self._owns_http:
            await self._http.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        token: str | None,
        body: Any = None,
        params: list[tuple[str, str]] | dict[str, str] | None = None,
    ) -> Any:
        """Send one request and return the parsed response body.

        Raises:
            TransportException: Response status was not 2xx.
        """
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        logger.debug("Firebase request %s %s", method, url)
        resp = await self._http.request(method, url, headers=headers, json=body, params=params)
        if not resp.is_success:
            message = provider_message(resp)
            logger.warning(
                "Firebase request %s %s failed (%s): %s", method, url, resp.status_code, message
            )
            raise TransportException(resp.status_code, message)
        return parse_body(resp)
