"""Async client for the add-on vendor app-info API."""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import quote, urljoin

import httpx

from ..core.config import DirectorySettings
from ..core.errors import AliasNotFoundError, DirectoryUnavailableError

LOGGER = logging.getLogger(__name__)

_NOT_FOUND_STATUSES = frozenset({401, 403, 404})


class DirectoryClient:
    """Looks up the owner of an add-on installation by its UUID."""

    def __init__(
        self,
        settings: DirectorySettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._auth: httpx.BasicAuth | None = None
        if settings.id and settings.password:
            self._auth = httpx.BasicAuth(settings.id, settings.password)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=settings.timeout_seconds,
            headers={"Accept": "application/json"},
        )

    async def fetch_owner_email(self, alias_id: str) -> str:
        """Return the owner email of the installation identified by ``alias_id``.

        Raises:
            AliasNotFoundError: The directory does not know the alias or
                refuses to tell us about it.
            DirectoryUnavailableError: The lookup kept failing for transient
                reasons.
        """
        endpoint = _resolve_endpoint(self._settings.base_url, alias_id)
        attempts = self._settings.max_attempts
        last_error: Exception | None = None
        response: httpx.Response | None = None
        for attempt in range(1, attempts + 1):
            try:
                response = await self._request(endpoint)
            except httpx.HTTPError as exc:
                last_error = exc
                LOGGER.warning(
                    "Directory lookup for %s failed (attempt %d/%d): %s",
                    alias_id,
                    attempt,
                    attempts,
                    exc,
                )
            else:
                if response.status_code in _NOT_FOUND_STATUSES:
                    raise AliasNotFoundError(
                        alias_id, f"directory answered {response.status_code}"
                    )
                if response.status_code < 500:
                    break
                last_error = httpx.HTTPStatusError(
                    f"directory answered {response.status_code}",
                    request=response.request,
                    response=response,
                )
                LOGGER.warning(
                    "Directory returned %d for %s (attempt %d/%d)",
                    response.status_code,
                    alias_id,
                    attempt,
                    attempts,
                )
            response = None
            if attempt < attempts:
                await asyncio.sleep(min(2**attempt, 8))

        if response is None:
            raise DirectoryUnavailableError(
                alias_id, f"lookup failed after {attempts} attempt(s): {last_error}"
            ) from last_error
        if response.is_error:
            raise DirectoryUnavailableError(
                alias_id, f"directory answered {response.status_code}"
            )
        return _owner_email(alias_id, response)

    async def _request(self, endpoint: str) -> httpx.Response:
        if self._auth is None:
            return await self._client.get(endpoint)
        return await self._client.get(endpoint, auth=self._auth)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()


def _owner_email(alias_id: str, response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError as exc:
        # JSONDecodeError, or UnicodeDecodeError for non-UTF body encodings
        raise DirectoryUnavailableError(
            alias_id, "directory returned invalid JSON"
        ) from exc
    owner = data.get("owner_email") if isinstance(data, dict) else None
    if not isinstance(owner, str) or not owner.strip():
        raise AliasNotFoundError(alias_id, "directory entry has no owner email")
    return owner.strip()


def _resolve_endpoint(base_url: str, alias_id: str) -> str:
    trimmed = base_url.rstrip("/") + "/"
    return urljoin(trimmed, f"vendor/apps/{quote(alias_id, safe='')}")


__all__ = ["DirectoryClient"]
