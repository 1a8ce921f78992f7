"""Follow registration confirmation links on the account owner's behalf."""

from __future__ import annotations

import logging

import httpx

from ..core.config import AutoAcceptSettings
from ..core.errors import AutoAcceptError
from .scraper import extract_confirmation_url

LOGGER = logging.getLogger(__name__)


class AutoAccepter:
    """Calls the confirmation URL found in a registration email."""

    def __init__(
        self,
        settings: AutoAcceptSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=settings.timeout_seconds, follow_redirects=True
        )

    async def accept(self, html: str) -> str:
        """Confirm the registration described by ``html`` and return the URL called."""
        url = extract_confirmation_url(html)
        if url is None:
            raise AutoAcceptError("No confirmation link found in message")
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AutoAcceptError(
                f"Confirmation request to {url} answered {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AutoAcceptError(f"Confirmation request to {url} failed: {exc}") from exc
        LOGGER.debug("Confirmation request to %s answered %d", url, response.status_code)
        return url

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()


__all__ = ["AutoAccepter"]
