"""Adapter turning directory lookups into pipeline destinations."""

from __future__ import annotations

import logging
from typing import Protocol

from ..core.errors import AliasNotFoundError
from ..core.models import ResolvedDestination

LOGGER = logging.getLogger(__name__)


class OwnerLookup(Protocol):
    """Minimal protocol implemented by directory clients."""

    async def fetch_owner_email(self, alias_id: str) -> str:
        """Return the mailbox owning ``alias_id``."""
        raise NotImplementedError


class AddressResolver:
    """Resolve aliases, either definitively or not at all."""

    def __init__(self, directory: OwnerLookup) -> None:
        self._directory = directory

    async def resolve(self, alias_id: str) -> ResolvedDestination:
        """Return the destination for ``alias_id`` or raise ``ResolutionError``."""
        if not alias_id or not alias_id.strip():
            raise AliasNotFoundError(alias_id, "empty alias")
        forward_address = await self._directory.fetch_owner_email(alias_id)
        LOGGER.debug("Alias %s resolved to %s", alias_id, forward_address)
        return ResolvedDestination(forward_address=forward_address)


__all__ = ["AddressResolver", "OwnerLookup"]
