"""Protocol interfaces for the collaborators injected into the pipeline."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Mapping
from pathlib import Path
from typing import Any, Protocol

from .models import OutgoingMessage, ParsedMessage, ResolvedDestination, SendReceipt


class AddressResolverProtocol(Protocol):
    """Turns an alias into a destination mailbox."""

    async def resolve(self, alias_id: str) -> ResolvedDestination:
        """Return the destination or raise :class:`ResolutionError`."""
        raise NotImplementedError


class MessageLoaderProtocol(Protocol):
    """Parses a staged message body."""

    async def load(self, stream: AsyncIterable[bytes]) -> ParsedMessage | None:
        """Return parsed fields, or ``None`` when the message is unparseable."""
        raise NotImplementedError


class StagingStoreProtocol(Protocol):
    """Durable home of staged messages and their error markers."""

    def read_stream(self, path: Path) -> AsyncIterator[bytes]:
        """Yield the staged body lazily."""
        raise NotImplementedError

    async def mark_error(self, path: Path, metadata: Mapping[str, Any]) -> Path:
        """Write an error marker next to ``path``."""
        raise NotImplementedError

    async def remove(self, path: Path) -> None:
        """Delete the staged body."""
        raise NotImplementedError


class AutoAccepterProtocol(Protocol):
    """Completes a registration workflow from its confirmation email."""

    async def accept(self, html: str) -> str:
        """Follow the confirmation link in ``html`` and return its URL."""
        raise NotImplementedError


class MailTransportProtocol(Protocol):
    """Outbound relay used for forwarding."""

    async def send(self, message: OutgoingMessage) -> SendReceipt:
        """Deliver ``message`` or raise :class:`TransportError`."""
        raise NotImplementedError


__all__ = [
    "AddressResolverProtocol",
    "AutoAccepterProtocol",
    "MailTransportProtocol",
    "MessageLoaderProtocol",
    "StagingStoreProtocol",
]
