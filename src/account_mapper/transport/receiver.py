"""SMTP listener that stages inbound mail and hands it to the pipeline."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from email.utils import parseaddr
from pathlib import Path
from typing import Any

from aiosmtpd.smtp import SMTP, Envelope, Session

from ..core.config import ReceiverSettings
from ..core.errors import StagingError, StartupError
from ..core.models import InboundEnvelope
from ..staging import StagingStore

LOGGER = logging.getLogger(__name__)

IntakeCallback = Callable[[InboundEnvelope, Path, Callable[[], None]], Any]


def parse_recipient(address: str, domain: str) -> InboundEnvelope | None:
    """Split ``address`` into an envelope when it belongs to ``domain``."""
    _, bare = parseaddr(address)
    local, sep, host = bare.rpartition("@")
    if not sep or not local:
        return None
    if host.lower() != domain.lower():
        return None
    return InboundEnvelope(alias_id=local, raw_address=bare)


def log_intake_error(exc: BaseException) -> None:
    """Shared sink for faults raised while handing a message over."""
    LOGGER.error("Intake handler failed: %s", exc, exc_info=exc)


class IntakeHandler:
    """aiosmtpd handler staging each message before acknowledging it."""

    def __init__(
        self,
        store: StagingStore,
        on_intake: IntakeCallback,
        *,
        domain: str,
    ) -> None:
        self._store = store
        self._on_intake = on_intake
        self._domain = domain

    async def handle_RCPT(  # pylint: disable=invalid-name
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
        address: str,
        rcpt_options: list[str],
    ) -> str:
        """Accept the first recipient at our domain; fan-out is not supported."""
        del server, session, rcpt_options
        if parse_recipient(address, self._domain) is None:
            return "550 5.1.1 Recipient address rejected"
        if envelope.rcpt_tos:
            return "452 4.5.3 Too many recipients"
        envelope.rcpt_tos.append(address)
        return "250 OK"

    async def handle_DATA(  # pylint: disable=invalid-name
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
    ) -> str:
        """Stage the message, notify the pipeline and acknowledge."""
        del server, session
        if not envelope.rcpt_tos:
            return "503 5.5.1 No valid recipients"
        inbound = parse_recipient(envelope.rcpt_tos[0], self._domain)
        if inbound is None:
            return "550 5.1.1 Recipient address rejected"

        content = envelope.original_content or envelope.content or b""
        if isinstance(content, str):
            content = content.encode("utf-8", errors="surrogateescape")
        try:
            path = await self._store.write(self._store.new_path(), content)
        except StagingError as exc:
            LOGGER.error("%s: Failed to stage message: %s", inbound.raw_address, exc)
            return "451 4.3.0 Unable to store message"

        acknowledged: list[bool] = []

        def ack() -> None:
            acknowledged.append(True)

        try:
            self._on_intake(inbound, path, ack)
        except Exception as exc:  # pylint: disable=broad-except
            log_intake_error(exc)

        if not acknowledged:
            LOGGER.warning(
                "%s: Intake handler did not acknowledge %s", inbound.raw_address, path
            )
        # The body is durable on disk either way.
        return "250 Message accepted for delivery"


class Receiver:
    """Serves the intake handler on the running event loop."""

    def __init__(self, settings: ReceiverSettings, handler: IntakeHandler) -> None:
        self._settings = settings
        self._handler = handler
        self._server: asyncio.AbstractServer | None = None

    @property
    def sockets(self) -> tuple[Any, ...]:
        """Sockets the listener is bound to."""
        if self._server is None:
            return ()
        return tuple(self._server.sockets)

    async def start(self) -> None:
        """Bind the listener; failures are fatal to the process."""
        loop = asyncio.get_running_loop()
        try:
            self._server = await loop.create_server(
                lambda: SMTP(self._handler, hostname=self._settings.domain),
                host=self._settings.host,
                port=self._settings.port,
            )
        except OSError as exc:
            raise StartupError(
                f"Cannot listen on {self._settings.host}:{self._settings.port}: {exc}"
            ) from exc
        LOGGER.info(
            "Receiving mail for @%s on %s:%d",
            self._settings.domain,
            self._settings.host,
            self._settings.port,
        )

    async def stop(self) -> None:
        """Stop accepting connections."""
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None


__all__ = [
    "IntakeCallback",
    "IntakeHandler",
    "Receiver",
    "log_intake_error",
    "parse_recipient",
]
