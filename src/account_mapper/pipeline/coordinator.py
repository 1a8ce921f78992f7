"""Per-message lifecycle from intake to disposition.

Every received message gets its own task: resolve the alias, parse the
staged body, classify it, then either auto-accept or forward. Failures are
turned into one of three on-disk states instead of exceptions: the staged
body is removed (forwarded), left in place (transport failure, auto-accept),
or left in place next to a ``.error`` marker (quarantine).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from ..core.errors import (
    AutoAcceptError,
    ResolutionError,
    StagingError,
    TransportError,
)
from ..core.interfaces import (
    AddressResolverProtocol,
    AutoAccepterProtocol,
    MailTransportProtocol,
    MessageLoaderProtocol,
    StagingStoreProtocol,
)
from ..core.models import (
    Disposition,
    DispositionKind,
    InboundEnvelope,
    OutgoingMessage,
    ParsedMessage,
    PipelineOutcome,
)
from .classifier import decide

LOGGER = logging.getLogger(__name__)


class PipelineCoordinator:
    """Drives staged messages to a terminal state."""

    def __init__(
        self,
        *,
        resolver: AddressResolverProtocol,
        loader: MessageLoaderProtocol,
        store: StagingStoreProtocol,
        auto_accepter: AutoAccepterProtocol,
        transport: MailTransportProtocol,
    ) -> None:
        self._resolver = resolver
        self._loader = loader
        self._store = store
        self._auto_accepter = auto_accepter
        self._transport = transport
        self._tasks: set[asyncio.Task[PipelineOutcome]] = set()

    @property
    def in_flight(self) -> int:
        """Number of pipelines that have not finished yet."""
        return len(self._tasks)

    def handle_intake(
        self,
        envelope: InboundEnvelope,
        staged_path: Path,
        ack: Callable[[], None] | None = None,
    ) -> asyncio.Task[PipelineOutcome]:
        """Acknowledge a received message and process it in the background.

        Must be called from a running event loop. The returned task is
        tracked internally; callers do not need to await it.
        """
        if ack is not None:
            ack()
        LOGGER.info("%s: Received email", envelope.raw_address)
        task = asyncio.get_running_loop().create_task(
            self.process(envelope, staged_path),
            name=f"pipeline:{staged_path.name}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._task_finished)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight pipeline to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def process(
        self, envelope: InboundEnvelope, staged_path: Path
    ) -> PipelineOutcome:
        """Run the full lifecycle for one staged message."""
        address = envelope.raw_address
        try:
            destination = await self._resolver.resolve(envelope.alias_id)
        except ResolutionError as exc:
            LOGGER.error("%s: %s", address, exc)
            await self._quarantine(envelope, staged_path, "resolve", str(exc))
            return PipelineOutcome.UNRESOLVED
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error(
                "%s: Unexpected error resolving alias: %s", address, exc, exc_info=True
            )
            await self._quarantine(envelope, staged_path, "resolve", repr(exc))
            return PipelineOutcome.UNRESOLVED

        forward_address = destination.forward_address
        LOGGER.info("%s: Successfully mapped address to %s", address, forward_address)

        try:
            message = await self._loader.load(self._store.read_stream(staged_path))
        except StagingError as exc:
            LOGGER.error("%s: Cannot read staged message: %s", address, exc)
            return PipelineOutcome.STAGING_FAILED
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error(
                "%s: Unexpected error parsing message: %s", address, exc, exc_info=True
            )
            await self._quarantine(envelope, staged_path, "parse", repr(exc))
            return PipelineOutcome.INVALID

        disposition = decide(message, forward_address)
        if disposition.kind is DispositionKind.INVALID:
            reason = _invalid_reason(message)
            LOGGER.error("%s: Invalid SMTP message (%s)", address, reason)
            await self._quarantine(envelope, staged_path, "parse", reason)
            return PipelineOutcome.INVALID

        if disposition.kind is DispositionKind.AUTO_ACCEPT:
            return await self._auto_accept(envelope, disposition)
        return await self._forward(envelope, staged_path, disposition)

    async def _auto_accept(
        self, envelope: InboundEnvelope, disposition: Disposition
    ) -> PipelineOutcome:
        # The staged registration email is kept on disk in this branch.
        address = envelope.raw_address
        LOGGER.info(
            "%s: Auto accepting registration for %s",
            address,
            disposition.forward_address,
        )
        try:
            url = await self._auto_accepter.accept(disposition.confirmation_html or "")
        except AutoAcceptError as exc:
            LOGGER.error("%s: Failed to auto accept: %s", address, exc)
            return PipelineOutcome.AUTO_ACCEPT_FAILED
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("%s: Failed to auto accept: %s", address, exc, exc_info=True)
            return PipelineOutcome.AUTO_ACCEPT_FAILED
        LOGGER.info("%s: Called %s", address, url)
        return PipelineOutcome.AUTO_ACCEPTED

    async def _forward(
        self,
        envelope: InboundEnvelope,
        staged_path: Path,
        disposition: Disposition,
    ) -> PipelineOutcome:
        address = envelope.raw_address
        outgoing = _build_outgoing(disposition)
        LOGGER.info("%s: Forwarding email to address %s", address, outgoing.to)
        try:
            receipt = await self._transport.send(outgoing)
        except TransportError as exc:
            LOGGER.error(
                "%s: Error sending email for %s: %s", address, outgoing.to, exc
            )
            return PipelineOutcome.FORWARD_FAILED
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error(
                "%s: Unexpected error sending email for %s: %s",
                address,
                outgoing.to,
                exc,
                exc_info=True,
            )
            return PipelineOutcome.FORWARD_FAILED

        LOGGER.info(
            "%s: Email for %s sent with messageId %s",
            address,
            outgoing.to,
            receipt.message_id,
        )
        try:
            await self._store.remove(staged_path)
        except StagingError as exc:
            LOGGER.error("%s: Forwarded but cannot clean up: %s", address, exc)
        return PipelineOutcome.FORWARDED

    async def _quarantine(
        self,
        envelope: InboundEnvelope,
        staged_path: Path,
        stage: str,
        reason: str,
    ) -> None:
        metadata = {**envelope.to_dict(), "stage": stage, "reason": reason}
        try:
            marker = await self._store.mark_error(staged_path, metadata)
        except StagingError as exc:
            LOGGER.error("%s: Cannot quarantine message: %s", envelope.raw_address, exc)
            return
        LOGGER.info("%s: Quarantined as %s", envelope.raw_address, marker)

    def _task_finished(self, task: asyncio.Task[PipelineOutcome]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            LOGGER.warning("Pipeline %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error(
                "Pipeline %s failed unexpectedly: %s",
                task.get_name(),
                exc,
                exc_info=exc,
            )
            return
        LOGGER.debug("Pipeline %s finished: %s", task.get_name(), task.result().value)


def _build_outgoing(disposition: Disposition) -> OutgoingMessage:
    message = disposition.message
    if message is None or disposition.forward_address is None:
        raise ValueError("Forward disposition lacks a message or destination")
    return OutgoingMessage(
        to=disposition.forward_address,
        sender=message.sender or "",
        subject=message.subject or "",
        text=message.text or "",
        html=message.html or "",
    )


def _invalid_reason(message: ParsedMessage | None) -> str:
    if message is None:
        return "message could not be parsed"
    return "missing " + ", ".join(message.missing_fields)


__all__ = ["PipelineCoordinator"]
