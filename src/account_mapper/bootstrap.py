"""Construction of the running service from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .autoaccept import AutoAccepter
from .core.config import AppSettings
from .core.errors import StagingError, StartupError
from .directory import AddressResolver, DirectoryClient
from .ingestion import MessageLoader
from .pipeline import PipelineCoordinator
from .staging import StagingStore
from .transport import IntakeHandler, Receiver, SmtpTransport

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Bridge:
    """Every long-lived component of the service, wired together."""

    store: StagingStore
    directory: DirectoryClient
    auto_accepter: AutoAccepter
    transport: SmtpTransport
    coordinator: PipelineCoordinator
    receiver: Receiver

    async def aclose(self) -> None:
        """Release HTTP clients once no pipeline needs them any more."""
        await self.directory.aclose()
        await self.auto_accepter.aclose()


def build_bridge(settings: AppSettings) -> Bridge:
    """Instantiate collaborators and the coordinator; raise ``StartupError`` on failure."""
    try:
        store = StagingStore(settings.receiver.tmpdir)
        store.ensure_directory()
        transport = SmtpTransport(settings.mailer)
        directory = DirectoryClient(settings.directory)
        auto_accepter = AutoAccepter(settings.autoaccept)
    except (StagingError, ValueError) as exc:
        raise StartupError(f"Cannot initialise service: {exc}") from exc

    if not (settings.directory.id and settings.directory.password):
        LOGGER.warning("Directory credentials missing; every lookup will be refused")

    coordinator = PipelineCoordinator(
        resolver=AddressResolver(directory),
        loader=MessageLoader(),
        store=store,
        auto_accepter=auto_accepter,
        transport=transport,
    )
    handler = IntakeHandler(
        store, coordinator.handle_intake, domain=settings.receiver.domain
    )
    receiver = Receiver(settings.receiver, handler)
    return Bridge(
        store=store,
        directory=directory,
        auto_accepter=auto_accepter,
        transport=transport,
        coordinator=coordinator,
        receiver=receiver,
    )


__all__ = ["Bridge", "build_bridge"]
