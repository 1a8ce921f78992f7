"""Exception hierarchy shared by the intake pipeline and its collaborators."""

from __future__ import annotations

from pathlib import Path


class AccountMapperError(RuntimeError):
    """Base class for all errors raised by the bridge."""


class StartupError(AccountMapperError):
    """Raised when the service cannot be brought up; fatal to the process."""


class ResolutionError(AccountMapperError):
    """Raised when an alias cannot be resolved to a destination mailbox."""

    def __init__(self, alias_id: str, reason: str) -> None:
        super().__init__(f"Unable to resolve alias {alias_id!r}: {reason}")
        self.alias_id = alias_id
        self.reason = reason


class AliasNotFoundError(ResolutionError):
    """The directory does not know the alias or refuses to disclose it."""


class DirectoryUnavailableError(ResolutionError):
    """The directory could not be reached or answered with garbage."""


class AutoAcceptError(AccountMapperError):
    """Raised when a registration confirmation cannot be completed."""


class TransportError(AccountMapperError):
    """Raised when forwarding a message through the outbound relay fails."""


class StagingError(AccountMapperError):
    """Raised when a staged message cannot be read or written on disk."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


__all__ = [
    "AccountMapperError",
    "AliasNotFoundError",
    "AutoAcceptError",
    "DirectoryUnavailableError",
    "ResolutionError",
    "StagingError",
    "StartupError",
    "TransportError",
]
