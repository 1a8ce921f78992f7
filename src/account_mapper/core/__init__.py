"""Core utilities for configuration, logging, and shared domain types."""

from .config import AppSettings, load_app_settings
from .errors import (
    AccountMapperError,
    AliasNotFoundError,
    AutoAcceptError,
    DirectoryUnavailableError,
    ResolutionError,
    StagingError,
    StartupError,
    TransportError,
)
from .logging import configure_logging

__all__ = [
    "AccountMapperError",
    "AliasNotFoundError",
    "AppSettings",
    "AutoAcceptError",
    "DirectoryUnavailableError",
    "ResolutionError",
    "StagingError",
    "StartupError",
    "TransportError",
    "configure_logging",
    "load_app_settings",
]
