"""Alias resolution against the add-on vendor directory."""

from .client import DirectoryClient
from .resolver import AddressResolver

__all__ = ["AddressResolver", "DirectoryClient"]
