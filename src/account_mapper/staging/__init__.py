"""Filesystem staging of received messages."""

from .store import ERROR_SUFFIX, StagingStore

__all__ = ["ERROR_SUFFIX", "StagingStore"]
