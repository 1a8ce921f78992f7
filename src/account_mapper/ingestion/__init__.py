"""Ingestion of staged messages."""

from .loader import MessageLoader

__all__ = ["MessageLoader"]
