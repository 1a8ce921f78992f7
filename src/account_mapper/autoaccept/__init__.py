"""Automatic completion of registration confirmations."""

from .accepter import AutoAccepter
from .scraper import extract_confirmation_url

__all__ = ["AutoAccepter", "extract_confirmation_url"]
