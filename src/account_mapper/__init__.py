"""Mail-relay bridge mapping per-account aliases to real mailboxes."""

__version__ = "0.1.0"
