"""Transport adapters for inbound and outbound SMTP."""

from .receiver import IntakeHandler, Receiver, parse_recipient
from .smtp_client import SmtpTransport

__all__ = ["IntakeHandler", "Receiver", "SmtpTransport", "parse_recipient"]
