"""SMTP transport used to forward messages to their resolved owners."""

from __future__ import annotations

import asyncio
import logging
from email.message import EmailMessage
from email.utils import make_msgid

import aiosmtplib

from ..core.config import MailerSettings
from ..core.errors import TransportError
from ..core.models import OutgoingMessage, SendReceipt

LOGGER = logging.getLogger(__name__)


class SmtpTransport:
    """Async SMTP transport relaying forwarded copies.

    A connection is opened per message; forwarding volume is low and the
    relay may drop idle sessions.

    Example:
        >>> transport = SmtpTransport(MailerSettings(host="smtp.example.com"))
        >>> receipt = asyncio.run(transport.send(message))
    """

    def __init__(self, settings: MailerSettings) -> None:
        """Initialize the transport with relay configuration.

        Args:
            settings: SMTP relay settings
        """
        if not settings.host:
            raise ValueError("SMTP host not configured")
        self._settings = settings

    async def send(self, message: OutgoingMessage) -> SendReceipt:
        """Send a forwarded message.

        Args:
            message: The message to relay

        Returns:
            Receipt carrying the generated Message-ID

        Raises:
            TransportError: If the relay rejects or fails to take the message
        """
        mime_message = self.build_mime_message(message)
        message_id = str(mime_message["Message-ID"])
        LOGGER.debug("Email headers: %s", dict(mime_message.items()))

        try:
            refused, response = await aiosmtplib.send(
                mime_message,
                hostname=self._settings.host,
                port=self._settings.port,
                username=self._settings.username,
                password=self._settings.password,
                use_tls=self._settings.use_tls,
                start_tls=self._settings.start_tls,
                timeout=self._settings.timeout_seconds,
            )
        except aiosmtplib.SMTPRecipientsRefused as exc:
            raise TransportError(f"All recipients refused: {exc}") from exc
        except aiosmtplib.SMTPSenderRefused as exc:
            raise TransportError(f"Sender refused: {exc}") from exc
        except aiosmtplib.SMTPDataError as exc:
            raise TransportError(f"SMTP data error: {exc}") from exc
        except aiosmtplib.SMTPException as exc:
            raise TransportError(f"Failed to send email: {exc}") from exc
        except (OSError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Network error: {exc}") from exc

        if refused:
            raise TransportError(f"Some recipients were refused: {refused}")

        LOGGER.debug("Relay accepted %s: %s", message_id, response)
        return SendReceipt(message_id=message_id)

    def build_mime_message(self, message: OutgoingMessage) -> EmailMessage:
        """Build the MIME message for ``message``.

        The text body is the primary part and the HTML body its alternative,
        both copied without modification.
        """
        mime_message = EmailMessage()
        mime_message["From"] = message.sender
        mime_message["To"] = message.to
        mime_message["Subject"] = message.subject
        mime_message["Message-ID"] = make_msgid()
        mime_message.set_content(message.text)
        mime_message.add_alternative(message.html, subtype="html")
        return mime_message


__all__ = ["SmtpTransport"]
