"""Parse staged RFC822 messages into the fields the pipeline acts on."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Iterable
from email import policy
from email.message import EmailMessage
from email.parser import BytesFeedParser

from ..core.models import ParsedMessage

LOGGER = logging.getLogger(__name__)


class MessageLoader:
    """Read a staged message in one pass and extract sender, subject and bodies.

    The whole message is buffered in memory by the feed parser. Bodies are
    kept exactly as decoded. Malformed input never raises: :meth:`load`
    returns ``None`` instead.
    """

    async def load(self, stream: AsyncIterable[bytes]) -> ParsedMessage | None:
        """Parse ``stream`` and return its fields, or ``None`` if unparseable.

        Errors raised by ``stream`` itself (disk faults) are not caught.
        """
        feed = BytesFeedParser(policy=policy.default)
        async for chunk in stream:
            feed.feed(chunk)
        try:
            message = feed.close()
            if not isinstance(message, EmailMessage):
                return None
            return _extract(message)
        except Exception as exc:  # pylint: disable=broad-except
            # policy.default header parsing can fail with arbitrary errors
            LOGGER.warning("Failed to parse staged message: %r", exc)
            return None


def _extract(message: EmailMessage) -> ParsedMessage:
    text, html = _extract_bodies(message)
    return ParsedMessage(
        sender=_header(message, "From"),
        subject=_header(message, "Subject"),
        text=text,
        html=html,
    )


def _header(message: EmailMessage, name: str) -> str | None:
    value = message.get(name)
    if value is None:
        return None
    rendered = str(value)
    return rendered if rendered.strip() else None


def _collapse_chunks(chunks: Iterable[str], separator: str) -> str | None:
    filtered_chunks = [chunk for chunk in chunks if chunk]
    if not filtered_chunks:
        return None
    return separator.join(filtered_chunks)


def _extract_bodies(message: EmailMessage) -> tuple[str | None, str | None]:
    plain_chunks: list[str] = []
    html_chunks: list[str] = []

    for part in message.walk():
        if part.is_multipart():
            continue
        if part.get_content_disposition() == "attachment":
            continue
        content_type = part.get_content_type()
        if content_type not in ("text/plain", "text/html"):
            continue
        try:
            content_obj = part.get_content()
        except LookupError:
            continue
        if not isinstance(content_obj, str):
            continue
        if content_type == "text/plain":
            plain_chunks.append(content_obj)
        else:
            html_chunks.append(content_obj)

    text = _collapse_chunks(plain_chunks, "\n\n")
    html = _collapse_chunks(html_chunks, "\n")
    return text, html


__all__ = ["MessageLoader"]
