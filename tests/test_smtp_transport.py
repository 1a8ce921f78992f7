"""Tests for the outbound SMTP transport."""

from __future__ import annotations

from email.message import EmailMessage
from typing import Any

import aiosmtplib
import pytest

from account_mapper.core.config import MailerSettings
from account_mapper.core.errors import TransportError
from account_mapper.core.models import OutgoingMessage
from account_mapper.transport import SmtpTransport
from account_mapper.transport import smtp_client

OUTGOING = OutgoingMessage(
    to="owner@example.com",
    sender="Storj Labs <hello@storj.io>",
    subject="Your receipt",
    text="Thanks for your payment.",
    html="<p>Thanks</p>",
)


class RecordingSend:
    """Stand-in for ``aiosmtplib.send`` capturing its arguments."""

    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.calls: list[tuple[EmailMessage, dict[str, Any]]] = []
        self._result = result if result is not None else ({}, "250 OK")
        self._error = error

    async def __call__(self, message: EmailMessage, **kwargs: Any) -> Any:
        self.calls.append((message, kwargs))
        if self._error is not None:
            raise self._error
        return self._result


def test_build_mime_message_copies_fields_verbatim() -> None:
    transport = SmtpTransport(MailerSettings(host="smtp.test"))

    mime = transport.build_mime_message(OUTGOING)

    assert mime["To"] == "owner@example.com"
    assert mime["From"] == "Storj Labs <hello@storj.io>"
    assert mime["Subject"] == "Your receipt"
    assert mime["Message-ID"]
    assert mime.get_content_type() == "multipart/alternative"
    plain = mime.get_body(preferencelist=("plain",))
    html = mime.get_body(preferencelist=("html",))
    assert plain is not None and plain.get_content().strip() == OUTGOING.text
    assert html is not None and html.get_content().strip() == OUTGOING.html


@pytest.mark.asyncio
async def test_send_uses_configured_relay(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = RecordingSend()
    monkeypatch.setattr(smtp_client.aiosmtplib, "send", recorder)
    settings = MailerSettings(
        host="smtp.test", port=587, username="u", password="p", start_tls=True
    )

    receipt = await SmtpTransport(settings).send(OUTGOING)

    message, kwargs = recorder.calls[0]
    assert receipt.message_id == message["Message-ID"]
    assert kwargs["hostname"] == "smtp.test"
    assert kwargs["port"] == 587
    assert kwargs["username"] == "u"
    assert kwargs["start_tls"] is True
    assert kwargs["use_tls"] is False


@pytest.mark.asyncio
async def test_refused_recipients_fail(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = RecordingSend(result=({"owner@example.com": (550, "no")}, "250 OK"))
    monkeypatch.setattr(smtp_client.aiosmtplib, "send", recorder)

    with pytest.raises(TransportError):
        await SmtpTransport(MailerSettings(host="smtp.test")).send(OUTGOING)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        aiosmtplib.SMTPConnectError("cannot connect"),
        aiosmtplib.SMTPException("generic"),
        ConnectionResetError("reset"),
    ],
)
async def test_relay_errors_become_transport_errors(
    monkeypatch: pytest.MonkeyPatch, error: Exception
) -> None:
    monkeypatch.setattr(smtp_client.aiosmtplib, "send", RecordingSend(error=error))

    with pytest.raises(TransportError):
        await SmtpTransport(MailerSettings(host="smtp.test")).send(OUTGOING)


def test_missing_host_is_rejected() -> None:
    with pytest.raises(ValueError):
        SmtpTransport(MailerSettings(host=""))
