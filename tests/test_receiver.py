"""Tests for the SMTP intake listener."""

from __future__ import annotations

import logging
from email.message import EmailMessage
from pathlib import Path
from typing import Callable

import aiosmtplib
import pytest
from aiosmtpd.smtp import Envelope

from account_mapper.core.config import ReceiverSettings
from account_mapper.core.errors import StartupError
from account_mapper.core.models import InboundEnvelope
from account_mapper.staging import StagingStore
from account_mapper.transport import IntakeHandler, Receiver, parse_recipient

DOMAIN = "heroku.storj.io"


class RecordingIntake:
    """Intake callback acknowledging and remembering each message."""

    def __init__(self, *, acknowledge: bool = True, fail: bool = False) -> None:
        self.received: list[tuple[InboundEnvelope, Path]] = []
        self._acknowledge = acknowledge
        self._fail = fail

    def __call__(
        self, envelope: InboundEnvelope, path: Path, ack: Callable[[], None]
    ) -> None:
        if self._acknowledge:
            ack()
        self.received.append((envelope, path))
        if self._fail:
            raise RuntimeError("handler bug")


def test_parse_recipient_splits_alias() -> None:
    envelope = parse_recipient("<ABC-123@Heroku.Storj.io>", DOMAIN)

    assert envelope == InboundEnvelope(
        alias_id="ABC-123", raw_address="ABC-123@Heroku.Storj.io"
    )


@pytest.mark.parametrize(
    "address", ["abc@example.com", "heroku.storj.io", "@heroku.storj.io"]
)
def test_parse_recipient_rejects_foreign_addresses(address: str) -> None:
    assert parse_recipient(address, DOMAIN) is None


@pytest.mark.asyncio
async def test_rcpt_accepts_only_first_local_recipient(tmp_path: Path) -> None:
    handler = IntakeHandler(StagingStore(tmp_path), RecordingIntake(), domain=DOMAIN)
    envelope = Envelope()

    first = await handler.handle_RCPT(None, None, envelope, f"a@{DOMAIN}", [])
    second = await handler.handle_RCPT(None, None, envelope, f"b@{DOMAIN}", [])
    foreign = await handler.handle_RCPT(None, None, envelope, "c@example.com", [])

    assert first.startswith("250")
    assert second.startswith("452")
    assert foreign.startswith("550")
    assert envelope.rcpt_tos == [f"a@{DOMAIN}"]


@pytest.mark.asyncio
async def test_data_stages_before_handing_over(tmp_path: Path) -> None:
    intake = RecordingIntake()
    handler = IntakeHandler(StagingStore(tmp_path), intake, domain=DOMAIN)
    envelope = Envelope()
    envelope.rcpt_tos.append(f"alias-1@{DOMAIN}")
    envelope.original_content = b"Subject: hi\r\n\r\nbody\r\n"

    response = await handler.handle_DATA(None, None, envelope)

    assert response.startswith("250")
    inbound, path = intake.received[0]
    assert inbound.alias_id == "alias-1"
    assert path.parent == tmp_path
    assert path.read_bytes() == b"Subject: hi\r\n\r\nbody\r\n"


@pytest.mark.asyncio
async def test_data_survives_intake_faults(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    handler = IntakeHandler(
        StagingStore(tmp_path), RecordingIntake(fail=True), domain=DOMAIN
    )
    envelope = Envelope()
    envelope.rcpt_tos.append(f"alias-1@{DOMAIN}")
    envelope.content = b"Subject: hi\r\n\r\nbody\r\n"

    with caplog.at_level(logging.ERROR):
        response = await handler.handle_DATA(None, None, envelope)

    assert response.startswith("250")
    assert "Intake handler failed" in caplog.text
    assert len(StagingStore(tmp_path).pending()) == 1


@pytest.mark.asyncio
async def test_data_reports_staging_failure(tmp_path: Path) -> None:
    intake = RecordingIntake()
    handler = IntakeHandler(StagingStore(tmp_path / "absent"), intake, domain=DOMAIN)
    envelope = Envelope()
    envelope.rcpt_tos.append(f"alias-1@{DOMAIN}")
    envelope.content = b"Subject: hi\r\n\r\nbody\r\n"

    response = await handler.handle_DATA(None, None, envelope)

    assert response.startswith("451")
    assert intake.received == []


@pytest.mark.asyncio
async def test_receiver_accepts_mail_over_smtp(tmp_path: Path) -> None:
    intake = RecordingIntake()
    settings = ReceiverSettings(host="127.0.0.1", port=0, domain=DOMAIN, tmpdir=tmp_path)
    receiver = Receiver(
        settings, IntakeHandler(StagingStore(tmp_path), intake, domain=DOMAIN)
    )
    await receiver.start()
    try:
        port = receiver.sockets[0].getsockname()[1]
        message = EmailMessage()
        message["From"] = "hello@storj.io"
        message["To"] = f"alias-9@{DOMAIN}"
        message["Subject"] = "Your receipt"
        message.set_content("Thanks")

        await aiosmtplib.send(message, hostname="127.0.0.1", port=port)
    finally:
        await receiver.stop()

    inbound, path = intake.received[0]
    assert inbound.alias_id == "alias-9"
    assert b"Subject: Your receipt" in path.read_bytes()


@pytest.mark.asyncio
async def test_receiver_bind_failure_is_startup_error(tmp_path: Path) -> None:
    settings = ReceiverSettings(host="127.0.0.1", port=0, domain=DOMAIN, tmpdir=tmp_path)
    handler = IntakeHandler(StagingStore(tmp_path), RecordingIntake(), domain=DOMAIN)
    first = Receiver(settings, handler)
    await first.start()
    try:
        port = first.sockets[0].getsockname()[1]
        taken = settings.model_copy(update={"port": port})
        with pytest.raises(StartupError):
            await Receiver(taken, handler).start()
    finally:
        await first.stop()
