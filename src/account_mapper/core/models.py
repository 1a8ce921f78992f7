"""Core domain models used across the intake pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class InboundEnvelope:
    """Recipient information for one received message."""

    alias_id: str
    raw_address: str

    def to_dict(self) -> dict[str, str]:
        """Return the JSON-serialisable snapshot stored in error markers."""
        return {"alias_id": self.alias_id, "raw_address": self.raw_address}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> InboundEnvelope:
        """Rebuild an envelope from a stored snapshot."""
        return cls(
            alias_id=str(payload["alias_id"]),
            raw_address=str(payload["raw_address"]),
        )


@dataclass(slots=True)
class ParsedMessage:
    """Fields extracted from a staged message."""

    sender: str | None
    subject: str | None
    text: str | None
    html: str | None

    @property
    def missing_fields(self) -> tuple[str, ...]:
        """Names of required fields that are absent or empty."""
        return tuple(
            name
            for name in ("sender", "subject", "text", "html")
            if not getattr(self, name)
        )

    @property
    def is_complete(self) -> bool:
        """Whether every required field is present."""
        return not self.missing_fields


@dataclass(frozen=True, slots=True)
class ResolvedDestination:
    """Mailbox an alias resolves to."""

    forward_address: str


class DispositionKind(str, Enum):
    """Terminal classification of a parsed message."""

    AUTO_ACCEPT = "auto_accept"
    FORWARD = "forward"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class Disposition:
    """Classification result together with the data its action needs."""

    kind: DispositionKind
    message: ParsedMessage | None = None
    forward_address: str | None = None

    @property
    def confirmation_html(self) -> str | None:
        """HTML body handed to the auto-accepter."""
        if self.kind is not DispositionKind.AUTO_ACCEPT or self.message is None:
            return None
        return self.message.html


@dataclass(frozen=True, slots=True)
class OutgoingMessage:
    """Forwarded copy of an inbound message."""

    to: str
    sender: str
    subject: str
    text: str
    html: str


@dataclass(frozen=True, slots=True)
class SendReceipt:
    """Acknowledgement returned by the outbound relay."""

    message_id: str


class PipelineOutcome(str, Enum):
    """Where the lifecycle of a staged message ended."""

    UNRESOLVED = "unresolved"
    INVALID = "invalid"
    AUTO_ACCEPTED = "auto_accepted"
    AUTO_ACCEPT_FAILED = "auto_accept_failed"
    FORWARDED = "forwarded"
    FORWARD_FAILED = "forward_failed"
    STAGING_FAILED = "staging_failed"


__all__ = [
    "Disposition",
    "DispositionKind",
    "InboundEnvelope",
    "OutgoingMessage",
    "ParsedMessage",
    "PipelineOutcome",
    "ResolvedDestination",
    "SendReceipt",
]
