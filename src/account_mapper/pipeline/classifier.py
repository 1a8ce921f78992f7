"""Decide what to do with a parsed message."""

from __future__ import annotations

from ..core.models import Disposition, DispositionKind, ParsedMessage

# Subject fragment of the registration mail sent by the bridge. We do not
# control that template; if it changes, confirmations get forwarded instead.
CONFIRMATION_PHRASE = "confirm your email address"


def classify(message: ParsedMessage | None) -> DispositionKind:
    """Return the disposition kind for ``message``."""
    if message is None or not message.is_complete:
        return DispositionKind.INVALID
    subject = (message.subject or "").lower()
    if CONFIRMATION_PHRASE in subject:
        return DispositionKind.AUTO_ACCEPT
    return DispositionKind.FORWARD


def decide(message: ParsedMessage | None, forward_address: str) -> Disposition:
    """Classify ``message`` and attach what the chosen action needs."""
    kind = classify(message)
    if kind is DispositionKind.INVALID:
        return Disposition(kind=kind)
    return Disposition(kind=kind, message=message, forward_address=forward_address)


__all__ = ["CONFIRMATION_PHRASE", "classify", "decide"]
