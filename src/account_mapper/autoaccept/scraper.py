"""Find the confirmation link in a registration email."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

_ACTIVATION_PATH = "/activations/"
_CONFIRM_TEXT = re.compile(r"\b(confirm|activate|verify)", re.IGNORECASE)


def extract_confirmation_url(html: str) -> str | None:
    """Return the confirmation URL contained in ``html``, if any.

    Links pointing at an activation path win over links whose text merely
    mentions confirming; only absolute http(s) links are considered.
    """
    soup = BeautifulSoup(html, "html.parser")
    candidates: list[str] = []
    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if not href.lower().startswith(("http://", "https://")):
            continue
        if _ACTIVATION_PATH in href:
            return href
        if _CONFIRM_TEXT.search(anchor.get_text(" ", strip=True)):
            candidates.append(href)
    return candidates[0] if candidates else None


__all__ = ["extract_confirmation_url"]
