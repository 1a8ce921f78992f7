"""Tests for registration auto-acceptance."""

from __future__ import annotations

import httpx
import pytest

from account_mapper.autoaccept import AutoAccepter, extract_confirmation_url
from account_mapper.core.config import AutoAcceptSettings
from account_mapper.core.errors import AutoAcceptError

CONFIRM_HTML = """
<p>Welcome to Storj!</p>
<p><a href="https://storj.io/terms">Terms</a></p>
<p><a href="https://api.storj.io/activations/abc123">Activate account</a></p>
"""


def test_extract_prefers_activation_links() -> None:
    html = (
        '<a href="https://example.com/confirm-help">Confirm your address</a>'
        '<a href="https://api.storj.io/activations/xyz">Click here</a>'
    )

    assert extract_confirmation_url(html) == "https://api.storj.io/activations/xyz"


def test_extract_falls_back_to_link_text() -> None:
    html = '<a href="https://example.com/verify?token=1">Confirm email</a>'

    assert extract_confirmation_url(html) == "https://example.com/verify?token=1"


def test_extract_ignores_relative_links_and_plain_html() -> None:
    assert extract_confirmation_url('<a href="/activations/abc">Activate</a>') is None
    assert extract_confirmation_url("<p>No links at all</p>") is None


def _accepter(handler) -> AutoAccepter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AutoAccepter(AutoAcceptSettings(), client=client)


@pytest.mark.asyncio
async def test_accept_calls_confirmation_url() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, text="Activated")

    url = await _accepter(handler).accept(CONFIRM_HTML)

    assert url == "https://api.storj.io/activations/abc123"
    assert seen == [url]


@pytest.mark.asyncio
async def test_accept_raises_on_error_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(410)

    with pytest.raises(AutoAcceptError):
        await _accepter(handler).accept(CONFIRM_HTML)


@pytest.mark.asyncio
async def test_accept_raises_on_network_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(AutoAcceptError):
        await _accepter(handler).accept(CONFIRM_HTML)


@pytest.mark.asyncio
async def test_accept_without_link_makes_no_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    with pytest.raises(AutoAcceptError):
        await _accepter(handler).accept("<p>nothing to click</p>")
    assert seen == []
