import asyncio

import httpx
import pytest

from app.clients.website import (
    ConnectionRefusedFetchError,
    ContentTooLargeError,
    DomainNotFoundError,
    FetchTimeoutError,
    WebsiteFetchError,
    WebsiteFetcher,
    clean_html,
)

PAGE = """
<html><head><style>.x{}</style><script>track()</script></head>
<body><header>Menu</header><nav>Links</nav>
<main><h1>Acme   Billing</h1><p>Automates
invoices for SaaS finance teams.</p></main>
<footer>Copyright</footer></body></html>
"""


def _fetcher(handler, **kwargs) -> WebsiteFetcher:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebsiteFetcher(http_client=http_client, **kwargs)


def test_clean_html_strips_chrome_and_collapses_whitespace():
    assert clean_html(PAGE, max_chars=8000) == "Acme Billing Automates invoices for SaaS finance teams."


def test_clean_html_truncates():
    assert clean_html(PAGE, max_chars=4) == "Acme"


def test_fetch_prefixes_https_and_returns_clean_text():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        return httpx.Response(200, text=PAGE, headers={"content-type": "text/html; charset=utf-8"})

    text = asyncio.run(_fetcher(handler).fetch_text("acme.com"))

    assert seen["url"].scheme == "https"
    assert seen["url"].host == "acme.com"
    assert "Automates invoices" in text
    assert "Copyright" not in text


def test_declared_oversized_body_is_rejected():
    handler = lambda request: httpx.Response(200, content=b"x" * 2048)  # noqa: E731

    with pytest.raises(ContentTooLargeError):
        asyncio.run(_fetcher(handler, max_bytes=1024).fetch_text("acme.com"))


@pytest.mark.parametrize(
    ("message", "error"),
    [
        ("[Errno -2] Name or service not known", DomainNotFoundError),
        ("[Errno 111] Connection refused", ConnectionRefusedFetchError),
    ],
)
def test_connect_errors_are_classified(message, error):
    def handler(request):
        raise httpx.ConnectError(message, request=request)

    with pytest.raises(error) as excinfo:
        asyncio.run(_fetcher(handler).fetch_text("nowhere.invalid"))

    assert excinfo.value.message


def test_timeouts_are_classified():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(FetchTimeoutError) as excinfo:
        asyncio.run(_fetcher(handler).fetch_text("slow.com"))

    assert excinfo.value.code == "FETCH_TIMEOUT"


def test_http_errors_are_wrapped():
    with pytest.raises(WebsiteFetchError) as excinfo:
        asyncio.run(_fetcher(lambda request: httpx.Response(404)).fetch_text("acme.com"))

    assert "404" in excinfo.value.message


def test_unparseable_address_is_a_fetch_error():
    def handler(request):
        raise AssertionError("request should not be sent")

    with pytest.raises(WebsiteFetchError) as excinfo:
        asyncio.run(_fetcher(handler).fetch_text("[bravo.io]"))

    assert excinfo.value.code == "FETCH_INVALID_URL"
    assert excinfo.value.message == "Invalid website address. Please check the domain and try again."
