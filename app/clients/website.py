"""Website text fetcher used for ICP extraction and fit scoring."""

from __future__ import annotations

import logging
import re

import httpx
from bs4 import BeautifulSoup

from app.config import settings

logger = logging.getLogger(__name__)

STRIPPED_TAGS = ("script", "style", "nav", "footer", "header")

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "no address associated",
    "temporary failure in name resolution",
    "enotfound",
)
_REFUSED_MARKERS = ("connection refused", "econnrefused", "errno 111")


class WebsiteFetchError(RuntimeError):
    """Base error for website fetch failures; `message` is safe to show to users."""

    def __init__(self, message: str, code: str = "FETCH_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class DomainNotFoundError(WebsiteFetchError):
    def __init__(
        self, message: str = "Domain not found. Please check the website URL and try again."
    ) -> None:
        super().__init__(message, code="FETCH_DNS")


class ConnectionRefusedFetchError(WebsiteFetchError):
    def __init__(
        self, message: str = "Connection refused. The website may be down or unreachable."
    ) -> None:
        super().__init__(message, code="FETCH_REFUSED")


class FetchTimeoutError(WebsiteFetchError):
    def __init__(
        self, message: str = "Connection timed out. The website took too long to respond."
    ) -> None:
        super().__init__(message, code="FETCH_TIMEOUT")


class ContentTooLargeError(WebsiteFetchError):
    def __init__(self, message: str = "Website content is too large to analyse.") -> None:
        super().__init__(message, code="FETCH_TOO_LARGE")


def clean_html(html: str, *, max_chars: int) -> str:
    """Strip non-content tags, collapse whitespace and truncate to `max_chars`."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(list(STRIPPED_TAGS)):
        tag.decompose()
    text = re.sub(r"\s+", " ", soup.get_text(" ")).strip()
    return text[:max_chars]


def _website_url(domain: str) -> str:
    target = (domain or "").strip()
    if target.startswith(("http://", "https://")):
        return target
    return f"https://{target}"


def _classify_connect_error(exc: httpx.HTTPError) -> WebsiteFetchError:
    detail = str(exc).lower()
    cause = exc.__cause__ or exc.__context__
    if cause is not None:
        detail = f"{detail} {str(cause).lower()}"
    if any(marker in detail for marker in _DNS_MARKERS):
        return DomainNotFoundError()
    if any(marker in detail for marker in _REFUSED_MARKERS):
        return ConnectionRefusedFetchError()
    return WebsiteFetchError(f"Failed to fetch website content: {exc}")


class WebsiteFetcher:
    """Fetches a domain's home page and returns its cleaned visible text."""

    is_live = True

    def __init__(
        self,
        *,
        timeout: float | None = None,
        max_bytes: int | None = None,
        max_chars: int | None = None,
        user_agent: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._max_bytes = max_bytes or settings.fetch_max_bytes
        self._max_chars = max_chars or settings.fetch_max_chars
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=timeout or settings.fetch_timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": user_agent or settings.fetch_user_agent},
        )

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def fetch_text(self, domain: str) -> str:
        url = _website_url(domain)
        try:
            async with self._http.stream("GET", url) as response:
                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self._max_bytes:
                    raise ContentTooLargeError()
                response.raise_for_status()
                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > self._max_bytes:
                        raise ContentTooLargeError()
                encoding = response.encoding or "utf-8"
        except httpx.InvalidURL as exc:
            logger.warning("website.fetch.invalid_url", extra={"domain": domain})
            raise WebsiteFetchError(
                "Invalid website address. Please check the domain and try again.", code="FETCH_INVALID_URL"
            ) from exc
        except httpx.TimeoutException as exc:
            logger.warning("website.fetch.timeout", extra={"domain": domain})
            raise FetchTimeoutError() from exc
        except httpx.ConnectError as exc:
            error = _classify_connect_error(exc)
            logger.warning("website.fetch.connect_error", extra={"domain": domain, "code": error.code})
            raise error from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "website.fetch.http_error",
                extra={"domain": domain, "status_code": exc.response.status_code},
            )
            raise WebsiteFetchError(
                f"Failed to fetch website content: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("website.fetch.error", extra={"domain": domain, "error": type(exc).__name__})
            raise WebsiteFetchError(f"Failed to fetch website content: {exc}") from exc

        html = bytes(body).decode(encoding, errors="replace")
        text = clean_html(html, max_chars=self._max_chars)
        logger.info("website.fetch.success", extra={"domain": domain, "chars": len(text)})
        return text


class FixtureWebsiteFetcher:
    """Deterministic offline fetcher; the text mirrors the domain so fixture scoring is stable."""

    is_live = False

    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self._pages = {key.lower(): value for key, value in (pages or {}).items()}

    async def fetch_text(self, domain: str) -> str:
        key = (domain or "").strip().lower()
        if key in self._pages:
            return self._pages[key]
        return (
            f"{domain} builds software for technology companies. "
            "Our SaaS platform automates manual processes and removes data silos "
            "for CTOs, VP Engineering and product teams."
        )

    async def aclose(self) -> None:
        return None
