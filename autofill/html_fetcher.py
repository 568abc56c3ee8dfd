import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from config import settings

logger = logging.getLogger(__name__)

# Anything shorter is almost certainly an interstitial / captcha page
MIN_EXPECTED_HTML_LENGTH = 5000

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "es-ES,es;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Ch-Ua": '"Google Chrome";v="143", "Chromium";v="143", "Not A(Brand";v="24"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Linux"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}


class FetchError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def is_supported_host(host: Optional[str]) -> bool:
    if not host:
        return False
    host = host.lower()
    return host == "idealista.com" or host.endswith(".idealista.com")


class HtmlFetcher:
    """GETs a page with a browser-like header set and returns the body text."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: Optional[float] = None):
        self._transport = transport
        self.timeout = settings.FETCH_TIMEOUT_SECONDS if timeout is None else timeout

    def build_headers(self, url: str, cookie_header: Optional[str] = None) -> dict:
        headers = dict(BROWSER_HEADERS)
        if is_supported_host(urlparse(url).hostname):
            headers["Referer"] = f"https://{settings.SOURCE_DOMAIN}/"
            headers["Sec-Fetch-Site"] = "same-origin"
        else:
            headers["Sec-Fetch-Site"] = "none"
        if cookie_header:
            headers["Cookie"] = cookie_header
        return headers

    async def fetch(self, url: str, cookie_header: Optional[str] = None, timeout: Optional[float] = None) -> str:
        headers = self.build_headers(url, cookie_header)
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.timeout if timeout is None else timeout,
                follow_redirects=True,
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise FetchError(f"Timed out fetching {url}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Error fetching {url}: {e}") from e

        if not response.is_success:
            raise FetchError(f"HTTP {response.status_code} fetching {url}", status_code=response.status_code)

        html = response.text
        if len(html) < MIN_EXPECTED_HTML_LENGTH:
            logger.warning(f"Short response ({len(html)} chars) from {url}, possibly a captcha or block page")
        return html


_fetcher: Optional[HtmlFetcher] = None


def get_fetcher() -> HtmlFetcher:
    global _fetcher
    if _fetcher is None:
        _fetcher = HtmlFetcher()
    return _fetcher
