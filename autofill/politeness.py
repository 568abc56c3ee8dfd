"""
Politeness layer for outbound calls to the listing portal.

A single process-wide RateLimiter spaces every request (cookie bootstrap,
listing pages, market reports). The CookieJar keeps one Cookie header per
domain, bootstrapped from the site's home page and reused until it expires.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import httpx

from config import settings

logger = logging.getLogger(__name__)

_COOKIE_PAIR = re.compile(r"^\s*([^=;]+)=([^;]*)")

BOOTSTRAP_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "es-ES,es;q=0.9",
}


class RateLimiter:
    """Enforces a minimum interval between consecutive outbound calls."""

    def __init__(
        self,
        min_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], "asyncio.Future"] = asyncio.sleep,
    ) -> None:
        self.min_interval = settings.AUTOFILL_RATE_LIMIT_SECONDS if min_interval is None else min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            if self._last_call is not None:
                remaining = self.min_interval - (self._clock() - self._last_call)
                if remaining > 0:
                    logger.debug("Rate limiter sleeping %.2fs", remaining)
                    await self._sleep(remaining)
            self._last_call = self._clock()


@dataclass
class _CookieEntry:
    header: str
    obtained_at: float


def parse_set_cookie_headers(values) -> str:
    pairs = []
    for raw in values:
        match = _COOKIE_PAIR.match(raw or "")
        if match:
            pairs.append(f"{match.group(1).strip()}={match.group(2).strip()}")
    return "; ".join(pairs)


class CookieJar:
    """Per-domain Cookie header cache, bootstrapped from the domain's home page."""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        ttl_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        timeout: Optional[float] = None,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.ttl_seconds = settings.COOKIE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._transport = transport
        self._clock = clock
        self._timeout = settings.FETCH_TIMEOUT_SECONDS if timeout is None else timeout
        self._entries: Dict[str, _CookieEntry] = {}

    async def get_cookies(self, domain: str) -> str:
        """Return a Cookie header for ``domain`` ("" when none could be obtained)."""
        entry = self._entries.get(domain)
        if entry and self._clock() - entry.obtained_at < self.ttl_seconds:
            return entry.header

        header = await self._bootstrap(domain)
        if header:
            self._entries[domain] = _CookieEntry(header=header, obtained_at=self._clock())
        return header

    def clear(self, domain: str) -> None:
        self._entries.pop(domain, None)

    async def _bootstrap(self, domain: str) -> str:
        if self.rate_limiter:
            await self.rate_limiter.wait()
        url = f"https://{domain}/"
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
            ) as client:
                response = await client.get(url, headers=BOOTSTRAP_HEADERS)
        except httpx.HTTPError as e:
            logger.warning(f"Cookie bootstrap failed for {domain}: {e}")
            return ""

        if not response.is_success:
            logger.warning(f"Cookie bootstrap for {domain} returned HTTP {response.status_code}")
            return ""

        header = parse_set_cookie_headers(response.headers.get_list("set-cookie"))
        if header:
            logger.info(f"Bootstrapped {header.count('=')} cookies for {domain}")
        return header


_rate_limiter: Optional[RateLimiter] = None
_cookie_jar: Optional[CookieJar] = None


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter


def get_cookie_jar() -> CookieJar:
    global _cookie_jar
    if _cookie_jar is None:
        _cookie_jar = CookieJar(rate_limiter=get_rate_limiter())
    return _cookie_jar
