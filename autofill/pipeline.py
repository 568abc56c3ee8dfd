"""
Autofill pipeline.

Given a listing URL: serve from the result cache, otherwise fetch the page
politely (shared cookies and global rate limit), extract listing attributes,
enrich them (LLM or rent estimation) and cache the result. The public entry
points never raise; any failure degrades to an all-null result.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

from autofill.gazetteer import Gazetteer, get_gazetteer
from autofill.html_fetcher import HtmlFetcher, get_fetcher, is_supported_host
from autofill.listing_extractor import extract_listing
from autofill.llm_client import LlmPropertyExtractClient, get_llm_client
from autofill.numbers import as_number, round_half_up
from autofill.politeness import CookieJar, RateLimiter, get_cookie_jar, get_rate_limiter
from autofill.rent_market import RentMarketLookup
from autofill.result_cache import TtlCache
from autofill.static_rent import StaticRentEstimator
from config import settings
from models import ExtractionResult, ExtractionSource

logger = logging.getLogger(__name__)

FORCE_SITE_EXTRACTION = "idealista"


def _valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class AutofillPipeline:
    def __init__(
        self,
        gazetteer: Optional[Gazetteer] = None,
        fetcher: Optional[HtmlFetcher] = None,
        cookie_jar: Optional[CookieJar] = None,
        rate_limiter: Optional[RateLimiter] = None,
        llm_client: Optional[LlmPropertyExtractClient] = None,
        rent_market: Optional[RentMarketLookup] = None,
        static_rent: Optional[StaticRentEstimator] = None,
        cache: Optional[TtlCache] = None,
        force_source: Optional[str] = None,
        rent_market_enabled: Optional[bool] = None,
        rent_uplift: Optional[float] = None,
    ):
        self.gazetteer = gazetteer or get_gazetteer()
        self.fetcher = fetcher or get_fetcher()
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.cookie_jar = cookie_jar or get_cookie_jar()
        self.llm_client = llm_client or get_llm_client()
        self.rent_market_enabled = settings.RENT_MARKET_ENABLED if rent_market_enabled is None else rent_market_enabled
        self.rent_market = rent_market
        if self.rent_market is None and self.rent_market_enabled:
            self.rent_market = RentMarketLookup(
                gazetteer=self.gazetteer,
                fetcher=self.fetcher,
                cookie_jar=self.cookie_jar,
                rate_limiter=self.rate_limiter,
            )
        self.static_rent = static_rent or StaticRentEstimator(gazetteer=self.gazetteer)
        self.cache = cache if cache is not None else TtlCache()
        self.force_source = (settings.AUTOFILL_FORCE_SOURCE if force_source is None else force_source).strip().lower()
        self.rent_uplift = settings.LLM_RENT_UPLIFT if rent_uplift is None else rent_uplift

    async def autofill_from_url(self, url: str, cookie_header: Optional[str] = None) -> ExtractionResult:
        try:
            url = (url or "").strip()
            if not _valid_url(url):
                logger.warning(f"Autofill called with invalid URL: {url!r}")
                return ExtractionResult.empty()

            cached = self.cache.get(url)
            if cached is not None:
                logger.info(f"Autofill cache hit: {url}")
                return cached

            host = urlparse(url).hostname
            if not is_supported_host(host):
                logger.info(f"Unsupported listing host {host}, returning empty result")
                return ExtractionResult.empty()

            cookies = (cookie_header or "").strip()
            if not cookies:
                cookies = await self.cookie_jar.get_cookies(host)

            await self.rate_limiter.wait()
            html = await self.fetcher.fetch(url, cookies or None)

            result = extract_listing(html, self.gazetteer)
            result = await self._enrich(result)

            self.cache.set(url, result)
            logger.info(
                f"Autofill {url}: price={result.buy_price} sqm={result.sqm} city={result.city} "
                f"rent={result.estimated_rent} source={result.source.value}"
            )
            return result
        except Exception as e:
            logger.warning(f"Autofill failed for {url}: {type(e).__name__}: {e}")
            return ExtractionResult.empty()

    def extract_from_html(self, url: str, html: str) -> ExtractionResult:
        """Extraction only, for HTML captured elsewhere (no network, cache or enrichment)."""
        try:
            host = urlparse((url or "").strip()).hostname
            if not is_supported_host(host):
                return ExtractionResult.empty()
            return extract_listing(html or "", self.gazetteer)
        except Exception as e:
            logger.warning(f"HTML extraction failed for {url}: {type(e).__name__}: {e}")
            return ExtractionResult.empty()

    async def _enrich(self, result: ExtractionResult) -> ExtractionResult:
        if self.force_source == FORCE_SITE_EXTRACTION:
            return await self._with_rent_estimate(result)

        if result.city and result.buy_price and result.buy_price > 0 and result.feature_text:
            llm = await self.llm_client.extract(result.city, result.buy_price, result.feature_text)
            if llm is not None:
                rent = round_half_up(llm.max_rent * self.rent_uplift)
                return result.model_copy(update={
                    "sqm": as_number(llm.sqm) if llm.sqm is not None else result.sqm,
                    "rooms": as_number(llm.rooms) if llm.rooms is not None else result.rooms,
                    "bathrooms": as_number(llm.bathrooms) if llm.bathrooms is not None else result.bathrooms,
                    "estimated_rent": rent if rent > 0 else None,
                    "source": ExtractionSource.LLM_ENRICHMENT,
                })
            logger.info("LLM enrichment unavailable, falling back to rent estimation")

        return await self._with_rent_estimate(result)

    async def _with_rent_estimate(self, result: ExtractionResult) -> ExtractionResult:
        rent = None
        if self.rent_market_enabled and self.rent_market is not None:
            try:
                rent = await self.rent_market.estimate_rent(result.city, result.sqm)
            except Exception as e:
                logger.warning(f"Rent market lookup failed for {result.city}: {type(e).__name__}: {e}")
        if rent is None:
            rent = self.static_rent.estimate(result.city, result.sqm)
        return result.model_copy(update={
            "estimated_rent": rent,
            "source": ExtractionSource.SITE_EXTRACTION,
        })

    async def close(self) -> None:
        if self.rent_market is not None:
            await self.rent_market.store.flush()


_pipeline: Optional[AutofillPipeline] = None


def get_pipeline() -> AutofillPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = AutofillPipeline()
    return _pipeline


async def autofill_from_url(url: str, cookie_header: Optional[str] = None) -> ExtractionResult:
    return await get_pipeline().autofill_from_url(url, cookie_header)


def extract_from_html(url: str, html: str) -> ExtractionResult:
    return get_pipeline().extract_from_html(url, html)
