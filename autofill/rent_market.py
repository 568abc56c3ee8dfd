"""
Market-report rent lookup.

Resolves a city to its rent-per-square-metre figure from the portal's public
rent price reports, caching results in the durable RentMarketStore. Report
URLs are guessed from INE names, so several slug spellings are tried per
province and city.
"""

import logging
import time
from typing import Callable, Optional

from autofill.gazetteer import Gazetteer, get_gazetteer, normalize_name
from autofill.html_fetcher import FetchError, HtmlFetcher, get_fetcher
from autofill.numbers import round_half_up
from autofill.politeness import CookieJar, RateLimiter, get_cookie_jar, get_rate_limiter
from autofill.rent_market_store import RentMarketStore
from autofill.report_extractor import extract_rent_per_sqm
from autofill.slug import city_slug_candidates, community_slug, province_slug_candidates
from config import settings
from models import RentMarketEntry, RentMarketLookupResult

logger = logging.getLogger(__name__)

MAX_SLUG_CANDIDATES = 3
REPORT_PATH = "/sala-de-prensa/informes-precio-vivienda/alquiler/{community}/{province}/{city}/"


def build_report_url(community: str, province: str, city: str, domain: Optional[str] = None) -> str:
    path = REPORT_PATH.format(community=community, province=province, city=city)
    return f"https://{domain or settings.SOURCE_DOMAIN}{path}"


def market_key(region_code: int, province_code: int, city_norm: str) -> str:
    return f"{region_code}:{province_code}:{city_norm}"


class RentMarketLookup:
    def __init__(
        self,
        gazetteer: Optional[Gazetteer] = None,
        store: Optional[RentMarketStore] = None,
        fetcher: Optional[HtmlFetcher] = None,
        cookie_jar: Optional[CookieJar] = None,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Callable[[], float] = time.time,
        domain: Optional[str] = None,
    ):
        self.gazetteer = gazetteer or get_gazetteer()
        self.store = store if store is not None else RentMarketStore()
        self.fetcher = fetcher or get_fetcher()
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.cookie_jar = cookie_jar or get_cookie_jar()
        self.domain = domain or settings.SOURCE_DOMAIN
        self._clock = clock

    async def lookup_rent_per_sqm(self, city_name: str) -> RentMarketLookupResult:
        city = self.gazetteer.city_info(city_name) if city_name else None
        if city is None:
            return RentMarketLookupResult()

        city_norm = normalize_name(city.name)
        key = market_key(city.region_code, city.province_code, city_norm)
        cached = self.store.get(key)
        if cached:
            logger.info(f"Rent market cache hit for {city.name}: {cached.rent_per_sqm} EUR/m2")
            return RentMarketLookupResult(cached=True, rent_per_sqm=cached.rent_per_sqm)

        community = community_slug(city.region_code, self.gazetteer.region_name(city.region_code))
        province_name = self.gazetteer.province_name(city.province_code) or city.name
        provinces = province_slug_candidates(city.province_code, province_name)[:MAX_SLUG_CANDIDATES]
        cities = city_slug_candidates(city.name)[:MAX_SLUG_CANDIDATES]

        cookie_header = await self.cookie_jar.get_cookies(self.domain)

        for province_slug in provinces:
            for city_slug in cities:
                url = build_report_url(community, province_slug, city_slug, self.domain)
                await self.rate_limiter.wait()
                try:
                    html = await self.fetcher.fetch(
                        url, cookie_header or None, timeout=settings.REPORT_FETCH_TIMEOUT_SECONDS
                    )
                except FetchError as e:
                    logger.debug(f"Rent report not available at {url}: {e}")
                    continue

                rent_per_sqm = extract_rent_per_sqm(html)
                if rent_per_sqm is None:
                    continue

                entry = RentMarketEntry(
                    key=key,
                    region_code=city.region_code,
                    province_code=city.province_code,
                    city=city.name,
                    city_norm=city_norm,
                    community_slug=community,
                    province_slug=province_slug,
                    city_slug=city_slug,
                    rent_per_sqm=rent_per_sqm,
                    fetched_at=self._clock(),
                )
                await self.store.set(entry)
                logger.info(f"Rent market report for {city.name}: {rent_per_sqm} EUR/m2 ({url})")
                return RentMarketLookupResult(cached=False, rent_per_sqm=rent_per_sqm)

        logger.warning(f"No rent market report found for {city.name}")
        return RentMarketLookupResult()

    async def estimate_rent(self, city_name: Optional[str], sqm: Optional[float]) -> Optional[int]:
        if not city_name or not sqm or sqm <= 0:
            return None
        result = await self.lookup_rent_per_sqm(city_name)
        if result.rent_per_sqm is None:
            return None
        rent = round_half_up(sqm * result.rent_per_sqm)
        return rent if rent > 0 else None
