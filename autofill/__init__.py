"""
Listing Autofill Package

Components of the listing autofill pipeline:
- Gazetteer: INE communities/provinces/municipalities and name lookups
- RateLimiter / CookieJar: politeness layer shared by all outbound calls
- HtmlFetcher: browser-like page fetches
- extract_listing: embedded JSON + regex + title extraction from listing HTML
- LlmPropertyExtractClient: OpenAI enrichment (area, rooms, rent ceiling)
- RentMarketLookup / StaticRentEstimator: rent per m2 estimates
- AutofillPipeline: main orchestrator
"""

from .gazetteer import Gazetteer, GazetteerLoadError, get_gazetteer, normalize_name
from .politeness import CookieJar, RateLimiter
from .html_fetcher import FetchError, HtmlFetcher
from .listing_extractor import extract_listing
from .llm_client import LlmPropertyExtractClient
from .llm_rate_limiter import LlmRateLimiter
from .rent_market import RentMarketLookup
from .rent_market_store import RentMarketStore
from .static_rent import StaticRentEstimator
from .result_cache import TtlCache
from .pipeline import AutofillPipeline, autofill_from_url, extract_from_html, get_pipeline

__all__ = [
    'Gazetteer',
    'GazetteerLoadError',
    'get_gazetteer',
    'normalize_name',
    'CookieJar',
    'RateLimiter',
    'FetchError',
    'HtmlFetcher',
    'extract_listing',
    'LlmPropertyExtractClient',
    'LlmRateLimiter',
    'RentMarketLookup',
    'RentMarketStore',
    'StaticRentEstimator',
    'TtlCache',
    'AutofillPipeline',
    'autofill_from_url',
    'extract_from_html',
    'get_pipeline',
]
