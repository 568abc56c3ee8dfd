"""
Listing page extraction.

Turns raw listing HTML into an ExtractionResult in three stages: the embedded
__NEXT_DATA__ JSON blob, regex fallbacks over the markup, and (for the city
only) disambiguation against the page title. City values are only accepted
once the gazetteer knows them; the region code is always derived from the
final city.
"""

import json
import logging
import math
import re
from html import unescape
from typing import Any, Iterable, List, Optional, Tuple

from autofill.gazetteer import Gazetteer, get_gazetteer, normalize_name
from autofill.numbers import as_number, parse_spanish_number
from models import AdministrativeCity, ExtractionResult, Number

logger = logging.getLogger(__name__)

MAX_SEARCH_DEPTH = 4
ADDRESS_SEARCH_DEPTH = 2

_NEXT_DATA = re.compile(r'<script[^>]*\bid="__NEXT_DATA__"[^>]*>(.*?)</script>', re.S | re.I)

ROOT_KEYS = ("detail", "propertyDetail", "listing", "initialProps", "data")
PRICE_KEYS = ("price", "priceAmount", "priceValue", "salePrice", "amount")
SQM_KEYS = ("size", "surface", "constructedArea", "area", "sqm", "builtArea")
ROOM_KEYS = ("rooms", "bedrooms", "numRooms", "roomCount")
BATHROOM_KEYS = ("bathrooms", "bathroomsTotal", "numBathrooms", "bathroomCount")
CITY_KEYS = ("municipality", "city", "locality", "town")
ADDRESS_CITY_KEYS = ("municipality", "city", "locality")

_THOUSANDS_OR_INT = r"(\d{1,3}(?:\.\d{3})+|\d+)"

# Most specific first
PRICE_PATTERNS = [
    re.compile(r'<span[^>]*class="[^"]*info-data-price[^"]*"[^>]*>\s*<span[^>]*>\s*([\d.\s]+?)\s*</span>\s*€', re.I),
    re.compile(r'<strong[^>]*class="[^"]*price[^"]*"[^>]*>\s*([\d.\s]+?)\s*€', re.I),
    re.compile(r'data-price="([\d.]+)"', re.I),
    re.compile(r"([1-9]\d{2,5}(?:\.\d{3})*)\s*€"),
]
SQM_PATTERNS = [
    re.compile(_THOUSANDS_OR_INT + r"\s*m[²2]\s*construidos", re.I),
    re.compile(r"<span[^>]*>\s*" + _THOUSANDS_OR_INT + r"\s*</span>\s*<span[^>]*>\s*m[²2]", re.I),
    re.compile(_THOUSANDS_OR_INT + r"\s*m[²2]", re.I),
]
ROOM_PATTERNS = [
    re.compile(r"(\d+)\s*habitaci(?:ón|on|ones)", re.I),
    re.compile(r"(\d+)\s*hab\.?", re.I),
    re.compile(r"<span[^>]*>\s*(\d+)\s*</span>\s*<span[^>]*>\s*hab", re.I),
    re.compile(r"(\d+)\s*dormitorios?", re.I),
]
BATHROOM_PATTERNS = [
    re.compile(r"(\d+)\s*baños", re.I),
    re.compile(r"(\d+)\s*baño", re.I),
    re.compile(r"<span[^>]*>\s*(\d+)\s*</span>\s*<span[^>]*>\s*baño", re.I),
    re.compile(r"(\d+)\s*aseos?", re.I),
]
_TITLE_MINOR = re.compile(r'<span[^>]*class="[^"]*main-info__title-minor[^"]*"[^>]*>(.*?)</span>', re.S | re.I)

_TITLE = re.compile(r"<title[^>]*>(.*?)</title>", re.S | re.I)
_TAG = re.compile(r"<[^>]+>")
_WORD = re.compile(r"[a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")

# Words that show up in listing titles but never identify a municipality
TITLE_STOPWORDS = frozenset({
    "piso", "pisos", "venta", "alquiler", "chalet", "casa", "casas", "adosado", "pareado",
    "independiente", "atico", "duplex", "estudio", "apartamento", "loft", "finca", "rustica",
    "planta", "bajo", "calle", "avenida", "avda", "plaza", "paseo", "camino", "cami", "carrer",
    "carretera", "urbanizacion", "barrio", "zona", "centro", "playa", "idealista", "obra",
    "nueva", "vivienda", "inmueble", "terreno", "local", "garaje", "del", "las", "los", "les",
    "con", "por", "para", "una", "san", "sant", "santa", "santo", "sur", "norte", "este", "oeste",
})

_FEATURES_BLOCK = re.compile(
    r'<div[^>]*class="[^"]*details-property_features[^"]*"[^>]*>(.*?)</div>', re.S | re.I
)
_ENERGY_MARKER = re.compile(r"certificado\s+energ(?:é|&eacute;|e)tico", re.I)


def _coerce_number(value: Any) -> Optional[Number]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return as_number(float(value)) if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return as_number(parsed) if math.isfinite(parsed) else None
    return None


def _coerce_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _search(obj: Any, keys: Iterable[str], coerce, depth: int = MAX_SEARCH_DEPTH):
    """Check the alias keys at this level, then descend into child objects (arrays skipped)."""
    if not isinstance(obj, dict) or depth <= 0:
        return None
    for key in keys:
        if key in obj:
            found = coerce(obj[key])
            if found is not None:
                return found
    for child in obj.values():
        if isinstance(child, dict):
            found = _search(child, keys, coerce, depth - 1)
            if found is not None:
                return found
    return None


def _embedded_root(html: str) -> Optional[dict]:
    match = _NEXT_DATA.search(html)
    if not match:
        return None
    try:
        data = json.loads(match.group(1))
    except ValueError as e:
        logger.debug(f"Ignoring malformed __NEXT_DATA__ block: {e}")
        return None
    if not isinstance(data, dict):
        return None
    page_props = (data.get("props") or {}).get("pageProps") if isinstance(data.get("props"), dict) else None
    if not isinstance(page_props, dict):
        return None
    for key in ROOT_KEYS:
        if isinstance(page_props.get(key), dict):
            return page_props[key]
    return page_props


def _first_match(html: str, patterns: List[re.Pattern]) -> Optional[Number]:
    for pattern in patterns:
        match = pattern.search(html)
        if match:
            value = parse_spanish_number(match.group(1))
            if value is not None:
                return value
    return None


def _strip_tags(fragment: str) -> str:
    return _WHITESPACE.sub(" ", unescape(_TAG.sub(" ", fragment))).strip()


def _verified_city(candidate: Optional[str], gazetteer: Gazetteer) -> Optional[str]:
    if not candidate:
        return None
    city = gazetteer.city_info(candidate)
    return city.name if city else None


def _title_minor_city(html: str) -> Optional[str]:
    match = _TITLE_MINOR.search(html)
    if not match:
        return None
    text = _strip_tags(match.group(1))
    segments = [s.strip() for s in text.split(",") if s.strip()]
    return segments[-1] if segments else None


def _whole_word(term: str) -> re.Pattern:
    return re.compile(r"(?<![a-z0-9])" + re.escape(term) + r"(?![a-z0-9])")


def disambiguate_city_from_title(html: str, gazetteer: Gazetteer) -> Optional[str]:
    """
    Pick the municipality named in the page <title>.

    Full-name whole-word matches are preferred; only when none exist are
    cities matched on a single significant title word. Among candidates the
    one whose matched text occurs most often in the page wins, then the
    longer name, then gazetteer order.
    """
    match = _TITLE.search(html)
    if not match:
        return None
    title = normalize_name(_strip_tags(match.group(1)))
    if not title:
        return None

    cities = gazetteer.all_cities()
    candidates: List[Tuple[int, AdministrativeCity, str]] = []
    for order, city in enumerate(cities):
        term = normalize_name(city.name)
        if len(term) >= 3 and _whole_word(term).search(title):
            candidates.append((order, city, term))

    if not candidates:
        tokens = {t for t in _WORD.findall(title) if len(t) >= 3 and t not in TITLE_STOPWORDS}
        if tokens:
            for order, city in enumerate(cities):
                hits = tokens.intersection(_WORD.findall(normalize_name(city.name)))
                if hits:
                    candidates.append((order, city, max(sorted(hits), key=len)))

    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0][1].name

    page = normalize_name(unescape(html))

    def rank(candidate):
        order, city, term = candidate
        return (len(_whole_word(term).findall(page)), len(city.name), -order)

    return max(candidates, key=rank)[1].name


def extract_feature_text(html: str) -> Optional[str]:
    """Text of the property-features blocks that precede the energy certificate section."""
    marker = _ENERGY_MARKER.search(html)
    scope = html[:marker.start()] if marker else html
    parts = [_strip_tags(block) for block in _FEATURES_BLOCK.findall(scope)]
    text = " ".join(p for p in parts if p)
    return text or None


def extract_listing(html: str, gazetteer: Optional[Gazetteer] = None) -> ExtractionResult:
    gazetteer = gazetteer or get_gazetteer()
    html = html or ""

    buy_price = sqm = rooms = bathrooms = None
    city = None

    root = _embedded_root(html)
    if root is not None:
        buy_price = _search(root, PRICE_KEYS, _coerce_number)
        sqm = _search(root, SQM_KEYS, _coerce_number)
        rooms = _search(root, ROOM_KEYS, _coerce_number)
        bathrooms = _search(root, BATHROOM_KEYS, _coerce_number)
        raw_city = _search(root, CITY_KEYS, _coerce_text)
        if raw_city is None and isinstance(root.get("address"), dict):
            raw_city = _search(root["address"], ADDRESS_CITY_KEYS, _coerce_text, depth=ADDRESS_SEARCH_DEPTH)
        city = _verified_city(raw_city, gazetteer)

    if buy_price is None:
        buy_price = _first_match(html, PRICE_PATTERNS)
    if sqm is None:
        sqm = _first_match(html, SQM_PATTERNS)
    if rooms is None:
        rooms = _first_match(html, ROOM_PATTERNS)
    if bathrooms is None:
        bathrooms = _first_match(html, BATHROOM_PATTERNS)
    if city is None:
        city = _verified_city(_title_minor_city(html), gazetteer)
    if city is None:
        city = disambiguate_city_from_title(html, gazetteer)

    region_code = gazetteer.resolve_region_by_city_name(city) if city else None

    return ExtractionResult(
        buy_price=buy_price,
        sqm=sqm,
        rooms=rooms,
        bathrooms=bathrooms,
        city=city,
        region_code=region_code,
        feature_text=extract_feature_text(html),
    )
