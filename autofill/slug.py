"""URL slug helpers for the portal's rent market report pages."""

import re
import unicodedata
from typing import Iterable, List, Optional

COMMUNITY_SLUGS = {
    3: "asturias",
    4: "baleares",
    7: "castilla-y-leon",
    8: "castilla-la-mancha",
    9: "cataluna",
    10: "comunitat-valenciana",
    13: "madrid-comunidad",
    14: "murcia-region",
    15: "navarra",
    16: "euskadi",
    17: "la-rioja",
}

# Province slugs that the generic "<name>-provincia" rule does not produce
PROVINCE_SLUGS = {
    1: "alava",
    3: "alicante-alacant",
    7: "baleares",
    12: "castellon-castello",
    15: "a-coruna-provincia",
    20: "guipuzcoa",
    26: "la-rioja",
    33: "asturias",
    35: "las-palmas",
    38: "santa-cruz-de-tenerife-provincia",
    39: "cantabria",
    46: "valencia-valencia",
    48: "vizcaya",
}

_COMMA_ARTICLE = re.compile(r"^(.+),\s*(el|la|los|las|l'|a|o|os|as|es|les)$", re.I)


def slugify(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value or "")
    text = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()
    text = text.replace("/", " ")
    text = re.sub(r"[\"'`´’]", "", text)
    text = text.replace("&", " y ")
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def reorder_comma_article(name: str) -> str:
    """Move a trailing article to the front: "Coruña, A" -> "A Coruña"."""
    name = (name or "").strip()
    match = _COMMA_ARTICLE.match(name)
    if not match:
        return name
    return f"{match.group(2)} {match.group(1).strip()}"


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def community_slug(region_code: int, name: Optional[str]) -> str:
    return COMMUNITY_SLUGS.get(region_code) or slugify(name or "")


def province_slug_candidates(province_code: int, name: str) -> List[str]:
    reordered = reorder_comma_article(name)
    generated = [f"{slugify(part)}-provincia" for part in reordered.split("/") if slugify(part)]
    return _dedupe(generated + [PROVINCE_SLUGS.get(province_code, "")])


def city_slug_candidates(name: str) -> List[str]:
    reordered = reorder_comma_article(name)
    halves = [reorder_comma_article(part) for part in name.split("/")] if "/" in name else []
    return _dedupe([slugify(reordered), slugify(name)] + [slugify(h) for h in halves])
