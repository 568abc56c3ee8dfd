import math
import re
from typing import Optional

from autofill.numbers import parse_spanish_number

_RENT_PER_SQM = re.compile(
    r"<strong[^>]*>\s*([\d.,]+)\s*€\s*/\s*m(?:2|²|\s*<sup>\s*2\s*</sup>)\s*</strong>",
    re.I,
)


def extract_rent_per_sqm(html: str) -> Optional[float]:
    """First "<strong>NN,N €/m²</strong>" figure on a market report page."""
    match = _RENT_PER_SQM.search(html or "")
    if not match:
        return None
    value = parse_spanish_number(match.group(1))
    if value is None or not math.isfinite(value) or value <= 0:
        return None
    return float(value)
