import math
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from models import Number

_NON_NUMERIC = re.compile(r"[^\d.,\-]")


def parse_spanish_number(text: str) -> Optional[Number]:
    """Parse "157.500 €" / "12,50" style numbers ("." thousands, "," decimal)."""
    if text is None:
        return None
    cleaned = _NON_NUMERIC.sub("", str(text))
    cleaned = cleaned.replace(".", "").replace(",", ".")
    if not cleaned or cleaned in ("-", "."):
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return as_number(value)


def as_number(value: float) -> Number:
    """Collapse integral floats to int so 80.0 serializes as 80."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
