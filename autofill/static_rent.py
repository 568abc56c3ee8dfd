import csv
import logging
from pathlib import Path
from typing import Dict, Optional

from autofill.gazetteer import Gazetteer, get_gazetteer
from autofill.numbers import round_half_up
from config import settings

logger = logging.getLogger(__name__)


def _default_csv_path() -> Path:
    return Path(__file__).resolve().parent / "data" / "alquiler_provincias.csv"


class StaticRentEstimator:
    """Rent estimate from average EUR/m2/month per province (provincial capitals table)."""

    def __init__(self, gazetteer: Optional[Gazetteer] = None, csv_path: Optional[Path] = None) -> None:
        self.gazetteer = gazetteer or get_gazetteer()
        if csv_path:
            self._csv_path = Path(csv_path)
        elif settings.STATIC_RENT_CSV_PATH:
            self._csv_path = Path(settings.STATIC_RENT_CSV_PATH)
        else:
            self._csv_path = _default_csv_path()
        self._prices: Dict[int, float] = {}
        self._loaded = False

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True

        if not self._csv_path.exists():
            logger.warning("Static rent CSV not found at %s", self._csv_path)
            return

        try:
            with self._csv_path.open("r", encoding="utf-8-sig", newline="") as handle:
                for row in csv.DictReader(handle):
                    try:
                        province = int((row.get("cpro") or "").strip())
                        price = float((row.get("precio_eur_m2_mes") or "").strip().replace(",", "."))
                    except ValueError:
                        continue
                    if price > 0:
                        self._prices[province] = price
            logger.info("Loaded %d provincial rent prices from %s", len(self._prices), self._csv_path)
        except (OSError, csv.Error) as exc:
            logger.error("Failed to load static rent CSV: %s", exc)

    def price_per_sqm(self, province_code: int) -> Optional[float]:
        self._ensure_loaded()
        return self._prices.get(province_code)

    def estimate(self, city: Optional[str], sqm: Optional[float]) -> Optional[int]:
        if not city or not sqm or sqm <= 0:
            return None
        info = self.gazetteer.city_info(city)
        if info is None:
            return None
        price = self.price_per_sqm(info.province_code)
        if price is None:
            return None
        rent = round_half_up(sqm * price)
        return rent if rent > 0 else None
