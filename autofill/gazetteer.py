"""
Spanish administrative gazetteer.

Loads the INE reference tables (autonomous communities, provinces and
municipalities) shipped as CSV files and answers name-based lookups. City
names are matched on their normalized form (diacritics stripped, case folded,
whitespace collapsed); the first spelling loaded for a normalized name is the
canonical one.
"""

import csv
import logging
import re
import unicodedata
from pathlib import Path
from typing import Dict, List, Optional

from config import settings
from models import AdministrativeCity, AdministrativeProvince

logger = logging.getLogger(__name__)

COMMUNITIES_FILE = "comunidades.csv"
PROVINCES_FILE = "provincias.csv"
MUNICIPALITIES_FILE = "municipios.csv"

_WHITESPACE = re.compile(r"\s+")


class GazetteerLoadError(Exception):
    """Raised when the reference tables are missing or malformed."""


def normalize_name(value: str) -> str:
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped.lower()).strip()


def _default_data_dir() -> Path:
    return Path(__file__).resolve().parent / "data"


def _read_rows(path: Path, required: List[str]) -> List[Dict[str, str]]:
    """
    Read one reference table.

    Column names are matched case-insensitively and extra columns are ignored,
    so the INE dictionary export (CODAUTO;CPRO;CMUN;DC;NOMBRE) loads as is.
    Both "," and ";" delimiters are accepted.
    """
    if not path.exists():
        raise GazetteerLoadError(f"Gazetteer file not found: {path}")
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        header = handle.readline()
        delimiter = ";" if ";" in header else ","
        fieldnames = [name.strip().lower() for name in next(csv.reader([header], delimiter=delimiter), [])]
        missing = [col for col in required if col not in fieldnames]
        if missing:
            raise GazetteerLoadError(f"{path.name} is missing columns: {', '.join(missing)}")
        reader = csv.DictReader(handle, fieldnames=fieldnames, delimiter=delimiter)
        return [row for row in reader if any((v or "").strip() for v in row.values() if isinstance(v, str))]


def _as_code(row: Dict[str, str], column: str, path_name: str) -> int:
    raw = (row.get(column) or "").strip()
    try:
        return int(raw)
    except ValueError:
        raise GazetteerLoadError(f"{path_name}: invalid {column} value {raw!r}")


class Gazetteer:
    """Name-based lookups over communities, provinces and municipalities."""

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        if data_dir:
            self._data_dir = Path(data_dir)
        elif settings.GAZETTEER_DATA_DIR:
            self._data_dir = Path(settings.GAZETTEER_DATA_DIR)
        else:
            self._data_dir = _default_data_dir()

        self._regions: Dict[int, str] = {}
        self._provinces: Dict[int, AdministrativeProvince] = {}
        # Insertion order is load order; containment fallback relies on it
        self._cities: Dict[str, AdministrativeCity] = {}
        self._loaded = False

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def load(self) -> "Gazetteer":
        if self._loaded:
            return self

        communities_path = self._data_dir / COMMUNITIES_FILE
        for row in _read_rows(communities_path, ["codauto", "nombre"]):
            code = _as_code(row, "codauto", COMMUNITIES_FILE)
            self._regions[code] = row["nombre"].strip()

        for row in _read_rows(self._data_dir / PROVINCES_FILE, ["cpro", "codauto", "nombre"]):
            province = AdministrativeProvince(
                province_code=_as_code(row, "cpro", PROVINCES_FILE),
                region_code=_as_code(row, "codauto", PROVINCES_FILE),
                name=row["nombre"].strip(),
            )
            self._provinces[province.province_code] = province

        for row in _read_rows(self._data_dir / MUNICIPALITIES_FILE, ["codauto", "cpro", "nombre"]):
            name = (row.get("nombre") or "").strip()
            if not name:
                continue
            key = normalize_name(name)
            if key in self._cities:
                continue
            self._cities[key] = AdministrativeCity(
                region_code=_as_code(row, "codauto", MUNICIPALITIES_FILE),
                province_code=_as_code(row, "cpro", MUNICIPALITIES_FILE),
                name=name,
            )

        if not self._cities:
            raise GazetteerLoadError(f"No municipalities loaded from {self._data_dir}")

        logger.info(
            "Loaded gazetteer: %d communities, %d provinces, %d municipalities from %s",
            len(self._regions),
            len(self._provinces),
            len(self._cities),
            self._data_dir,
        )
        self._loaded = True
        return self

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def city_info(self, name: str) -> Optional[AdministrativeCity]:
        """Exact normalized match first, then the first city where either name contains the other."""
        self._ensure_loaded()
        key = normalize_name(name)
        if not key:
            return None
        exact = self._cities.get(key)
        if exact:
            return exact
        for city_key, city in self._cities.items():
            if key in city_key or city_key in key:
                return city
        return None

    def resolve_region_by_city_name(self, name: str) -> Optional[int]:
        city = self.city_info(name)
        return city.region_code if city else None

    def cities_in_region(self, region_code: int) -> List[str]:
        self._ensure_loaded()
        names = [c.name for c in self._cities.values() if c.region_code == region_code]
        return sorted(names, key=lambda n: (normalize_name(n), n))

    def all_cities(self) -> List[AdministrativeCity]:
        self._ensure_loaded()
        return list(self._cities.values())

    def region_name(self, region_code: int) -> Optional[str]:
        self._ensure_loaded()
        return self._regions.get(region_code)

    def province_name(self, province_code: int) -> Optional[str]:
        self._ensure_loaded()
        province = self._provinces.get(province_code)
        return province.name if province else None

    def province_region(self, province_code: int) -> Optional[int]:
        self._ensure_loaded()
        province = self._provinces.get(province_code)
        return province.region_code if province else None


_default_gazetteer: Optional[Gazetteer] = None


def get_gazetteer() -> Gazetteer:
    global _default_gazetteer
    if _default_gazetteer is None:
        _default_gazetteer = Gazetteer().load()
    return _default_gazetteer
