#!/usr/bin/env python3
"""
Unit tests for the gazetteer (bundled INE tables)
"""

import sys
import pytest
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from autofill.gazetteer import Gazetteer, GazetteerLoadError, normalize_name


def _write_tables(directory: Path, municipalities: str, provinces: str = None, communities: str = None):
    (directory / "comunidades.csv").write_text(
        communities or "codauto,nombre\n10,Comunitat Valenciana\n13,\"Madrid, Comunidad de\"\n", encoding="utf-8"
    )
    (directory / "provincias.csv").write_text(
        provinces or "cpro,codauto,nombre\n3,10,Alicante/Alacant\n28,13,Madrid\n", encoding="utf-8"
    )
    (directory / "municipios.csv").write_text(municipalities, encoding="utf-8")


class TestNormalizeName:
    def test_strips_diacritics_and_case(self):
        assert normalize_name("Dénia") == "denia"
        assert normalize_name("  ÁVILA  ") == "avila"

    def test_collapses_whitespace(self):
        assert normalize_name("San   Sebastián\tde los Reyes") == "san sebastian de los reyes"

    def test_empty(self):
        assert normalize_name("") == ""
        assert normalize_name(None) == ""


class TestRegionResolution:
    @pytest.mark.parametrize("city,region", [
        ("Madrid", 13),
        ("Barcelona", 9),
        ("Valencia", 10),
        ("Dénia", 10),
        ("denia", 10),
        ("MADRID", 13),
    ])
    def test_known_cities(self, gazetteer, city, region):
        assert gazetteer.resolve_region_by_city_name(city) == region

    def test_unknown_city(self, gazetteer):
        assert gazetteer.resolve_region_by_city_name("Springfield") is None
        assert gazetteer.resolve_region_by_city_name("") is None

    def test_containment_fallback(self, gazetteer):
        # "palma de mallorca" contains the INE name "Palma"
        city = gazetteer.city_info("Palma de Mallorca")
        assert city is not None
        assert city.name == "Palma"
        assert city.region_code == 4

    def test_city_info_returns_canonical_spelling(self, gazetteer):
        city = gazetteer.city_info("san sebastian de los reyes")
        assert city.name == "San Sebastián de los Reyes"
        assert city.province_code == 28


class TestCitiesInRegion:
    def test_contains_expected_cities(self, gazetteer):
        cities = gazetteer.cities_in_region(10)
        assert "Dénia" in cities
        assert "València" in cities
        assert "Madrid" not in cities

    def test_accent_insensitive_order(self, gazetteer):
        cities = gazetteer.cities_in_region(7)
        # "Ávila" sorts with the A's, not after "Zamora"
        assert cities.index("Aranda de Duero") < cities.index("Ávila") < cities.index("Burgos")

    def test_unknown_region(self, gazetteer):
        assert gazetteer.cities_in_region(99) == []


class TestNameLookups:
    def test_region_and_province_names(self, gazetteer):
        assert gazetteer.region_name(10) == "Comunitat Valenciana"
        assert gazetteer.province_name(3) == "Alicante/Alacant"
        assert gazetteer.province_region(3) == 10
        assert gazetteer.province_name(99) is None


class TestLoading:
    def test_first_loaded_spelling_wins(self, tmp_path):
        _write_tables(tmp_path, "codauto,cpro,nombre\n10,3,Dénia\n13,28,DENIA\n")
        gazetteer = Gazetteer(data_dir=tmp_path).load()
        city = gazetteer.city_info("denia")
        assert city.name == "Dénia"
        assert city.region_code == 10
        assert len(gazetteer.all_cities()) == 1

    def test_missing_files_raise(self, tmp_path):
        with pytest.raises(GazetteerLoadError):
            Gazetteer(data_dir=tmp_path).load()

    def test_malformed_codes_raise(self, tmp_path):
        _write_tables(tmp_path, "codauto,cpro,nombre\nten,3,Dénia\n")
        with pytest.raises(GazetteerLoadError):
            Gazetteer(data_dir=tmp_path).load()

    def test_missing_columns_raise(self, tmp_path):
        _write_tables(tmp_path, "region,nombre\n10,Dénia\n")
        with pytest.raises(GazetteerLoadError):
            Gazetteer(data_dir=tmp_path).load()

    def test_lookup_loads_lazily(self, tmp_path):
        _write_tables(tmp_path, "codauto,cpro,nombre\n13,28,Madrid\n")
        assert Gazetteer(data_dir=tmp_path).resolve_region_by_city_name("Madrid") == 13

    def test_ine_dictionary_layout(self, tmp_path):
        _write_tables(
            tmp_path,
            "CODAUTO;CPRO;CMUN;DC;NOMBRE\n10;03;063;0;Dénia\n13;28;127;1;\"Rozas de Madrid, Las\"\n",
        )
        gazetteer = Gazetteer(data_dir=tmp_path).load()
        assert gazetteer.resolve_region_by_city_name("Dénia") == 10
        city = gazetteer.city_info("Rozas de Madrid, Las")
        assert city.province_code == 28
        assert len(gazetteer.all_cities()) == 2
