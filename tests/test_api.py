#!/usr/bin/env python3
"""
API endpoint tests (FastAPI TestClient, pipeline fakes)
"""

import sys
import pytest
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fastapi.testclient import TestClient

import main
from models import ExtractionResult, ExtractionSource

LISTING_URL = "https://www.idealista.com/inmueble/104729381/"


class StubPipeline:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def autofill_from_url(self, url, cookie_header=None):
        self.calls.append((url, cookie_header))
        return self.result

    def extract_from_html(self, url, html):
        self.calls.append((url, len(html)))
        return self.result

    async def close(self):
        pass


@pytest.fixture
def stub_result():
    return ExtractionResult(
        buy_price=795000,
        sqm=266,
        rooms=5,
        bathrooms=4,
        city="Dénia",
        region_code=10,
        feature_text="266 m² construidos",
        estimated_rent=2979,
        source=ExtractionSource.SITE_EXTRACTION,
    )


@pytest.fixture
def client(monkeypatch, stub_result):
    pipeline = StubPipeline(stub_result)
    monkeypatch.setattr(main, "get_pipeline", lambda: pipeline)
    test_client = TestClient(main.app)
    test_client.pipeline = pipeline
    return test_client


class TestApi:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_autofill_returns_camel_case(self, client):
        response = client.post("/autofill", json={"url": LISTING_URL, "cookies": "sid=1"})
        assert response.status_code == 200
        body = response.json()
        assert body["buyPrice"] == 795000
        assert body["regionCode"] == 10
        assert body["featureText"] == "266 m² construidos"
        assert body["estimatedRent"] == 2979
        assert body["source"] == "idealista:v1"
        assert client.pipeline.calls == [(LISTING_URL, "sid=1")]

    def test_autofill_rejects_invalid_url(self, client):
        response = client.post("/autofill", json={"url": "not-a-url"})
        assert response.status_code == 422
        assert client.pipeline.calls == []

    def test_autofill_from_html(self, client):
        response = client.post("/autofill/from-html", json={"url": LISTING_URL, "html": "<html></html>"})
        assert response.status_code == 200
        assert response.json()["city"] == "Dénia"

    def test_autofill_from_html_requires_html(self, client):
        response = client.post("/autofill/from-html", json={"url": LISTING_URL, "html": ""})
        assert response.status_code == 422

    def test_cities_by_region(self, client):
        response = client.get("/territorio/ciudades", params={"codauto": 10})
        assert response.status_code == 200
        cities = response.json()["ciudades"]
        assert "Dénia" in cities
        assert "Madrid" not in cities
        assert cities.index("Alcoy/Alcoi") < cities.index("Benidorm")

    @pytest.mark.parametrize("codauto", [0, 20])
    def test_cities_rejects_out_of_range_region(self, client, codauto):
        response = client.get("/territorio/ciudades", params={"codauto": codauto})
        assert response.status_code == 422
